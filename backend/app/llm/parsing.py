"""Parse vision-oracle text into typed roof lines and alignment verdicts.

The oracle answers in free text that embeds one JSON object. A response with
no extractable JSON yields an empty result; a malformed role list yields an
empty list for that role only; a malformed line entry is skipped.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from app.engine.context import (
    ROLE_ORDER,
    AlignmentAdjustment,
    DetectedFeatureSet,
    Direction,
    LineRole,
    LineSource,
    RoofLine,
)
from app.engine.oracle import AlignmentVerification
from app.engine.projection import CoordinateProjector
from app.models.oracle import CandidateLine, LineVerification

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Extract the JSON object from an LLM response."""
    if not text:
        return None

    # Fenced ```json block first
    match = re.search(r"```(?:json)?\s*\n?({[\s\S]*?})\s*\n?```", text)
    if match:
        try:
            data = json.loads(match.group(1))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    # Outermost braces
    match = re.search(r"{[\s\S]*}", text)
    if match:
        try:
            data = json.loads(match.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    return None


def _clamp_confidence(value: float | None, default: float) -> float:
    if value is None or not math.isfinite(value):
        return default
    return max(0.0, min(100.0, float(value)))


def _parse_role(
    raw: Any,
    role: LineRole,
    projector: CoordinateProjector,
    source: LineSource,
    default_confidence: float,
    review_below: float,
    always_review: bool,
) -> list[RoofLine]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Oracle %s entry is not a list: dropping role", role.plural)
        return []

    lines: list[RoofLine] = []
    for i, item in enumerate(raw):
        try:
            cand = CandidateLine.model_validate(item)
        except ValidationError as e:
            logger.warning("Skipping malformed %s[%d]: %s", role.plural, i, e.errors()[0].get("msg", e))
            continue
        confidence = _clamp_confidence(cand.confidence, default_confidence)
        lines.append(
            RoofLine(
                start=projector.to_geo(cand.startX, cand.startY),
                end=projector.to_geo(cand.endX, cand.endY),
                confidence=confidence,
                requires_review=always_review or confidence < review_below,
                source=source,
                snapped=False,
                evidence_note=cand.description or None,
            )
        )
    return lines


def parse_feature_response(
    text: str,
    projector: CoordinateProjector,
    *,
    source: LineSource = LineSource.ORACLE,
    default_confidence: float = 80.0,
    review_below: float = 75.0,
    always_review: bool = False,
) -> DetectedFeatureSet:
    data = extract_json_object(text)
    if data is None:
        logger.warning("No JSON found in oracle detection response")
        return DetectedFeatureSet()

    features = DetectedFeatureSet()
    for role in ROLE_ORDER:
        features = features.with_lines(
            role,
            _parse_role(
                data.get(role.plural), role, projector, source,
                default_confidence, review_below, always_review,
            ),
        )
    return features


def parse_direction(value: str | None) -> Direction | None:
    """'shift_up' / 'up' / 'UP' → Direction.UP."""
    if not value:
        return None
    name = value.strip().lower()
    if name.startswith("shift_"):
        name = name[len("shift_"):]
    try:
        return Direction(name)
    except ValueError:
        return None


def parse_verification_response(
    text: str,
    features: DetectedFeatureSet,
    *,
    review_below: float = 75.0,
) -> AlignmentVerification:
    """Apply per-line alignment scores and collect suggested shifts.

    Lines the oracle says nothing about keep their current confidence.
    """
    data = extract_json_object(text)
    if data is None:
        logger.warning("No JSON found in oracle verification response")
        return AlignmentVerification(features=features)

    adjustments: list[AlignmentAdjustment] = []
    verified = features
    for role in ROLE_ORDER:
        raw = data.get(role.plural)
        if not isinstance(raw, list):
            continue
        lines = list(features.lines(role))
        # Last verdict per line wins
        verdicts: dict[int, LineVerification] = {}
        for item in raw:
            try:
                v = LineVerification.model_validate(item)
            except ValidationError:
                continue
            if 0 <= v.index < len(lines):
                verdicts[v.index] = v
        for v in verdicts.values():
            score = _clamp_confidence(v.alignmentScore, lines[v.index].confidence)
            lines[v.index] = replace(
                lines[v.index],
                confidence=score,
                requires_review=(not v.aligned) or score < review_below,
            )
            direction = parse_direction(v.shiftDirection)
            if direction is not None and v.shiftFt and math.isfinite(v.shiftFt) and v.shiftFt > 0:
                adjustments.append(AlignmentAdjustment(role, v.index, direction, float(v.shiftFt)))
        verified = verified.with_lines(role, lines)

    return AlignmentVerification(features=verified, adjustments=tuple(adjustments))
