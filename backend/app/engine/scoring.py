"""Quality & review scoring."""

from __future__ import annotations

from dataclasses import replace

from app.engine.config import PipelineConfig
from app.engine.context import DetectedFeatureSet

EMPTY_QUALITY_SCORE = 50


def quality_score(features: DetectedFeatureSet) -> int:
    """clamp(mean confidence − 20·review share + 10·snapped share, 0, 100)."""
    lines = features.all_lines()
    if not lines:
        return EMPTY_QUALITY_SCORE

    n = len(lines)
    mean_confidence = sum(l.confidence for l in lines) / n
    review_penalty = 20.0 * sum(1 for l in lines if l.requires_review) / n
    snap_bonus = 10.0 * sum(1 for l in lines if l.snapped) / n

    return round(max(0.0, min(100.0, mean_confidence - review_penalty + snap_bonus)))


def requires_manual_review(features: DetectedFeatureSet, mean_below: float = 70.0) -> bool:
    lines = features.all_lines()
    if any(l.requires_review for l in lines):
        return True
    if not features.ridges:
        return True
    if any(not l.snapped for l in lines):
        return True
    mean_confidence = sum(l.confidence for l in lines) / max(1, len(lines))
    return mean_confidence < mean_below


def finalize_review_flags(features: DetectedFeatureSet, config: PipelineConfig) -> DetectedFeatureSet:
    """Low-confidence or unsnapped lines always go to review."""
    return features.map_lines(
        lambda _role, _i, line: replace(
            line,
            requires_review=(
                line.requires_review
                or line.confidence < config.final_review_below
                or not line.snapped
            ),
        )
    )
