"""Alignment refinement: verify against the image, shift, repeat (bounded).

    VERIFYING --score >= target--------------------> CONVERGED
        |  \\--score < target, attempts == max-----> ATTEMPTS_EXHAUSTED
        v
    ADJUSTING --apply shifts--> VERIFYING

The aggregate score is the mean line confidence after verification (50 when
there are no lines, so an empty overlay never "converges"). The verifier is
called at most ``max_alignment_attempts`` times.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from app.engine.config import PipelineConfig
from app.engine.context import AlignmentAdjustment, DetectedFeatureSet, Perimeter
from app.engine.oracle import AlignmentVerifier
from app.engine.projection import CoordinateProjector, direction_delta

logger = logging.getLogger(__name__)

NEUTRAL_ALIGNMENT_SCORE = 50.0


class AlignmentState(str, enum.Enum):
    VERIFYING = "verifying"
    ADJUSTING = "adjusting"
    CONVERGED = "converged"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


@dataclass(frozen=True)
class AlignmentOutcome:
    features: DetectedFeatureSet
    state: AlignmentState
    attempts: int
    score: float
    scores: tuple[float, ...] = ()


def aggregate_score(features: DetectedFeatureSet) -> float:
    lines = features.all_lines()
    if not lines:
        return NEUTRAL_ALIGNMENT_SCORE
    return sum(l.confidence for l in lines) / len(lines)


def apply_adjustments(
    features: DetectedFeatureSet,
    adjustments: Sequence[AlignmentAdjustment],
    lat: float,
) -> DetectedFeatureSet:
    """Shift both endpoints of each referenced line. Unknown indices are ignored."""
    out = features
    for adj in adjustments:
        lines = list(out.lines(adj.role))
        if not 0 <= adj.index < len(lines):
            continue
        d_lng, d_lat = direction_delta(adj.direction, adj.distance_ft, lat)
        lines[adj.index] = lines[adj.index].shifted(d_lng, d_lat)
        out = out.with_lines(adj.role, lines)
    return out


async def refine_alignment(
    verifier: AlignmentVerifier,
    image_url: str,
    projector: CoordinateProjector,
    perimeter: Perimeter,
    features: DetectedFeatureSet,
    config: PipelineConfig,
) -> AlignmentOutcome:
    current = features
    attempts = 0
    scores: list[float] = []
    state = AlignmentState.VERIFYING

    while state is AlignmentState.VERIFYING:
        verification = await verifier.verify(image_url, projector, perimeter, current)
        attempts += 1
        verified = verification.features
        score = aggregate_score(verified)
        scores.append(score)
        logger.info("Alignment attempt %d: score = %.1f%%", attempts, score)

        if score >= config.min_alignment_score:
            state = AlignmentState.CONVERGED
            current = verified
        elif attempts >= config.max_alignment_attempts:
            state = AlignmentState.ATTEMPTS_EXHAUSTED
            current = verified
        else:
            # Adjusting, then back to verifying
            current = apply_adjustments(verified, verification.adjustments, projector.center.lat)
            logger.debug("Applied %d alignment adjustment(s)", len(verification.adjustments))

    return AlignmentOutcome(
        features=current,
        state=state,
        attempts=attempts,
        score=scores[-1],
        scores=tuple(scores),
    )
