"""Feedback retry: one extra detection pass aimed at floating endpoints.

The retry set is snapped against the perimeter plus the connected ridge and
hip endpoints of the current set, then merged role by role: a retry line
that overlaps an original (both endpoints within the merge tolerance, either
orientation) replaces it only if the retry line is snapped and the original is
not; a retry line overlapping nothing is appended. Each original is replaced
at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.engine.config import PipelineConfig
from app.engine.context import ROLE_ORDER, DetectedFeatureSet, GeoPoint, LineRole, Perimeter, RoofLine
from app.engine.oracle import FeatureDetector
from app.engine.projection import CoordinateProjector
from app.engine.snapping import snap_features
from app.utils.geometry import point_distance

logger = logging.getLogger(__name__)


def _close(a: GeoPoint, b: GeoPoint, tolerance_deg: float) -> bool:
    return point_distance((a.lng, a.lat), (b.lng, b.lat)) < tolerance_deg


def lines_overlap(a: RoofLine, b: RoofLine, tolerance_deg: float) -> bool:
    same = _close(a.start, b.start, tolerance_deg) and _close(a.end, b.end, tolerance_deg)
    flipped = _close(a.start, b.end, tolerance_deg) and _close(a.end, b.start, tolerance_deg)
    return same or flipped


def merge_lines(
    original: Sequence[RoofLine],
    retry: Sequence[RoofLine],
    tolerance_deg: float,
) -> list[RoofLine]:
    merged = list(original)
    replaced: set[int] = set()
    for retry_line in retry:
        match = next(
            (i for i, o in enumerate(original) if lines_overlap(o, retry_line, tolerance_deg)),
            None,
        )
        if match is None:
            merged.append(retry_line)
        elif match not in replaced and retry_line.snapped and not original[match].snapped:
            merged[match] = retry_line
            replaced.add(match)
    return merged


def connected_endpoints(features: DetectedFeatureSet, floating: Sequence[GeoPoint]) -> list[GeoPoint]:
    """Ridge and hip endpoints of the current set that are not floating."""
    skip = set(floating)
    return [
        p
        for role in (LineRole.RIDGE, LineRole.HIP)
        for line in features.lines(role)
        for p in line.endpoints
        if p not in skip
    ]


def merge_features(
    original: DetectedFeatureSet,
    retry: DetectedFeatureSet,
    tolerance_deg: float,
) -> DetectedFeatureSet:
    merged = original
    for role in ROLE_ORDER:
        merged = merged.with_lines(role, merge_lines(original.lines(role), retry.lines(role), tolerance_deg))
    return merged


async def retry_with_feedback(
    detector: FeatureDetector,
    image_url: str,
    projector: CoordinateProjector,
    perimeter: Perimeter,
    features: DetectedFeatureSet,
    floating: Sequence[GeoPoint],
    config: PipelineConfig,
) -> DetectedFeatureSet:
    """Re-query the detector once with the floating endpoints; best-effort merge."""
    if not floating:
        return features

    try:
        retry_set = await detector.detect(image_url, projector, perimeter, floating=list(floating))
    except Exception as e:
        logger.warning("Retry with feedback failed: %s", e)
        return features

    if retry_set.is_empty:
        logger.info("Retry returned no features: keeping original detection")
        return features

    anchors = connected_endpoints(features, floating)
    retry_snapped = snap_features(retry_set, perimeter, config.snap_tolerance_deg, anchors=anchors)
    merged = merge_features(features, retry_snapped, config.merge_tolerance_deg)
    logger.info("Retry merged: %s -> %s", features.counts(), merged.counts())
    return merged
