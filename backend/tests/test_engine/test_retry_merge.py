"""Tests for the feedback retry and merge."""

from __future__ import annotations

import asyncio

from app.engine.config import FT_TO_DEG, PipelineConfig
from app.engine.context import DetectedFeatureSet, GeoPoint, LineRole, LineSource, RoofLine
from app.engine.projection import CoordinateProjector
from app.engine.retry import connected_endpoints, lines_overlap, merge_features, merge_lines, retry_with_feedback
from tests.conftest import CENTER, RIDGE_W, SW, FakeDetector, feet_south, hip_roof, square_perimeter

MERGE_TOL = 2 * 3.0 * FT_TO_DEG


def _hip(start: GeoPoint, end: GeoPoint, snapped: bool, **kwargs) -> RoofLine:
    return RoofLine(start, end, snapped=snapped, **kwargs)


def test_overlap_accepts_either_orientation():
    a = _hip(RIDGE_W, SW, True)
    b = _hip(SW, feet_south(RIDGE_W, 2), True)
    assert lines_overlap(a, b, MERGE_TOL)
    assert not lines_overlap(a, _hip(RIDGE_W, feet_south(SW, 10), True), MERGE_TOL)


def test_snapped_retry_replaces_unsnapped_original():
    original = [_hip(RIDGE_W, feet_south(SW, 5), False)]
    retry = [_hip(RIDGE_W, SW, True, source=LineSource.ORACLE_RETRY)]
    merged = merge_lines(original, retry, MERGE_TOL)
    assert merged == retry


def test_snapped_original_is_kept():
    original = [_hip(RIDGE_W, SW, True)]
    retry = [_hip(RIDGE_W, feet_south(SW, 1), True, source=LineSource.ORACLE_RETRY)]
    assert merge_lines(original, retry, MERGE_TOL) == original


def test_non_overlapping_retry_is_appended():
    original = [_hip(RIDGE_W, SW, True)]
    extra = _hip(GeoPoint(-74.99995, 40.0), GeoPoint(-74.99987, 39.9999), True)
    assert merge_lines(original, [extra], MERGE_TOL) == original + [extra]


def test_original_replaced_at_most_once():
    original = [_hip(RIDGE_W, feet_south(SW, 5), False)]
    first = _hip(RIDGE_W, SW, True, confidence=70.0)
    second = _hip(RIDGE_W, feet_south(SW, 1), True, confidence=90.0)
    merged = merge_lines(original, [first, second], MERGE_TOL)
    assert merged == [first]


def test_merge_features_per_role():
    original = hip_roof()
    retry = DetectedFeatureSet(valleys=(_hip(GeoPoint(-75.0, 40.00005), GeoPoint(-75.0, 40.0001), True),))
    merged = merge_features(original, retry, MERGE_TOL)
    assert merged.ridges == original.ridges
    assert merged.hips == original.hips
    assert len(merged.valleys) == 1


def _run_retry(detector: FakeDetector, features: DetectedFeatureSet) -> DetectedFeatureSet:
    return asyncio.run(
        retry_with_feedback(
            detector,
            "https://example.test/roof.png",
            CoordinateProjector(CENTER),
            square_perimeter(),
            features,
            [feet_south(SW, 5)],
            PipelineConfig(),
        )
    )


def _with_short_hip(feet: float) -> DetectedFeatureSet:
    features = hip_roof()
    hips = list(features.hips)
    hips[0] = RoofLine(RIDGE_W, feet_south(SW, feet), snapped=False)
    return features.with_lines(LineRole.HIP, hips)


def test_retry_replaces_floating_hip():
    retry_set = hip_roof(confidence=75.0, source=LineSource.ORACLE_RETRY, requires_review=True)
    detector = FakeDetector(retry=retry_set)
    merged = _run_retry(detector, _with_short_hip(5))

    assert detector.retry_calls == 1
    assert len(merged.hips) == 4
    assert merged.hips[0].end == SW
    assert merged.hips[0].source is LineSource.ORACLE_RETRY
    assert merged.hips[0].snapped


def test_retry_hip_snaps_to_existing_ridge_end():
    fixed = RoofLine(feet_south(RIDGE_W, 1), SW, confidence=80.0, source=LineSource.ORACLE_RETRY)
    detector = FakeDetector(retry=DetectedFeatureSet(hips=(fixed,)))
    merged = _run_retry(detector, _with_short_hip(5))

    assert len(merged.hips) == 4
    assert merged.hips[0].source is LineSource.ORACLE_RETRY
    assert merged.hips[0].start == RIDGE_W
    assert merged.hips[0].end == SW
    assert merged.hips[0].snapped


def test_floating_endpoints_are_not_retry_targets():
    features = _with_short_hip(5)
    anchors = connected_endpoints(features, [feet_south(SW, 5)])
    assert feet_south(SW, 5) not in anchors
    assert RIDGE_W in anchors
    assert len(anchors) == 2 + 4 * 2 - 1


def test_retry_failure_keeps_original():
    features = _with_short_hip(5)
    detector = FakeDetector(error=RuntimeError("oracle timeout"))
    assert _run_retry(detector, features) is features
    assert len(detector.calls) == 1


def test_empty_retry_keeps_original():
    features = _with_short_hip(5)
    assert _run_retry(FakeDetector(), features) is features


def test_no_floating_skips_detector():
    detector = FakeDetector(retry=hip_roof())
    features = hip_roof()
    result = asyncio.run(
        retry_with_feedback(
            detector, "", CoordinateProjector(CENTER), square_perimeter(), features, [], PipelineConfig()
        )
    )
    assert result is features
    assert detector.calls == []
