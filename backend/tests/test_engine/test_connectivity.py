"""Tests for the floating-endpoint validator."""

from __future__ import annotations

from app.engine.config import FT_TO_DEG
from app.engine.connectivity import (
    confirm_snapped,
    find_floating_endpoints,
    flag_floating_lines,
    validate_connectivity,
)
from app.engine.context import DetectedFeatureSet, GeoPoint, LineRole, RoofLine
from tests.conftest import NW, RIDGE_W, SW, feet_south, hip_roof, square_perimeter

VALIDATION_TOL = 1.5 * 3.0 * FT_TO_DEG


def _hip_roof_with_short_hip(feet: float) -> DetectedFeatureSet:
    features = hip_roof()
    hips = list(features.hips)
    hips[0] = RoofLine(RIDGE_W, feet_south(SW, feet), confidence=92.0)
    return features.with_lines(LineRole.HIP, hips)


def test_connected_roof_has_no_floating_endpoints():
    assert validate_connectivity(hip_roof(), square_perimeter(), VALIDATION_TOL) == []


def test_hip_ending_15ft_from_corner_floats():
    floating = validate_connectivity(_hip_roof_with_short_hip(15), square_perimeter(), VALIDATION_TOL)
    assert floating == [feet_south(SW, 15)]


def test_validation_is_looser_than_snapping():
    # 4 ft is outside the 3 ft snap tolerance but inside 1.5x of it
    assert validate_connectivity(_hip_roof_with_short_hip(4), square_perimeter(), VALIDATION_TOL) == []


def test_line_does_not_connect_to_itself():
    lone = RoofLine(GeoPoint(-75.00003, 40.00002), GeoPoint(-75.00001, 40.00004))
    features = DetectedFeatureSet(hips=(lone,))
    floating = validate_connectivity(features, square_perimeter(), VALIDATION_TOL)
    assert floating == [lone.start, lone.end]


def test_valleys_are_checked_ridges_are_not():
    stray = RoofLine(GeoPoint(-75.00003, 40.00002), GeoPoint(-75.00001, 40.00004))
    features = DetectedFeatureSet(ridges=(stray,), valleys=(stray,))
    found = find_floating_endpoints(features, square_perimeter(), VALIDATION_TOL)
    # The valley's endpoints coincide with the ridge's, so they connect
    assert found == []

    features = DetectedFeatureSet(ridges=(stray,))
    assert find_floating_endpoints(features, square_perimeter(), VALIDATION_TOL) == []


def test_flag_floating_lines_marks_only_offenders():
    flagged = flag_floating_lines(_hip_roof_with_short_hip(15), square_perimeter(), VALIDATION_TOL)
    assert flagged.hips[0].requires_review
    assert not any(h.requires_review for h in flagged.hips[1:])
    assert not flagged.ridges[0].requires_review


def test_flag_floating_lines_passthrough_when_connected():
    features = hip_roof()
    assert flag_floating_lines(features, square_perimeter(), VALIDATION_TOL) is features


def _north(line: RoofLine, feet: float) -> RoofLine:
    return line.shifted(0.0, feet * FT_TO_DEG)


def test_confirm_snapped_keeps_connected_roof():
    features = hip_roof(snapped=True)
    assert confirm_snapped(features, square_perimeter(), VALIDATION_TOL) is features


def test_confirm_snapped_clears_ridge_moved_off_its_hips():
    features = hip_roof(snapped=True)
    features = features.with_lines(LineRole.RIDGE, [_north(features.ridges[0], 12)])
    confirmed = confirm_snapped(features, square_perimeter(), VALIDATION_TOL)

    assert not confirmed.ridges[0].snapped
    # The hips still meet each other at the old ridge ends
    assert all(h.snapped for h in confirmed.hips)


def test_confirm_snapped_tolerates_drift():
    features = hip_roof(snapped=True)
    features = features.with_lines(LineRole.RIDGE, [_north(features.ridges[0], 2)])
    confirmed = confirm_snapped(features, square_perimeter(), VALIDATION_TOL)
    assert confirmed.ridges[0].snapped


def test_confirm_snapped_never_promotes():
    loose = RoofLine(RIDGE_W, NW, snapped=False)
    features = DetectedFeatureSet(hips=(loose,))
    assert not confirm_snapped(features, square_perimeter(), VALIDATION_TOL).hips[0].snapped
