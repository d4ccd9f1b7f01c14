"""Connectivity validator: find hip/valley endpoints that connect to nothing.

Uses a looser tolerance than snapping so projection drift never flags a line
that snapped correctly. Valid targets are perimeter vertices, ridge endpoints
and hip endpoints; a line is never checked against its own endpoints. Ridges
are not validated by the floating check; the snapped re-check covers every
role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import numpy as np

from app.engine.context import DetectedFeatureSet, GeoPoint, LineRole, Perimeter

logger = logging.getLogger(__name__)

_CHECKED_ROLES = (LineRole.HIP, LineRole.VALLEY)


@dataclass(frozen=True)
class FloatingEndpoint:
    role: LineRole
    index: int
    point: GeoPoint


def find_floating_endpoints(
    features: DetectedFeatureSet,
    perimeter: Perimeter,
    tolerance_deg: float,
) -> list[FloatingEndpoint]:
    points: list[tuple[float, float]] = [(v.lng, v.lat) for v in perimeter]
    owners: list[tuple[LineRole, int] | None] = [None] * len(points)
    for role in (LineRole.RIDGE, LineRole.HIP):
        for i, line in enumerate(features.lines(role)):
            for p in line.endpoints:
                points.append((p.lng, p.lat))
                owners.append((role, i))

    targets = np.array(points, dtype=np.float64)
    floating: list[FloatingEndpoint] = []

    for role in _CHECKED_ROLES:
        for i, line in enumerate(features.lines(role)):
            mask = np.array([o != (role, i) for o in owners], dtype=bool)
            candidates = targets[mask]
            for p in line.endpoints:
                dists = np.hypot(candidates[:, 0] - p.lng, candidates[:, 1] - p.lat)
                if len(dists) == 0 or float(dists.min()) >= tolerance_deg:
                    floating.append(FloatingEndpoint(role, i, p))

    if floating:
        logger.debug("%d floating endpoint(s): %s", len(floating), [(f.role.value, f.index) for f in floating])
    return floating


def validate_connectivity(
    features: DetectedFeatureSet,
    perimeter: Perimeter,
    tolerance_deg: float,
) -> list[GeoPoint]:
    """Floating endpoints as points; empty when the topology is fully connected."""
    return [f.point for f in find_floating_endpoints(features, perimeter, tolerance_deg)]


def flag_floating_lines(
    features: DetectedFeatureSet,
    perimeter: Perimeter,
    tolerance_deg: float,
) -> DetectedFeatureSet:
    """Final pass: mark every line with a floating endpoint as requiring review."""
    flagged = {(f.role, f.index) for f in find_floating_endpoints(features, perimeter, tolerance_deg)}
    if not flagged:
        return features
    return features.map_lines(
        lambda role, i, line: replace(line, requires_review=True) if (role, i) in flagged else line
    )


def confirm_snapped(
    features: DetectedFeatureSet,
    perimeter: Perimeter,
    tolerance_deg: float,
) -> DetectedFeatureSet:
    """Clear ``snapped`` on any line, ridges included, with an endpoint off every target.

    Targets are perimeter vertices and the endpoints of every other line. Run
    after alignment shifts, which move whole lines off their junctions.
    """
    points: list[tuple[float, float]] = [(v.lng, v.lat) for v in perimeter]
    owners: list[tuple[LineRole, int] | None] = [None] * len(points)
    for role, i, line in features.iter_indexed():
        for p in line.endpoints:
            points.append((p.lng, p.lat))
            owners.append((role, i))

    targets = np.array(points, dtype=np.float64)
    detached: set[tuple[LineRole, int]] = set()
    for role, i, line in features.iter_indexed():
        if not line.snapped:
            continue
        candidates = targets[np.array([o != (role, i) for o in owners], dtype=bool)]
        for p in line.endpoints:
            dists = np.hypot(candidates[:, 0] - p.lng, candidates[:, 1] - p.lat)
            if len(dists) == 0 or float(dists.min()) >= tolerance_deg:
                detached.add((role, i))
                break

    if not detached:
        return features
    logger.warning(
        "%d line(s) moved off their snap targets: %s",
        len(detached),
        sorted((r.value, i) for r, i in detached),
    )
    return features.map_lines(
        lambda role, i, line: replace(line, snapped=False) if (role, i) in detached else line
    )
