"""Endpoint snapping: resolve every line endpoint to a topological target.

Targets grow role by role: perimeter vertices, then ridge endpoints, then hip
endpoints. Ridges snap first, hips may land on ridge ends, valleys may land on
hip/ridge junctions. Distances are Euclidean in degree space against a
feet-derived threshold; the nearest target wins and exact ties go to the
earliest-inserted target.

An endpoint is resolved when it snapped to a target, or when an endpoint of a
later role snapped onto it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

import numpy as np

from app.engine.context import ROLE_ORDER, DetectedFeatureSet, GeoPoint, LineRole, Perimeter, RoofLine
from app.utils.geometry import nearest_index

logger = logging.getLogger(__name__)

# Owner key of a target: None for perimeter vertices and anchors, else (role, line index, endpoint 0/1)
Owner = tuple[LineRole, int, int] | None


@dataclass
class SnapTargets:
    """Append-only pool of snap targets with their owners."""

    points: list[GeoPoint] = field(default_factory=list)
    owners: list[Owner] = field(default_factory=list)

    @classmethod
    def from_perimeter(cls, perimeter: Perimeter) -> SnapTargets:
        pool = cls()
        for v in perimeter:
            pool.add(v, None)
        return pool

    def add(self, point: GeoPoint, owner: Owner) -> None:
        self.points.append(point)
        self.owners.append(owner)

    def array(self) -> np.ndarray:
        if not self.points:
            return np.empty((0, 2))
        return np.array([[p.lng, p.lat] for p in self.points], dtype=np.float64)

    def __len__(self) -> int:
        return len(self.points)


def snap_point(point: GeoPoint, targets: np.ndarray, tolerance_deg: float) -> tuple[int, GeoPoint | None]:
    """Return (target index, target) if a target lies strictly within tolerance."""
    idx, dist = nearest_index((point.lng, point.lat), targets)
    if idx < 0 or dist >= tolerance_deg:
        return (-1, None)
    return (idx, GeoPoint(float(targets[idx, 0]), float(targets[idx, 1])))


def snap_features(
    features: DetectedFeatureSet,
    perimeter: Perimeter,
    tolerance_deg: float,
    anchors: Sequence[GeoPoint] = (),
) -> DetectedFeatureSet:
    """Snap ridges, then hips, then valleys. Returns a new feature set.

    ``anchors`` are extra fixed targets pooled right after the perimeter
    vertices (endpoints of lines snapped earlier, outside this set).
    """
    pool = SnapTargets.from_perimeter(perimeter)
    for anchor in anchors:
        pool.add(anchor, None)
    positions: dict[LineRole, list[list[GeoPoint]]] = {}
    resolved: dict[LineRole, list[list[bool]]] = {}

    for role in ROLE_ORDER:
        targets = pool.array()
        role_positions: list[list[GeoPoint]] = []
        role_resolved: list[list[bool]] = []

        for line in features.lines(role):
            ends: list[GeoPoint] = []
            flags: list[bool] = []
            for endpoint in line.endpoints:
                idx, target = snap_point(endpoint, targets, tolerance_deg)
                if target is None:
                    ends.append(endpoint)
                    flags.append(False)
                    continue
                ends.append(target)
                flags.append(True)
                owner = pool.owners[idx]
                if owner is not None:
                    o_role, o_index, o_end = owner
                    resolved[o_role][o_index][o_end] = True
            role_positions.append(ends)
            role_resolved.append(flags)

        positions[role] = role_positions
        resolved[role] = role_resolved

        # This role's endpoints become targets for the roles after it
        for i, ends in enumerate(role_positions):
            for j, p in enumerate(ends):
                pool.add(p, (role, i, j))

    def _rebuild(role: LineRole, i: int, line: RoofLine) -> RoofLine:
        start, end = positions[role][i]
        return replace(line, start=start, end=end, snapped=all(resolved[role][i]))

    snapped = features.map_lines(_rebuild)
    logger.debug(
        "Snapped %d/%d lines (pool of %d targets)",
        sum(1 for line in snapped.all_lines() if line.snapped),
        snapped.total,
        len(pool),
    )
    return snapped
