"""Leaf-node geometry helpers. No engine imports."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

EARTH_RADIUS_FT = 20902231.0
FEET_PER_DEG_LAT = 364000.0


def haversine_ft(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance in feet."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_FT * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def to_local_feet(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Project Nx2 (lng, lat) degrees onto a flat feet plane around their mean latitude."""
    if len(points) == 0:
        return np.empty((0, 2))
    mean_lat = float(np.mean(points[:, 1]))
    scale = np.array([FEET_PER_DEG_LAT * math.cos(math.radians(mean_lat)), FEET_PER_DEG_LAT])
    return (points - points.mean(axis=0)) * scale


def signed_area(points: NDArray[np.float64]) -> float:
    """Shoelace formula over an open ring. Positive = CCW, Negative = CW."""
    if len(points) < 3:
        return 0.0
    x = points[:, 0]
    y = points[:, 1]
    return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def nearest_index(point: tuple[float, float], targets: NDArray[np.float64]) -> tuple[int, float]:
    """Index of and distance to the nearest target (first one wins on exact ties)."""
    if len(targets) == 0:
        return (-1, float("inf"))
    dists = np.hypot(targets[:, 0] - point[0], targets[:, 1] - point[1])
    idx = int(np.argmin(dists))
    return (idx, float(dists[idx]))


def point_distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])
