"""Coordinate projector: image-percentage ↔ geographic coordinates.

Image coordinates are percentages (0-100) from the top-left corner of a square
static-map tile centered on ``center``. Scale follows Web-Mercator
meters-per-pixel at the tile zoom, corrected by cos(latitude); longitude is
additionally scaled by cos(latitude) for meridian convergence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from app.engine.config import FT_TO_DEG
from app.engine.context import Direction, GeoPoint

EARTH_CIRCUMFERENCE_M_PER_PX = 156543.03392  # meters/pixel at zoom 0, equator
METERS_PER_DEG_LAT = 111320.0


class ProjectionError(ValueError):
    """Raised on non-finite input coordinates."""


def _require_finite(*values: float) -> None:
    for v in values:
        if v is None or not math.isfinite(v):
            raise ProjectionError(f"Non-finite coordinate: {v!r}")


def meters_per_pixel(lat: float, zoom: int) -> float:
    return EARTH_CIRCUMFERENCE_M_PER_PX * math.cos(math.radians(lat)) / (2**zoom)


def pct_to_geo(x_pct: float, y_pct: float, center: GeoPoint, zoom: int, image_size: int) -> GeoPoint:
    _require_finite(x_pct, y_pct, center.lng, center.lat)
    mpp = meters_per_pixel(center.lat, zoom)
    m_per_deg_lng = METERS_PER_DEG_LAT * math.cos(math.radians(center.lat))

    px_x = (x_pct / 100.0 - 0.5) * image_size
    px_y = (y_pct / 100.0 - 0.5) * image_size

    meters_x = px_x * mpp
    meters_y = -px_y * mpp  # image y grows downward

    return GeoPoint(center.lng + meters_x / m_per_deg_lng, center.lat + meters_y / METERS_PER_DEG_LAT)


def geo_to_pct(point: GeoPoint, center: GeoPoint, zoom: int, image_size: int) -> tuple[float, float]:
    _require_finite(point.lng, point.lat, center.lng, center.lat)
    mpp = meters_per_pixel(center.lat, zoom)
    m_per_deg_lng = METERS_PER_DEG_LAT * math.cos(math.radians(center.lat))

    meters_x = (point.lng - center.lng) * m_per_deg_lng
    meters_y = (point.lat - center.lat) * METERS_PER_DEG_LAT

    px_x = meters_x / mpp
    px_y = -meters_y / mpp

    return (100.0 * (px_x / image_size + 0.5), 100.0 * (px_y / image_size + 0.5))


def feet_to_degrees(distance_ft: float, lat: float) -> tuple[float, float]:
    """Feet → (Δlng, Δlat) at ``lat``."""
    d_lat = distance_ft * FT_TO_DEG
    return (d_lat / math.cos(math.radians(lat)), d_lat)


def direction_delta(direction: Direction, distance_ft: float, lat: float) -> tuple[float, float]:
    """Cardinal shift in image space (up = north) → (Δlng, Δlat)."""
    d_lng, d_lat = feet_to_degrees(distance_ft, lat)
    if direction is Direction.UP:
        return (0.0, d_lat)
    if direction is Direction.DOWN:
        return (0.0, -d_lat)
    if direction is Direction.LEFT:
        return (-d_lng, 0.0)
    return (d_lng, 0.0)


@dataclass(frozen=True)
class CoordinateProjector:
    """Fixed image frame: center, zoom and square size."""

    center: GeoPoint
    zoom: int = 20
    image_size: int = 640

    def __post_init__(self) -> None:
        _require_finite(self.center.lng, self.center.lat)
        if self.image_size <= 0:
            raise ProjectionError(f"Image size must be positive, got {self.image_size}")

    def to_geo(self, x_pct: float, y_pct: float) -> GeoPoint:
        return pct_to_geo(x_pct, y_pct, self.center, self.zoom, self.image_size)

    def to_pct(self, point: GeoPoint) -> tuple[float, float]:
        return geo_to_pct(point, self.center, self.zoom, self.image_size)
