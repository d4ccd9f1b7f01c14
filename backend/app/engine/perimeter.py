"""Perimeter resolver: turn the upstream footprint payload into an ordered ring.

Sources, in priority order:
1. ``perimeterWkt``: WKT POLYGON in (lng lat) order
2. ``aiAnalysis.roofPerimeter``: list of [lng, lat] pairs
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon

from app.engine.context import GeoPoint, Perimeter
from app.utils.geometry import haversine_ft, signed_area, to_local_feet

logger = logging.getLogger(__name__)


class PerimeterError(ValueError):
    """The upstream footprint is missing or degenerate."""


@dataclass
class FootprintMetrics:
    area_sqft: float
    perimeter_ft: float
    vertex_count: int
    aspect_ratio: float
    compactness: float
    warnings: list[str] = field(default_factory=list)


def parse_wkt_ring(text: str) -> list[GeoPoint]:
    """Exterior ring of a WKT POLYGON (largest member of a MULTIPOLYGON)."""
    try:
        geom = wkt.loads(text)
    except (ShapelyError, ValueError, TypeError) as e:
        logger.warning("Unparseable perimeter WKT: %s", e)
        return []

    if isinstance(geom, MultiPolygon):
        geom = max(geom.geoms, key=lambda g: g.area)
    if not isinstance(geom, Polygon) or geom.is_empty:
        return []
    return [GeoPoint(float(x), float(y)) for x, y, *_ in geom.exterior.coords]


def _pairs_to_points(vertices: Any) -> list[GeoPoint]:
    points: list[GeoPoint] = []
    if not isinstance(vertices, list):
        return points
    for v in vertices:
        if isinstance(v, (list, tuple)) and len(v) >= 2 and all(isinstance(c, (int, float)) for c in v[:2]):
            points.append(GeoPoint(float(v[0]), float(v[1])))
    return points


def normalize_ring(points: list[GeoPoint]) -> list[GeoPoint]:
    """Drop non-finite vertices, consecutive duplicates and the closing duplicate."""
    ring: list[GeoPoint] = []
    for p in points:
        if not (math.isfinite(p.lng) and math.isfinite(p.lat)):
            continue
        if ring and ring[-1] == p:
            continue
        ring.append(p)
    while len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return ring


def resolve_perimeter(data: dict[str, Any] | None) -> Perimeter:
    """Extract and normalize the building footprint from an upstream payload."""
    if not data:
        raise PerimeterError("Perimeter source returned no data")

    candidates: list[tuple[str, list[GeoPoint]]] = []
    if data.get("perimeterWkt"):
        candidates.append(("perimeterWkt", parse_wkt_ring(str(data["perimeterWkt"]))))
    roof_perimeter = (data.get("aiAnalysis") or {}).get("roofPerimeter")
    if roof_perimeter:
        candidates.append(("aiAnalysis.roofPerimeter", _pairs_to_points(roof_perimeter)))

    for name, raw in candidates:
        ring = normalize_ring(raw)
        if len(set(ring)) >= 3:
            logger.debug("Perimeter from %s: %d vertices", name, len(ring))
            return Perimeter(tuple(ring))
        logger.warning("Perimeter candidate %s unusable (%d vertices)", name, len(ring))

    raise PerimeterError("No usable building footprint (need at least 3 distinct vertices)")


def roof_type_from(data: dict[str, Any] | None) -> str:
    if not data:
        return "complex"
    return (data.get("aiAnalysis") or {}).get("roofType") or "complex"


def footprint_metrics(perimeter: Perimeter) -> FootprintMetrics:
    """Area, length and shape sanity checks for a footprint."""
    pts = np.array([[v.lng, v.lat] for v in perimeter], dtype=np.float64)
    local = to_local_feet(pts)
    area = abs(signed_area(local))

    verts = list(perimeter)
    length = sum(
        haversine_ft(a.lng, a.lat, b.lng, b.lat)
        for a, b in zip(verts, verts[1:] + verts[:1])
    )

    width = float(np.ptp(local[:, 0]))
    height = float(np.ptp(local[:, 1]))
    aspect = width / height if height > 0 else 1.0
    compactness = (4 * math.pi * area) / (length * length) if length > 0 else 0.0

    warnings: list[str] = []
    if area < 500:
        warnings.append(f"Area too small: {area:.0f} sqft")
    elif area > 50000:
        warnings.append(f"Area too large: {area:.0f} sqft")
    if aspect < 0.2 or aspect > 5:
        warnings.append(f"Unusual aspect ratio: {aspect:.2f}")
    if compactness < 0.3:
        warnings.append(f"Low compactness: {compactness:.2f}")

    return FootprintMetrics(
        area_sqft=area,
        perimeter_ft=length,
        vertex_count=len(verts),
        aspect_ratio=aspect,
        compactness=compactness,
        warnings=warnings,
    )


def total_area_from(data: dict[str, Any] | None, perimeter: Perimeter) -> float:
    """Upstream area when reported, otherwise the footprint area."""
    reported = ((data or {}).get("measurements") or {}).get("totalAreaSqft")
    if isinstance(reported, (int, float)) and math.isfinite(reported) and reported > 0:
        return float(reported)
    return round(footprint_metrics(perimeter).area_sqft, 1)
