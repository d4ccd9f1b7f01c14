"""Roof topology data model: the value types flowing through the overlay pipeline.

Every stage takes a DetectedFeatureSet and returns a new one; lines are frozen
and replaced with ``dataclasses.replace`` so no stage ever mutates another
stage's output.

Stage snapshots are collected on OverlayContext so each step can be inspected
after a run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterator


class LineRole(str, enum.Enum):
    """Role of a roof line. Declaration order is the snapping precedence."""

    RIDGE = "ridge"
    HIP = "hip"
    VALLEY = "valley"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


ROLE_ORDER: tuple[LineRole, ...] = (LineRole.RIDGE, LineRole.HIP, LineRole.VALLEY)


class LineSource(str, enum.Enum):
    ORACLE = "oracle"
    ORACLE_CORRECTED = "oracle_corrected"
    ORACLE_RETRY = "oracle_retry"


class Direction(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class GeoPoint:
    """(longitude, latitude) in decimal degrees."""

    lng: float
    lat: float

    def as_pair(self) -> list[float]:
        return [self.lng, self.lat]

    def shifted(self, d_lng: float, d_lat: float) -> GeoPoint:
        return GeoPoint(self.lng + d_lng, self.lat + d_lat)


@dataclass(frozen=True)
class Perimeter:
    """Closed ring of building-footprint vertices (no closing duplicate)."""

    vertices: tuple[GeoPoint, ...]

    def __post_init__(self) -> None:
        if len(set(self.vertices)) < 3:
            raise ValueError("Perimeter needs at least 3 distinct vertices")

    def __len__(self) -> int:
        return len(self.vertices)

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(self.vertices)

    @property
    def centroid(self) -> GeoPoint:
        n = len(self.vertices)
        return GeoPoint(
            sum(v.lng for v in self.vertices) / n,
            sum(v.lat for v in self.vertices) / n,
        )

    def as_pairs(self) -> list[list[float]]:
        return [v.as_pair() for v in self.vertices]


@dataclass(frozen=True)
class RoofLine:
    start: GeoPoint
    end: GeoPoint
    confidence: float = 80.0
    requires_review: bool = False
    source: LineSource = LineSource.ORACLE
    # True only when both endpoints resolved to a topological target
    snapped: bool = False
    # What the oracle saw (highlight, shadow, edge)
    evidence_note: str | None = None

    def shifted(self, d_lng: float, d_lat: float) -> RoofLine:
        return replace(
            self,
            start=self.start.shifted(d_lng, d_lat),
            end=self.end.shifted(d_lng, d_lat),
        )

    @property
    def endpoints(self) -> tuple[GeoPoint, GeoPoint]:
        return (self.start, self.end)


@dataclass(frozen=True)
class DetectedFeatureSet:
    ridges: tuple[RoofLine, ...] = ()
    hips: tuple[RoofLine, ...] = ()
    valleys: tuple[RoofLine, ...] = ()

    def lines(self, role: LineRole) -> tuple[RoofLine, ...]:
        if role is LineRole.RIDGE:
            return self.ridges
        if role is LineRole.HIP:
            return self.hips
        return self.valleys

    def with_lines(self, role: LineRole, lines: list[RoofLine] | tuple[RoofLine, ...]) -> DetectedFeatureSet:
        return replace(self, **{role.plural: tuple(lines)})

    def map_lines(self, fn) -> DetectedFeatureSet:
        """Apply ``fn(role, index, line) -> RoofLine`` to every line."""
        out = self
        for role in ROLE_ORDER:
            out = out.with_lines(role, [fn(role, i, line) for i, line in enumerate(self.lines(role))])
        return out

    def all_lines(self) -> list[RoofLine]:
        return [*self.ridges, *self.hips, *self.valleys]

    def iter_indexed(self) -> Iterator[tuple[LineRole, int, RoofLine]]:
        for role in ROLE_ORDER:
            for i, line in enumerate(self.lines(role)):
                yield role, i, line

    @property
    def total(self) -> int:
        return len(self.ridges) + len(self.hips) + len(self.valleys)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def counts(self) -> str:
        return f"{len(self.ridges)} ridges, {len(self.hips)} hips, {len(self.valleys)} valleys"


@dataclass(frozen=True)
class CorrectionBias:
    """Mean (Δlng, Δlat) per line role for one tenant, for one request."""

    shifts: dict[LineRole, tuple[float, float]] = field(default_factory=dict)
    sample_counts: dict[LineRole, int] = field(default_factory=dict)

    @property
    def is_zero(self) -> bool:
        return not self.shifts

    def for_role(self, role: LineRole) -> tuple[float, float] | None:
        return self.shifts.get(role)


@dataclass(frozen=True)
class AlignmentAdjustment:
    role: LineRole
    index: int
    direction: Direction
    distance_ft: float


@dataclass(frozen=True)
class OverlayMetadata:
    roof_type: str
    quality_score: int
    requires_manual_review: bool
    alignment_attempts: int
    processed_at: datetime
    data_sources_priority: tuple[str, ...] = ("satellite_imagery", "vision_oracle", "geometry_derived")
    total_area_sqft: float | None = None


@dataclass(frozen=True)
class OverlayResult:
    perimeter: Perimeter
    ridges: tuple[RoofLine, ...]
    hips: tuple[RoofLine, ...]
    valleys: tuple[RoofLine, ...]
    metadata: OverlayMetadata


@dataclass
class OverlayContext:
    """Per-request state: inputs plus a snapshot of every stage's output."""

    center: GeoPoint
    image_url: str = ""
    address: str | None = None
    tenant_id: str | None = None

    # Upstream footprint
    perimeter: Perimeter | None = None
    roof_type: str = "complex"
    total_area_sqft: float | None = None

    # --- Stage snapshots ---
    detected: DetectedFeatureSet | None = None
    bias: CorrectionBias = field(default_factory=CorrectionBias)
    corrected: DetectedFeatureSet | None = None
    snapped: DetectedFeatureSet | None = None
    floating: list[GeoPoint] = field(default_factory=list)
    retry_invoked: bool = False
    merged: DetectedFeatureSet | None = None
    aligned: DetectedFeatureSet | None = None
    alignment_attempts: int = 0
    alignment_score: float = 0.0
    final: DetectedFeatureSet | None = None

    # --- Pipeline metadata ---
    completed_stages: list[str] = field(default_factory=list)
    stage_ms: dict[str, float] = field(default_factory=dict)
