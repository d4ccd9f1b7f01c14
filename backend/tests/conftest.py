"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import replace

import pytest

from app.engine.config import FT_TO_DEG, PipelineConfig
from app.engine.context import (
    AlignmentAdjustment,
    DetectedFeatureSet,
    GeoPoint,
    Perimeter,
    RoofLine,
)
from app.engine.oracle import AlignmentVerification
from app.engine.pipeline import OverlayPipeline
from app.learning.corrections import CorrectionRecord
from app.sources.perimeter_source import UpstreamError


# Square footprint (~73 ft a side) around a building center in New Jersey

CENTER = GeoPoint(-75.0, 40.0)

SW = GeoPoint(-75.00013, 39.9999)
SE = GeoPoint(-74.99987, 39.9999)
NE = GeoPoint(-74.99987, 40.0001)
NW = GeoPoint(-75.00013, 40.0001)

RIDGE_W = GeoPoint(-75.00005, 40.0)
RIDGE_E = GeoPoint(-74.99995, 40.0)

SQUARE_WKT = "POLYGON((-75.00013 39.9999, -74.99987 39.9999, -74.99987 40.0001, -75.00013 40.0001, -75.00013 39.9999))"

HIP_ROOF_PAYLOAD = {
    "perimeterWkt": SQUARE_WKT,
    "aiAnalysis": {"roofType": "hip"},
}


def feet_south(point: GeoPoint, feet: float) -> GeoPoint:
    return GeoPoint(point.lng, point.lat - feet * FT_TO_DEG)


def square_perimeter() -> Perimeter:
    return Perimeter((SW, SE, NE, NW))


def hip_roof(confidence: float = 92.0, **line_kwargs) -> DetectedFeatureSet:
    """One ridge across the middle, four hips from its ends to the corners."""

    def line(a: GeoPoint, b: GeoPoint) -> RoofLine:
        return RoofLine(a, b, confidence=confidence, **line_kwargs)

    return DetectedFeatureSet(
        ridges=(line(RIDGE_W, RIDGE_E),),
        hips=(
            line(RIDGE_W, SW),
            line(RIDGE_W, NW),
            line(RIDGE_E, SE),
            line(RIDGE_E, NE),
        ),
    )


class FakeDetector:
    """Returns a preset detection, and a preset retry set when given floating endpoints."""

    def __init__(
        self,
        detection: DetectedFeatureSet | None = None,
        retry: DetectedFeatureSet | None = None,
        error: Exception | None = None,
    ) -> None:
        self.detection = detection or DetectedFeatureSet()
        self.retry = retry or DetectedFeatureSet()
        self.error = error
        self.calls: list[dict] = []

    async def detect(self, image_url, projector, perimeter, floating=None):
        self.calls.append({"image_url": image_url, "floating": list(floating) if floating else None})
        if self.error is not None:
            raise self.error
        return self.retry if floating else self.detection

    @property
    def retry_calls(self) -> int:
        return sum(1 for c in self.calls if c["floating"])


class FakeVerifier:
    """Scores every line with the next value from ``scores`` (the last one repeats)."""

    def __init__(
        self,
        scores: list[float] | None = None,
        adjustments: tuple[AlignmentAdjustment, ...] = (),
    ) -> None:
        self.scores = scores or [95.0]
        self.adjustments = adjustments
        self.seen: list[DetectedFeatureSet] = []

    @property
    def calls(self) -> int:
        return len(self.seen)

    async def verify(self, image_url, projector, perimeter, features):
        self.seen.append(features)
        score = self.scores[min(len(self.seen), len(self.scores)) - 1]
        verified = features.map_lines(lambda _r, _i, line: replace(line, confidence=score))
        return AlignmentVerification(features=verified, adjustments=self.adjustments)


class FakePerimeterSource:
    def __init__(self, payload: dict | None = None, error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else HIP_ROOF_PAYLOAD
        self.error = error
        self.requests: list[tuple] = []

    async def fetch(self, address, lat, lng):
        self.requests.append((address, lat, lng))
        if self.error is not None:
            raise self.error
        return self.payload


class InMemoryCorrectionStore:
    def __init__(self, records: list[CorrectionRecord] | None = None, error: Exception | None = None) -> None:
        self.records = list(records or [])
        self.error = error

    def recent(self, tenant_id: str, limit: int) -> list[CorrectionRecord]:
        if self.error is not None:
            raise self.error
        matching = [r for r in self.records if r.tenant_id == tenant_id]
        matching.sort(key=lambda r: r.created_at, reverse=True)
        return matching[:limit]

    def record(self, correction: CorrectionRecord) -> CorrectionRecord:
        if not correction.created_at:
            correction.created_at = float(len(self.records) + 1)
        self.records.append(correction)
        return correction


def make_pipeline(
    detector: FakeDetector | None = None,
    verifier: FakeVerifier | None = None,
    source: FakePerimeterSource | None = None,
    store: InMemoryCorrectionStore | None = None,
    config: PipelineConfig | None = None,
) -> OverlayPipeline:
    return OverlayPipeline(
        detector=detector or FakeDetector(hip_roof()),
        verifier=verifier or FakeVerifier(),
        perimeter_source=source or FakePerimeterSource(),
        correction_store=store,
        config=config or PipelineConfig(),
    )


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def perimeter() -> Perimeter:
    return square_perimeter()


@pytest.fixture
def features() -> DetectedFeatureSet:
    return hip_roof()


@pytest.fixture
def upstream_down() -> FakePerimeterSource:
    return FakePerimeterSource(error=UpstreamError("Roof analysis failed"))
