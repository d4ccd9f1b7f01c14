"""Oracle interfaces: the engine's only view of the vision model.

The snapping, validation and scoring logic never talks to a network; it is
handed a FeatureDetector and an AlignmentVerifier. Production implementations
live in app.llm.oracle, tests use deterministic fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from app.engine.context import AlignmentAdjustment, DetectedFeatureSet, GeoPoint, Perimeter
from app.engine.projection import CoordinateProjector


@dataclass(frozen=True)
class AlignmentVerification:
    """Features with oracle alignment scores applied, plus suggested shifts."""

    features: DetectedFeatureSet
    adjustments: tuple[AlignmentAdjustment, ...] = ()


class FeatureDetector(Protocol):
    async def detect(
        self,
        image_url: str,
        projector: CoordinateProjector,
        perimeter: Perimeter,
        floating: Sequence[GeoPoint] | None = None,
    ) -> DetectedFeatureSet:
        """Detect ridges/hips/valleys. ``floating`` turns the call into a retry."""
        ...


class AlignmentVerifier(Protocol):
    async def verify(
        self,
        image_url: str,
        projector: CoordinateProjector,
        perimeter: Perimeter,
        features: DetectedFeatureSet,
    ) -> AlignmentVerification: ...
