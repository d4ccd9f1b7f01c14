"""Pipeline configuration: every numeric knob of the overlay engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.config import Settings

# Approximate feet → degrees at US latitudes (1° ≈ 364,000 ft)
FEET_PER_DEGREE = 364000.0
FT_TO_DEG = 1.0 / FEET_PER_DEGREE


@dataclass
class PipelineConfig:
    """Controls tolerances, oracle framing and the refinement loop."""

    # Static image framing
    image_zoom: int = 20
    image_size: int = 640  # square, pixels

    # Tolerances (feet). Snap, validation and merge are independent.
    snap_tolerance_ft: float = 3.0
    validation_tolerance_factor: float = 1.5
    merge_tolerance_factor: float = 2.0

    # Review thresholds (confidence 0-100)
    detection_review_below: float = 75.0
    verification_review_below: float = 75.0
    final_review_below: float = 80.0
    manual_review_mean_below: float = 70.0

    # Oracle defaults when a line carries no confidence
    detection_default_confidence: float = 80.0
    retry_default_confidence: float = 75.0

    # Alignment refinement loop
    min_alignment_score: float = 90.0
    max_alignment_attempts: int = 3

    # Correction learner
    correction_history_limit: int = 50

    @property
    def snap_tolerance_deg(self) -> float:
        return self.snap_tolerance_ft * FT_TO_DEG

    @property
    def validation_tolerance_deg(self) -> float:
        return self.snap_tolerance_deg * self.validation_tolerance_factor

    @property
    def merge_tolerance_deg(self) -> float:
        return self.snap_tolerance_deg * self.merge_tolerance_factor

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PipelineConfig":
        return cls(
            image_zoom=settings.image_zoom,
            image_size=settings.image_size,
            snap_tolerance_ft=settings.snap_tolerance_ft,
            validation_tolerance_factor=settings.validation_tolerance_factor,
            merge_tolerance_factor=settings.merge_tolerance_factor,
            min_alignment_score=settings.min_alignment_score,
            max_alignment_attempts=settings.max_alignment_attempts,
            correction_history_limit=settings.correction_history_limit,
        )
