"""Oracle response models: what the vision model is asked to return."""

from __future__ import annotations

import math

from pydantic import BaseModel, field_validator


class CandidateLine(BaseModel):
    """One detected line in image-percentage coordinates."""

    startX: float
    startY: float
    endX: float
    endY: float
    confidence: float | None = None
    description: str | None = None
    snapStartTo: str | None = None
    snapEndTo: str | None = None

    @field_validator("startX", "startY", "endX", "endY")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("coordinate must be finite")
        return v


class LineVerification(BaseModel):
    """Alignment verdict for one line."""

    index: int
    alignmentScore: float
    aligned: bool = True
    offsetFt: float | None = None
    shiftDirection: str | None = None
    shiftFt: float | None = None
