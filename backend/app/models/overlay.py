"""Roof overlay output model: the JSON document returned to the CRM."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.engine.context import OverlayResult, RoofLine


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoofLineOut(_CamelModel):
    start: tuple[float, float]  # [lng, lat]
    end: tuple[float, float]
    confidence: float
    requires_review: bool
    source: str
    snapped_to_target: bool
    visual_evidence: str | None = None

    @classmethod
    def from_line(cls, line: RoofLine) -> RoofLineOut:
        return cls(
            start=(line.start.lng, line.start.lat),
            end=(line.end.lng, line.end.lat),
            confidence=round(line.confidence, 1),
            requires_review=line.requires_review,
            source=line.source.value,
            snapped_to_target=line.snapped,
            visual_evidence=line.evidence_note,
        )


class OverlayMetadataOut(_CamelModel):
    roof_type: str
    quality_score: int = Field(..., ge=0, le=100)
    data_sources_priority: list[str] = Field(default_factory=list)
    requires_manual_review: bool
    total_area_sqft: float | None = None
    processed_at: datetime
    alignment_attempts: int


class OverlayData(_CamelModel):
    perimeter: list[tuple[float, float]]
    ridges: list[RoofLineOut] = Field(default_factory=list)
    hips: list[RoofLineOut] = Field(default_factory=list)
    valleys: list[RoofLineOut] = Field(default_factory=list)
    metadata: OverlayMetadataOut

    @classmethod
    def from_result(cls, result: OverlayResult) -> OverlayData:
        meta = result.metadata
        return cls(
            perimeter=[(v.lng, v.lat) for v in result.perimeter],
            ridges=[RoofLineOut.from_line(l) for l in result.ridges],
            hips=[RoofLineOut.from_line(l) for l in result.hips],
            valleys=[RoofLineOut.from_line(l) for l in result.valleys],
            metadata=OverlayMetadataOut(
                roof_type=meta.roof_type,
                quality_score=meta.quality_score,
                data_sources_priority=list(meta.data_sources_priority),
                requires_manual_review=meta.requires_manual_review,
                total_area_sqft=meta.total_area_sqft,
                processed_at=meta.processed_at,
                alignment_attempts=meta.alignment_attempts,
            ),
        )
