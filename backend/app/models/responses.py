"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.models.overlay import OverlayData


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class RoofOverlayResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: OverlayData
    processing_time_ms: int = Field(0, alias="processingTimeMs")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class CorrectionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    tenant_id: str = Field(..., alias="tenantId")
    line_type: str = Field(..., alias="lineType")
    created_at: float = Field(0.0, alias="createdAt")


class BiasResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., alias="tenantId")
    # role → [Δlng, Δlat]
    shifts: dict[str, tuple[float, float]] = Field(default_factory=dict)
    sample_counts: dict[str, int] = Field(default_factory=dict, alias="sampleCounts")
