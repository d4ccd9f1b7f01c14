"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RoofOverlayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional here so a missing coordinate is reported as a 400, not a 422
    lat: float | None = Field(None, description="Building center latitude")
    lng: float | None = Field(None, description="Building center longitude")
    address: str | None = Field(None, description="Street address passed to the perimeter source")
    image_url: str | None = Field(None, alias="imageUrl", description="Satellite image to analyze")
    tenant_id: str | None = Field(None, alias="tenantId", description="Tenant whose corrections apply")


class CorrectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., alias="tenantId")
    line_type: Literal["ridge", "hip", "valley"] = Field(..., alias="lineType")
    shift_lng: float = Field(0.0, alias="shiftLng", description="Δ longitude applied by the reviewer")
    shift_lat: float = Field(0.0, alias="shiftLat", description="Δ latitude applied by the reviewer")
