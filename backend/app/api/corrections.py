"""Correction endpoints: record reviewer shifts and inspect a tenant's learned bias."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.config import Settings
from app.dependencies import get_corrections_store, get_settings
from app.engine.corrections import compute_bias
from app.learning.corrections import CorrectionRecord, CorrectionStore
from app.models.requests import CorrectionRequest
from app.models.responses import BiasResponse, CorrectionResponse

router = APIRouter()


@router.post("/corrections", response_model=CorrectionResponse)
async def submit_correction(
    req: CorrectionRequest,
    store: CorrectionStore = Depends(get_corrections_store),
) -> CorrectionResponse:
    """Record how far a reviewer moved one line."""
    record = store.record(
        CorrectionRecord(
            tenant_id=req.tenant_id,
            line_type=req.line_type,
            shift_lng=req.shift_lng,
            shift_lat=req.shift_lat,
        )
    )
    return CorrectionResponse(
        status="ok",
        tenant_id=record.tenant_id,
        line_type=record.line_type,
        created_at=record.created_at,
    )


@router.get("/corrections/{tenant_id}/bias", response_model=BiasResponse)
async def get_bias(
    tenant_id: str,
    store: CorrectionStore = Depends(get_corrections_store),
    settings: Settings = Depends(get_settings),
) -> BiasResponse:
    """Bias the next overlay for this tenant would apply."""
    bias = compute_bias(store.recent(tenant_id, settings.correction_history_limit))
    return BiasResponse(
        tenant_id=tenant_id,
        shifts={role.value: shift for role, shift in bias.shifts.items()},
        sample_counts={role.value: n for role, n in bias.sample_counts.items()},
    )
