"""POST /api/roof-overlay: reconstruct ridge, hip and valley lines for one building."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import Settings
from app.dependencies import get_overlay_pipeline, get_settings
from app.engine.context import GeoPoint, OverlayContext
from app.engine.perimeter import PerimeterError
from app.engine.pipeline import OverlayPipeline
from app.engine.projection import ProjectionError
from app.models.overlay import OverlayData
from app.models.requests import RoofOverlayRequest
from app.models.responses import ErrorResponse, RoofOverlayResponse
from app.sources.perimeter_source import UpstreamError, satellite_image_url

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def overlay_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed overlay bodies get the failure envelope; other routes keep FastAPI's 422."""
    if not request.url.path.endswith("/roof-overlay"):
        return await request_validation_exception_handler(request, exc)
    fields = {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
    if fields & {"lat", "lng"}:
        message = "Invalid coordinates (lat, lng)"
    else:
        message = "Invalid roof overlay request"
    logger.warning("%s: %s", message, exc.errors())
    return _error(400, message)


@router.post(
    "/roof-overlay",
    response_model=RoofOverlayResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def roof_overlay(
    req: RoofOverlayRequest,
    pipeline: OverlayPipeline = Depends(get_overlay_pipeline),
    settings: Settings = Depends(get_settings),
):
    """Run the overlay pipeline and return geo-referenced roof lines."""
    if req.lat is None or req.lng is None:
        return _error(400, "Missing required coordinates (lat, lng)")

    start = time.perf_counter()
    image_url = req.image_url or satellite_image_url(
        req.lat, req.lng, settings.image_zoom, settings.image_size, settings.mapbox_token
    )
    ctx = OverlayContext(
        center=GeoPoint(lng=req.lng, lat=req.lat),
        image_url=image_url,
        address=req.address,
        tenant_id=req.tenant_id,
    )
    logger.info("Roof overlay requested at %.6f, %.6f (tenant=%s)", req.lat, req.lng, req.tenant_id)

    try:
        result = await pipeline.run(ctx)
    except (UpstreamError, PerimeterError, ProjectionError) as e:
        logger.error("Roof overlay failed: %s", e)
        return _error(500, str(e))
    except Exception as e:
        logger.exception("Roof overlay crashed")
        return _error(500, str(e) or "Roof overlay failed")

    elapsed = (time.perf_counter() - start) * 1000
    return RoofOverlayResponse(
        success=True,
        data=OverlayData.from_result(result),
        processing_time_ms=round(elapsed),
    )
