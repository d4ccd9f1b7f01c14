"""Roof-line topology reconstruction engine."""

from app.engine.context import (
    DetectedFeatureSet,
    GeoPoint,
    LineRole,
    LineSource,
    OverlayContext,
    OverlayResult,
    Perimeter,
    RoofLine,
)
from app.engine.pipeline import OverlayPipeline, create_pipeline

__all__ = [
    "DetectedFeatureSet",
    "GeoPoint",
    "LineRole",
    "LineSource",
    "OverlayContext",
    "OverlayResult",
    "Perimeter",
    "RoofLine",
    "OverlayPipeline",
    "create_pipeline",
]
