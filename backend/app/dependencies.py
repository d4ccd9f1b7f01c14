"""FastAPI dependency injection."""

from __future__ import annotations

from app.config import settings
from app.engine.pipeline import OverlayPipeline, create_pipeline
from app.learning.corrections import CorrectionStore, get_correction_store


def get_settings():
    return settings


def get_overlay_pipeline() -> OverlayPipeline:
    return create_pipeline()


def get_corrections_store() -> CorrectionStore:
    return get_correction_store()
