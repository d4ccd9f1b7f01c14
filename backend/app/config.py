"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

APP_VERSION = "0.1.0"


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    roofline_env: str = "development"
    roofline_log_level: str = "debug"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Model routing
    model_cheap: str = "claude-haiku-4-5-20251001"
    model_mid: str = "claude-sonnet-4-5-20250929"
    model_frontier: str = "claude-sonnet-4-5-20250929"

    # Upstream collaborators
    perimeter_source_url: str = "http://localhost:54321/functions/v1/analyze-roof-aerial"
    perimeter_source_timeout_s: float = 60.0
    perimeter_source_api_key: str = ""
    mapbox_token: str = ""

    # Correction store (JSONL)
    corrections_data_dir: str = "data/corrections"

    # Overlay engine
    image_zoom: int = 20
    image_size: int = 640
    snap_tolerance_ft: float = 3.0
    validation_tolerance_factor: float = 1.5
    merge_tolerance_factor: float = 2.0
    min_alignment_score: float = 90.0
    max_alignment_attempts: int = 3
    correction_history_limit: int = 50

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
