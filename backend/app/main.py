"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import APP_VERSION, settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.roofline_log_level.upper(), logging.DEBUG),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Roofline",
        description="Roof-line topology reconstruction from satellite imagery and building footprints",
        version=APP_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from app.api.overlay import overlay_validation_handler
    from app.api.router import api_router

    app.include_router(api_router)
    app.add_exception_handler(RequestValidationError, overlay_validation_handler)

    logger.info("Roofline %s ready (env=%s)", APP_VERSION, settings.roofline_env)
    return app


app = create_app()
