"""Task → model selection. Frontier model for detection, cheap model for retries and verification."""

from __future__ import annotations

from app.config import settings

_TASK_MODEL_MAP = {
    "detect": "frontier",
    "retry": "cheap",
    "verify": "cheap",
}


def get_model_for_task(task: str) -> str:
    tier = _TASK_MODEL_MAP.get(task, "cheap")
    if tier == "cheap":
        return settings.model_cheap
    elif tier == "mid":
        return settings.model_mid
    else:
        return settings.model_frontier
