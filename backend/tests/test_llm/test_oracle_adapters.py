"""Tests for the LLM-backed detector and verifier (no network)."""

from __future__ import annotations

import asyncio
import json

import pytest

from app.config import settings
from app.engine.context import DetectedFeatureSet, LineSource
from app.engine.projection import CoordinateProjector
from app.llm.client import get_vision_response
from app.llm.model_router import get_model_for_task
from app.llm.oracle import OracleAlignmentVerifier, OracleFeatureDetector
from app.llm.prompts import build_detect_prompt, build_retry_prompt, build_verify_prompt, get_prompt_template
from tests.conftest import CENTER, SW, feet_south, hip_roof, square_perimeter

DETECTION = json.dumps({
    "ridges": [{"startX": 40, "startY": 50, "endX": 60, "endY": 50, "confidence": 90}],
    "hips": [{"startX": 40, "startY": 50, "endX": 30, "endY": 65}],
    "valleys": [],
})


class FakeAsk:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, task: str, prompt: str, image_url: str) -> str:
        self.calls.append((task, prompt, image_url))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def projector() -> CoordinateProjector:
    return CoordinateProjector(CENTER)


def test_detect(projector):
    ask = FakeAsk(DETECTION)
    features = asyncio.run(OracleFeatureDetector(ask=ask).detect("img", projector, square_perimeter()))

    task, prompt, image_url = ask.calls[0]
    assert task == "detect"
    assert image_url == "img"
    assert "corner_3" in prompt
    assert len(features.ridges) == 1 and len(features.hips) == 1
    assert features.hips[0].confidence == 80.0
    assert features.hips[0].source is LineSource.ORACLE


def test_retry_prompt_lists_floating_endpoints(projector):
    ask = FakeAsk(DETECTION)
    floating = [feet_south(SW, 15)]
    features = asyncio.run(
        OracleFeatureDetector(ask=ask).detect("img", projector, square_perimeter(), floating=floating)
    )

    task, prompt, _ = ask.calls[0]
    assert task == "retry"
    assert "1 floating endpoint" in prompt
    assert all(l.source is LineSource.ORACLE_RETRY for l in features.all_lines())
    assert all(l.requires_review for l in features.all_lines())
    assert features.hips[0].confidence == 75.0


def test_detect_failure_degrades_to_empty(projector):
    ask = FakeAsk(error=TimeoutError("oracle timed out"))
    features = asyncio.run(OracleFeatureDetector(ask=ask).detect("img", projector, square_perimeter()))
    assert features.is_empty


def test_verify(projector):
    reply = json.dumps({"hips": [{"index": 3, "alignmentScore": 55, "aligned": False, "shiftDirection": "shift_down", "shiftFt": 1.5}]})
    ask = FakeAsk(reply)
    result = asyncio.run(OracleAlignmentVerifier(ask=ask).verify("img", projector, square_perimeter(), hip_roof()))

    task, prompt, _ = ask.calls[0]
    assert task == "verify"
    assert "ridges[0]" in prompt and "hips[3]" in prompt
    assert result.features.hips[3].confidence == 55.0
    assert len(result.adjustments) == 1


def test_verify_skips_oracle_for_empty_set(projector):
    ask = FakeAsk("{}")
    result = asyncio.run(OracleAlignmentVerifier(ask=ask).verify("img", projector, square_perimeter(), DetectedFeatureSet()))
    assert ask.calls == []
    assert result.features.is_empty


def test_verify_failure_keeps_features(projector):
    features = hip_roof()
    ask = FakeAsk(error=RuntimeError("rate limited"))
    result = asyncio.run(OracleAlignmentVerifier(ask=ask).verify("img", projector, square_perimeter(), features))
    assert result.features is features
    assert result.adjustments == ()


def test_client_without_api_key(monkeypatch):
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    assert asyncio.run(get_vision_response("detect", "prompt", "img")) == ""


def test_model_routing():
    assert get_model_for_task("detect") == settings.model_frontier
    assert get_model_for_task("retry") == settings.model_cheap
    assert get_model_for_task("verify") == settings.model_cheap
    assert get_model_for_task("unknown") == settings.model_cheap


def test_prompts_render():
    detect = build_detect_prompt([(10.0, 10.0), (90.0, 10.0), (90.0, 90.0)])
    assert "corner_2: (90.0, 90.0)" in detect
    assert '"ridges"' in detect

    retry = build_retry_prompt([(12.0, 88.0)], [(10.0, 10.0)])
    assert "(12.0, 88.0)" in retry

    assert "(none)" in build_verify_prompt({})
    assert "hips[0]: (1.0, 2.0) -> (3.0, 4.0)" in build_verify_prompt({"hips": [((1.0, 2.0), (3.0, 4.0))]})

    for task in ("detect", "retry", "verify"):
        system, template = get_prompt_template(task)
        assert "JSON" in system or "connect" in system
        assert template
