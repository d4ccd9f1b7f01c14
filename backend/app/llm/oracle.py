"""Vision-oracle adapters: FeatureDetector and AlignmentVerifier backed by the LLM.

Transport and parse failures never escape: detection degrades to an empty
feature set, verification to "no new information".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from app.engine.config import PipelineConfig
from app.engine.context import DetectedFeatureSet, GeoPoint, LineSource, Perimeter
from app.engine.oracle import AlignmentVerification
from app.engine.projection import CoordinateProjector
from app.llm.client import get_vision_response
from app.llm.parsing import parse_feature_response, parse_verification_response
from app.llm.prompts import build_detect_prompt, build_retry_prompt, build_verify_prompt

logger = logging.getLogger(__name__)

# (task, prompt, image_url) -> response text
AskFn = Callable[[str, str, str], Awaitable[str]]


class OracleFeatureDetector:
    def __init__(self, config: PipelineConfig | None = None, ask: AskFn | None = None) -> None:
        self.config = config or PipelineConfig()
        self.ask = ask or get_vision_response

    async def detect(
        self,
        image_url: str,
        projector: CoordinateProjector,
        perimeter: Perimeter,
        floating: Sequence[GeoPoint] | None = None,
    ) -> DetectedFeatureSet:
        corners = [projector.to_pct(v) for v in perimeter]
        if floating:
            task = "retry"
            prompt = build_retry_prompt([projector.to_pct(p) for p in floating], corners)
        else:
            task = "detect"
            prompt = build_detect_prompt(corners)

        try:
            text = await self.ask(task, prompt, image_url)
        except Exception as e:
            logger.warning("Oracle %s call failed: %s", task, e)
            return DetectedFeatureSet()

        if floating:
            return parse_feature_response(
                text,
                projector,
                source=LineSource.ORACLE_RETRY,
                default_confidence=self.config.retry_default_confidence,
                review_below=self.config.detection_review_below,
                always_review=True,
            )
        return parse_feature_response(
            text,
            projector,
            source=LineSource.ORACLE,
            default_confidence=self.config.detection_default_confidence,
            review_below=self.config.detection_review_below,
        )


class OracleAlignmentVerifier:
    def __init__(self, config: PipelineConfig | None = None, ask: AskFn | None = None) -> None:
        self.config = config or PipelineConfig()
        self.ask = ask or get_vision_response

    async def verify(
        self,
        image_url: str,
        projector: CoordinateProjector,
        perimeter: Perimeter,
        features: DetectedFeatureSet,
    ) -> AlignmentVerification:
        if features.is_empty:
            return AlignmentVerification(features=features)

        listing = {
            "ridges": [(projector.to_pct(l.start), projector.to_pct(l.end)) for l in features.ridges],
            "hips": [(projector.to_pct(l.start), projector.to_pct(l.end)) for l in features.hips],
            "valleys": [(projector.to_pct(l.start), projector.to_pct(l.end)) for l in features.valleys],
        }
        try:
            text = await self.ask("verify", build_verify_prompt(listing), image_url)
        except Exception as e:
            logger.warning("Alignment verification failed, keeping unverified features: %s", e)
            return AlignmentVerification(features=features)

        return parse_verification_response(
            text, features, review_below=self.config.verification_review_below
        )
