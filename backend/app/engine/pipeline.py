"""Overlay pipeline orchestrator: runs the roof-line stages in fixed order.

perimeter → detect → learned corrections → snap → validate → [retry] →
align (bounded loop) → final review pass → score

Stages are strictly sequential: every oracle prompt depends on the previous
stage's output. Each stage's output is kept on the OverlayContext.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from app.engine.alignment import refine_alignment
from app.engine.config import PipelineConfig
from app.engine.connectivity import confirm_snapped, flag_floating_lines, validate_connectivity
from app.engine.context import OverlayContext, OverlayMetadata, OverlayResult
from app.engine.corrections import apply_bias, load_bias
from app.engine.oracle import AlignmentVerifier, FeatureDetector
from app.engine.perimeter import footprint_metrics, resolve_perimeter, roof_type_from, total_area_from
from app.engine.projection import CoordinateProjector
from app.engine.retry import retry_with_feedback
from app.engine.scoring import finalize_review_flags, quality_score, requires_manual_review
from app.engine.snapping import snap_features
from app.learning.corrections import CorrectionStore
from app.sources.perimeter_source import PerimeterSource

logger = logging.getLogger(__name__)


class OverlayPipeline:
    """Orchestrates one roof-overlay request."""

    def __init__(
        self,
        detector: FeatureDetector,
        verifier: AlignmentVerifier,
        perimeter_source: PerimeterSource,
        correction_store: CorrectionStore | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self.detector = detector
        self.verifier = verifier
        self.perimeter_source = perimeter_source
        self.correction_store = correction_store
        self.config = config or PipelineConfig()

    @contextmanager
    def _stage(self, ctx: OverlayContext, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        yield
        elapsed = (time.perf_counter() - t0) * 1000
        ctx.stage_ms[name] = round(elapsed, 1)
        ctx.completed_stages.append(name)
        logger.info("  %s completed in %.1fms", name, elapsed)

    async def run(self, ctx: OverlayContext) -> OverlayResult:
        """Run every stage. Upstream and perimeter failures propagate."""
        start = time.perf_counter()
        cfg = self.config

        with self._stage(ctx, "perimeter"):
            data = await self.perimeter_source.fetch(ctx.address, ctx.center.lat, ctx.center.lng)
            perimeter = resolve_perimeter(data)
            ctx.perimeter = perimeter
            ctx.roof_type = roof_type_from(data)
            ctx.total_area_sqft = total_area_from(data, perimeter)
            for warning in footprint_metrics(perimeter).warnings:
                logger.warning("Footprint check: %s", warning)
        logger.info("Perimeter: %d vertices, roof type %s", len(perimeter), ctx.roof_type)

        projector = CoordinateProjector(ctx.center, cfg.image_zoom, cfg.image_size)

        with self._stage(ctx, "detect"):
            ctx.detected = await self.detector.detect(ctx.image_url, projector, perimeter)
        logger.info("Detected: %s", ctx.detected.counts())

        with self._stage(ctx, "corrections"):
            ctx.bias = load_bias(self.correction_store, ctx.tenant_id, cfg.correction_history_limit)
            ctx.corrected = apply_bias(ctx.detected, ctx.bias)

        with self._stage(ctx, "snap"):
            ctx.snapped = snap_features(ctx.corrected, perimeter, cfg.snap_tolerance_deg)

        with self._stage(ctx, "validate"):
            ctx.floating = validate_connectivity(ctx.snapped, perimeter, cfg.validation_tolerance_deg)

        if ctx.floating:
            logger.warning("%d floating endpoint(s) detected - attempting retry", len(ctx.floating))
            with self._stage(ctx, "retry"):
                ctx.retry_invoked = True
                ctx.merged = await retry_with_feedback(
                    self.detector, ctx.image_url, projector, perimeter,
                    ctx.snapped, ctx.floating, cfg,
                )
        else:
            ctx.merged = ctx.snapped

        with self._stage(ctx, "align"):
            outcome = await refine_alignment(
                self.verifier, ctx.image_url, projector, perimeter, ctx.merged, cfg
            )
            ctx.aligned = outcome.features
            ctx.alignment_attempts = outcome.attempts
            ctx.alignment_score = outcome.score

        with self._stage(ctx, "finalize"):
            confirmed = confirm_snapped(ctx.aligned, perimeter, cfg.validation_tolerance_deg)
            checked = flag_floating_lines(confirmed, perimeter, cfg.validation_tolerance_deg)
            ctx.final = finalize_review_flags(checked, cfg)
            score = quality_score(ctx.final)
            review = requires_manual_review(ctx.final, cfg.manual_review_mean_below)

        result = OverlayResult(
            perimeter=perimeter,
            ridges=ctx.final.ridges,
            hips=ctx.final.hips,
            valleys=ctx.final.valleys,
            metadata=OverlayMetadata(
                roof_type=ctx.roof_type,
                quality_score=score,
                requires_manual_review=review,
                alignment_attempts=outcome.attempts,
                processed_at=datetime.now(timezone.utc),
                total_area_sqft=ctx.total_area_sqft,
            ),
        )

        total = (time.perf_counter() - start) * 1000
        logger.info(
            "Roof overlay complete in %.0fms (%d alignment attempts, %s, score %d, review=%s)",
            total,
            outcome.attempts,
            outcome.state.value,
            score,
            review,
        )
        return result


def create_pipeline(config: PipelineConfig | None = None) -> OverlayPipeline:
    """Factory wiring the production oracle, upstream source and correction store."""
    from app.config import settings
    from app.learning.corrections import get_correction_store
    from app.llm.oracle import OracleAlignmentVerifier, OracleFeatureDetector
    from app.sources.perimeter_source import HttpPerimeterSource

    config = config or PipelineConfig.from_settings(settings)
    return OverlayPipeline(
        detector=OracleFeatureDetector(config),
        verifier=OracleAlignmentVerifier(config),
        perimeter_source=HttpPerimeterSource(
            settings.perimeter_source_url,
            timeout_s=settings.perimeter_source_timeout_s,
            api_key=settings.perimeter_source_api_key,
        ),
        correction_store=get_correction_store(),
        config=config,
    )
