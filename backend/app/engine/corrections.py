"""Correction learner: shift fresh detections by the tenant's historical bias.

Bias is the plain arithmetic mean of the most recent (Δlng, Δlat) corrections
per line role. Computed per request, never cached.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from app.engine.context import CorrectionBias, DetectedFeatureSet, LineRole, LineSource
from app.learning.corrections import CorrectionRecord, CorrectionStore

logger = logging.getLogger(__name__)


def compute_bias(records: Iterable[CorrectionRecord]) -> CorrectionBias:
    sums: dict[LineRole, list[float]] = {}
    counts: dict[LineRole, int] = {}
    for rec in records:
        try:
            role = LineRole(rec.line_type)
        except ValueError:
            continue
        acc = sums.setdefault(role, [0.0, 0.0])
        acc[0] += rec.shift_lng
        acc[1] += rec.shift_lat
        counts[role] = counts.get(role, 0) + 1

    shifts = {role: (acc[0] / counts[role], acc[1] / counts[role]) for role, acc in sums.items()}
    return CorrectionBias(shifts=shifts, sample_counts=counts)


def load_bias(store: CorrectionStore | None, tenant_id: str | None, limit: int) -> CorrectionBias:
    """Bias for a tenant; zero bias when there is no tenant or the store fails."""
    if not tenant_id or store is None:
        return CorrectionBias()
    try:
        records = store.recent(tenant_id, limit)
    except Exception as e:
        logger.warning("Failed to load learned corrections for tenant %s: %s", tenant_id, e)
        return CorrectionBias()
    return compute_bias(records)


def apply_bias(features: DetectedFeatureSet, bias: CorrectionBias) -> DetectedFeatureSet:
    if bias.is_zero:
        return features

    def _shift(role: LineRole, _i: int, line):
        shift = bias.for_role(role)
        if shift is None:
            return line
        return replace(line.shifted(*shift), source=LineSource.ORACLE_CORRECTED)

    logger.debug("Applying correction bias: %s", {r.value: s for r, s in bias.shifts.items()})
    return features.map_lines(_shift)
