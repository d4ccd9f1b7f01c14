"""Correction store: JSONL log of human corrections to overlay lines.

Each record says how far a reviewer moved a ridge, hip or valley
(Δlng, Δlat degrees). The overlay pipeline only reads the most recent records
for a tenant; the corrections API appends new ones.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class CorrectionRecord:
    """One human correction of one line."""

    tenant_id: str
    line_type: str  # ridge, hip, valley
    shift_lng: float = 0.0
    shift_lat: float = 0.0
    created_at: float = 0.0


class CorrectionStore(Protocol):
    def recent(self, tenant_id: str, limit: int) -> list[CorrectionRecord]: ...

    def record(self, correction: CorrectionRecord) -> CorrectionRecord: ...


class JsonlCorrectionStore:
    """Append-only JSONL correction log."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.corrections_file = self.data_dir / "corrections.jsonl"

    def record(self, correction: CorrectionRecord) -> CorrectionRecord:
        if not correction.created_at:
            correction.created_at = time.time()
        with open(self.corrections_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(correction), ensure_ascii=False) + "\n")
        logger.info("Recorded %s correction for tenant %s", correction.line_type, correction.tenant_id)
        return correction

    def recent(self, tenant_id: str, limit: int) -> list[CorrectionRecord]:
        """Newest ``limit`` records for a tenant, newest first."""
        records = [r for r in self._load() if r.tenant_id == tenant_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def _load(self) -> list[CorrectionRecord]:
        if not self.corrections_file.exists():
            return []
        records = []
        with open(self.corrections_file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    records.append(CorrectionRecord(**json.loads(line)))
        return records


# Singleton
_store: JsonlCorrectionStore | None = None


def get_correction_store() -> JsonlCorrectionStore:
    """Get or create the global correction store."""
    global _store
    if _store is None:
        from app.config import settings

        _store = JsonlCorrectionStore(Path(settings.corrections_data_dir))
    return _store
