"""
Training sample sources for the score regressors.

training-data.json is a list of
    {"features": {"accountAgeDays": ..., ...}, "riskScore": 62.5, "healthScore": 48.0}
Malformed entries are skipped and counted; a missing file yields no samples.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from backend_rivora.core.models import TrainingSample
from backend_rivora.rivora_logging import get_logger

logger = get_logger(__name__)


class TrainingSampleSource(Protocol):
    def load(self) -> list[TrainingSample]: ...


class JsonTrainingSampleSource:
    """Reads TrainingSample records from a JSON file on every load()."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[TrainingSample]:
        if not self.path.is_file():
            logger.warning("training_data_missing", path=str(self.path))
            return []
        with open(self.path, encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise ValueError(f"Training data must be a JSON list: {self.path}")

        samples: list[TrainingSample] = []
        skipped = 0
        for item in raw:
            try:
                samples.append(TrainingSample.from_dict(item))
            except (ValueError, TypeError, KeyError):
                skipped += 1
        if skipped:
            logger.warning("training_data_rows_skipped", path=str(self.path), skipped=skipped)
        logger.info("training_data_loaded", path=str(self.path), n_samples=len(samples))
        return samples


class StaticTrainingSampleSource:
    """In-memory source; used by tests and by callers that already hold samples."""

    def __init__(self, samples: list[TrainingSample]) -> None:
        self._samples = list(samples)

    def load(self) -> list[TrainingSample]:
        return list(self._samples)
