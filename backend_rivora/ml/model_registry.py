"""
Model registry: owns the two score regressors (risk, health) and their lifecycle.

States: empty -> loading -> loaded, or empty -> loading -> empty on failure.
The registry is never partially loaded: both regressors are trained first
and swapped in together.

ensure_loaded() collapses concurrent callers onto one asyncio task so a burst
of requests on a cold service triggers exactly one training run. Training
itself is CPU-bound and runs in a worker thread.

Network: 9 inputs -> 16 ReLU (He-normal) -> Dropout(0.1) -> 8 ReLU -> 1 linear.
Labels are trained on a 0-1 scale; predictions are scaled back to 0-100.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

import numpy as np
import torch
import torch.nn as nn
from sklearn.model_selection import train_test_split

from backend_rivora.core.exceptions import TrainingError
from backend_rivora.core.models import FeatureVector, TrainingSample
from backend_rivora.ml.feature_builder import MODEL_INPUT_SIZE, to_model_input, to_model_matrix
from backend_rivora.ml.training_data import TrainingSampleSource
from backend_rivora.rivora_logging import get_logger

logger = get_logger(__name__)

MIN_TRAINING_SAMPLES = 5
EPOCHS = 100
LEARNING_RATE = 0.01
MAX_BATCH_SIZE = 32
VALIDATION_SPLIT = 0.2
DROPOUT_RATE = 0.1
LABEL_SCALE = 100.0


class ModelState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class TrainingReport:
    n_samples: int
    n_train: int
    n_validation: int
    epochs: int
    risk_loss: float
    health_loss: float
    risk_val_loss: float | None
    health_val_loss: float | None
    trained_at: str

    def to_dict(self) -> dict:
        return {
            "samples": self.n_samples,
            "trainRows": self.n_train,
            "validationRows": self.n_validation,
            "epochs": self.epochs,
            "riskLoss": self.risk_loss,
            "healthLoss": self.health_loss,
            "riskValidationLoss": self.risk_val_loss,
            "healthValidationLoss": self.health_val_loss,
            "trainedAt": self.trained_at,
        }


class ScoreRegressor(nn.Module):
    """Small MLP producing one score on a 0-1 scale."""

    def __init__(self, input_dim: int = MODEL_INPUT_SIZE) -> None:
        super().__init__()
        self.fc1 = nn.Linear(input_dim, 16)
        self.dropout = nn.Dropout(DROPOUT_RATE)
        self.fc2 = nn.Linear(16, 8)
        self.out = nn.Linear(8, 1)
        nn.init.kaiming_normal_(self.fc1.weight, nonlinearity="relu")
        nn.init.zeros_(self.fc1.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = self.dropout(torch.relu(self.fc1(x)))
        x = torch.relu(self.fc2(x))
        return self.out(x)


class _Models(NamedTuple):
    risk: ScoreRegressor
    health: ScoreRegressor


def _fit_regressor(
    X_train: np.ndarray,
    y_train: np.ndarray,
    X_val: np.ndarray | None,
    y_val: np.ndarray | None,
    epochs: int,
    generator: torch.Generator | None,
    label: str,
) -> tuple[ScoreRegressor, float, float | None]:
    """Train one regressor. Returns (model in eval mode, final train loss, validation loss)."""
    model = ScoreRegressor()
    optimizer = torch.optim.Adam(model.parameters(), lr=LEARNING_RATE)
    criterion = nn.MSELoss()

    X_t = torch.from_numpy(X_train)
    y_t = torch.from_numpy(y_train).unsqueeze(1)
    n = len(X_t)
    batch_size = min(n, MAX_BATCH_SIZE)

    epoch_loss = float("nan")
    for _ in range(epochs):
        model.train()
        order = torch.randperm(n, generator=generator)
        total = 0.0
        for start in range(0, n, batch_size):
            idx = order[start:start + batch_size]
            optimizer.zero_grad()
            loss = criterion(model(X_t[idx]), y_t[idx])
            if not torch.isfinite(loss):
                raise TrainingError(f"Non-finite {label} loss during training", model=label)
            loss.backward()
            optimizer.step()
            total += loss.item() * len(idx)
        epoch_loss = total / n

    model.eval()
    val_loss = None
    if X_val is not None and y_val is not None and len(X_val):
        with torch.no_grad():
            pred = model(torch.from_numpy(X_val))
            val_loss = criterion(pred, torch.from_numpy(y_val).unsqueeze(1)).item()
    return model, epoch_loss, val_loss


class ModelRegistry:
    """
    Holds the trained regressors for one service instance.

    Not a module global: the API service creates one and passes it to the
    ScoreOrchestrator. predict() is safe to call from any thread.
    """

    def __init__(
        self,
        source: TrainingSampleSource | None = None,
        seed: int | None = None,
        epochs: int = EPOCHS,
        min_samples: int = MIN_TRAINING_SAMPLES,
    ) -> None:
        self._source = source
        self._seed = seed
        self._epochs = epochs
        self._min_samples = min_samples
        self._models: _Models | None = None
        self._state = ModelState.EMPTY
        self._task: asyncio.Task | None = None
        self._last_report: TrainingReport | None = None

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._models is not None

    @property
    def last_report(self) -> TrainingReport | None:
        return self._last_report

    async def ensure_loaded(self) -> bool:
        """
        Load models if needed. Concurrent callers share one in-flight task.
        Returns True when models are loaded. Never raises; failures leave the registry empty.
        """
        if self._models is not None:
            return True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._load())
        return await asyncio.shield(self._task)

    async def _load(self) -> bool:
        self._state = ModelState.LOADING
        try:
            if self._source is None:
                logger.info("model_registry_no_source")
                self._state = ModelState.EMPTY
                return False
            samples = await asyncio.to_thread(self._source.load)
            if len(samples) < self._min_samples:
                logger.warning(
                    "model_registry_insufficient_samples",
                    n_samples=len(samples),
                    required=self._min_samples,
                )
                self._state = ModelState.EMPTY
                return False
            await asyncio.to_thread(self.train, samples)
            return True
        except Exception as e:
            logger.warning("model_registry_load_failed", error=str(e), error_type=type(e).__name__)
            self._models = None
            self._state = ModelState.EMPTY
            return False
        finally:
            self._task = None

    def train(self, samples: list[TrainingSample]) -> TrainingReport:
        """Train both regressors and swap them in. Raises TrainingError."""
        if len(samples) < self._min_samples:
            raise TrainingError(
                f"Not enough training data ({len(samples)} samples). Need at least {self._min_samples}.",
                n_samples=len(samples),
            )
        self._state = ModelState.LOADING

        X = to_model_matrix(s.features for s in samples)
        y = np.array(
            [[s.risk_score / LABEL_SCALE, s.health_score / LABEL_SCALE] for s in samples],
            dtype=np.float32,
        )
        if not np.all(np.isfinite(y)):
            self._state = ModelState.LOADED if self._models is not None else ModelState.EMPTY
            raise TrainingError("Training labels must be finite numbers")

        n_holdout = int(round(len(samples) * VALIDATION_SPLIT))
        if len(samples) - n_holdout >= self._min_samples and n_holdout > 0:
            X_train, X_val, y_train, y_val = train_test_split(
                X, y, test_size=n_holdout, random_state=self._seed
            )
        else:
            X_train, X_val, y_train, y_val = X, None, y, None

        generator = None
        if self._seed is not None:
            torch.manual_seed(self._seed)
            generator = torch.Generator().manual_seed(self._seed)

        logger.info("model_training_start", n_samples=len(samples), n_train=len(X_train), epochs=self._epochs)
        try:
            risk_model, risk_loss, risk_val = _fit_regressor(
                X_train, np.ascontiguousarray(y_train[:, 0]),
                X_val, None if y_val is None else np.ascontiguousarray(y_val[:, 0]),
                self._epochs, generator, "risk",
            )
            health_model, health_loss, health_val = _fit_regressor(
                X_train, np.ascontiguousarray(y_train[:, 1]),
                X_val, None if y_val is None else np.ascontiguousarray(y_val[:, 1]),
                self._epochs, generator, "health",
            )
        except TrainingError:
            self._state = ModelState.LOADED if self._models is not None else ModelState.EMPTY
            raise

        self._models = _Models(risk=risk_model, health=health_model)
        self._state = ModelState.LOADED
        report = TrainingReport(
            n_samples=len(samples),
            n_train=len(X_train),
            n_validation=0 if X_val is None else len(X_val),
            epochs=self._epochs,
            risk_loss=risk_loss,
            health_loss=health_loss,
            risk_val_loss=risk_val,
            health_val_loss=health_val,
            trained_at=datetime.now(timezone.utc).isoformat(),
        )
        self._last_report = report
        logger.info(
            "model_training_done",
            n_samples=report.n_samples,
            risk_loss=round(risk_loss, 6),
            health_loss=round(health_loss, 6),
        )
        return report

    def predict(self, features: FeatureVector) -> tuple[float, float] | None:
        """(risk, health) in [0, 100], or None when not loaded or prediction fails."""
        models = self._models
        if models is None:
            return None
        try:
            x = torch.from_numpy(to_model_input(features)).unsqueeze(0)
            with torch.no_grad():
                risk = float(models.risk(x).item()) * LABEL_SCALE
                health = float(models.health(x).item()) * LABEL_SCALE
        except Exception as e:
            logger.warning("model_predict_failed", error=str(e), error_type=type(e).__name__)
            return None
        if not (math.isfinite(risk) and math.isfinite(health)):
            logger.warning("model_predict_non_finite")
            return None
        return max(0.0, min(100.0, risk)), max(0.0, min(100.0, health))

    def reset(self) -> None:
        """Discard both models."""
        self._models = None
        self._state = ModelState.EMPTY
        logger.info("model_registry_reset")
