"""
Tests for the ModelRegistry lifecycle, training and prediction.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import numpy as np
import pytest

from backend_rivora.core.exceptions import TrainingError
from backend_rivora.core.models import FeatureVector, TrainingSample
from backend_rivora.ml.feature_builder import MODEL_INPUT_SIZE, to_model_input
from backend_rivora.ml.model_registry import ModelRegistry, ModelState
from backend_rivora.ml.training_data import JsonTrainingSampleSource, StaticTrainingSampleSource

FEATURES = FeatureVector(
    account_age_days=400,
    total_transactions=120,
    transaction_frequency=15,
    path_payment_ratio=0.2,
    asset_count=3,
    portfolio_concentration=0.4,
    trusted_asset_ratio=0.75,
    success_rate=1.0,
)


class CountingSource(StaticTrainingSampleSource):
    def __init__(self, samples):
        super().__init__(samples)
        self.loads = 0

    def load(self):
        self.loads += 1
        return super().load()


def identical_samples(n=5, risk=60.0, health=40.0):
    return [TrainingSample(features=FEATURES, risk_score=risk, health_score=health) for _ in range(n)]


def test_model_input_shape_and_range():
    x = to_model_input(FEATURES)
    assert x.shape == (MODEL_INPUT_SIZE,)
    assert np.all(x >= 0) and np.all(x <= 1)
    assert x[-1] == pytest.approx(0.6)  # 1 - concentration


def test_new_registry_is_empty():
    registry = ModelRegistry()
    assert registry.state == ModelState.EMPTY
    assert not registry.is_loaded
    assert registry.predict(FEATURES) is None


def test_identical_samples_train_and_predict_near_label():
    """5 identical samples train without error; predictions land near the labels."""
    registry = ModelRegistry(seed=7)
    report = registry.train(identical_samples())
    assert registry.state == ModelState.LOADED
    assert report.n_samples == 5
    assert report.n_validation == 0  # too few rows for a hold-out
    risk, health = registry.predict(FEATURES)
    assert risk == pytest.approx(60.0, abs=15.0)
    assert health == pytest.approx(40.0, abs=15.0)


def test_predictions_clamped():
    registry = ModelRegistry(seed=3)
    registry.train(identical_samples(risk=100.0, health=0.0))
    risk, health = registry.predict(FEATURES)
    assert 0.0 <= risk <= 100.0
    assert 0.0 <= health <= 100.0


def test_holdout_used_with_enough_samples():
    registry = ModelRegistry(seed=1, epochs=5)
    report = registry.train(identical_samples(n=10))
    assert report.n_validation == 2
    assert report.n_train == 8
    assert report.risk_val_loss is not None


def test_too_few_samples_raise():
    registry = ModelRegistry()
    with pytest.raises(TrainingError, match="at least 5"):
        registry.train(identical_samples(n=4))
    assert registry.state == ModelState.EMPTY


def test_non_finite_labels_raise():
    samples = identical_samples()
    samples[0] = TrainingSample(features=FEATURES, risk_score=float("nan"), health_score=1.0)
    registry = ModelRegistry()
    with pytest.raises(TrainingError):
        registry.train(samples)
    assert not registry.is_loaded


def test_reset_discards_models():
    registry = ModelRegistry(seed=2, epochs=5)
    registry.train(identical_samples())
    registry.reset()
    assert registry.state == ModelState.EMPTY
    assert registry.predict(FEATURES) is None


def test_concurrent_ensure_loaded_trains_once():
    """N concurrent callers share one load task and one training run."""
    source = CountingSource(identical_samples())
    registry = ModelRegistry(source=source, seed=5, epochs=5)

    async def run():
        return await asyncio.gather(*(registry.ensure_loaded() for _ in range(8)))

    with patch.object(registry, "train", wraps=registry.train) as train:
        results = asyncio.run(run())
        assert train.call_count == 1
    assert all(results)
    assert source.loads == 1
    assert registry.state == ModelState.LOADED
    # Already loaded: no further work
    assert asyncio.run(registry.ensure_loaded()) is True
    assert source.loads == 1


def test_ensure_loaded_insufficient_samples_stays_empty():
    registry = ModelRegistry(source=StaticTrainingSampleSource(identical_samples(n=3)))
    assert asyncio.run(registry.ensure_loaded()) is False
    assert registry.state == ModelState.EMPTY


def test_ensure_loaded_source_failure_never_raises():
    class BrokenSource:
        def load(self):
            raise OSError("disk gone")

    registry = ModelRegistry(source=BrokenSource())
    assert asyncio.run(registry.ensure_loaded()) is False
    assert registry.state == ModelState.EMPTY


def test_json_training_source(tmp_path):
    """Valid rows load; malformed rows are skipped; missing file yields nothing."""
    rows = [
        {"features": FEATURES.to_dict(), "riskScore": 55, "healthScore": 45},
        {"features": FEATURES.to_dict()},
        "garbage",
    ]
    path = tmp_path / "training-data.json"
    path.write_text(json.dumps(rows), encoding="utf-8")
    samples = JsonTrainingSampleSource(path).load()
    assert len(samples) == 1
    assert samples[0].features == FEATURES
    assert samples[0].risk_score == 55.0
    assert JsonTrainingSampleSource(tmp_path / "missing.json").load() == []


def test_train_model_cli(tmp_path, capsys):
    from backend_rivora.ml.train_model import main

    path = tmp_path / "training-data.json"
    rows = [{"features": FEATURES.to_dict(), "riskScore": 60, "healthScore": 40}] * 6
    path.write_text(json.dumps(rows), encoding="utf-8")
    assert main(["--data", str(path), "--seed", "1", "--epochs", "3"]) == 0
    assert "TRAINING REPORT" in capsys.readouterr().out
    assert main(["--data", str(tmp_path / "missing.json")]) == 1


def test_json_training_source_skips_non_object_features(tmp_path):
    """A row whose features are a list is skipped; the remaining rows still train."""
    good = {"features": FEATURES.to_dict(), "riskScore": 60, "healthScore": 40}
    rows = [good] * 6 + [{"features": [1, 2, 3], "riskScore": 1, "healthScore": 1}, {"features": "x"}]
    path = tmp_path / "training-data.json"
    path.write_text(json.dumps(rows), encoding="utf-8")

    assert len(JsonTrainingSampleSource(path).load()) == 6
    registry = ModelRegistry(source=JsonTrainingSampleSource(path), seed=4, epochs=3)
    assert asyncio.run(registry.ensure_loaded()) is True
    assert registry.state == ModelState.LOADED
