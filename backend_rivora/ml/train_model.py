"""
Train the Rivora score regressors from training-data.json and print a report.

The API service trains on startup from the same file; this command checks a
dataset offline: sample count, hold-out losses, and how far model predictions
sit from the rule-based scores on the training rows.

    python -m backend_rivora.ml.train_model --data training-data.json --seed 7
"""

from __future__ import annotations

import sys
from pathlib import Path

from backend_rivora.analytics.rule_scorer import RuleScorer
from backend_rivora.config.env import get_training_data_path, print_rivora_startup
from backend_rivora.core.exceptions import TrainingError
from backend_rivora.ml.model_registry import EPOCHS, ModelRegistry, TrainingReport
from backend_rivora.ml.training_data import JsonTrainingSampleSource
from backend_rivora.rivora_logging import get_logger

logger = get_logger(__name__)


def print_report(report: TrainingReport, mean_risk_gap: float, mean_health_gap: float) -> None:
    print("\nTRAINING REPORT")
    print("-" * 50)
    print(f"samples:            {report.n_samples}")
    print(f"train / validation: {report.n_train} / {report.n_validation}")
    print(f"epochs:             {report.epochs}")
    print(f"risk loss:          {report.risk_loss:.6f}")
    print(f"health loss:        {report.health_loss:.6f}")
    if report.risk_val_loss is not None:
        print(f"risk val loss:      {report.risk_val_loss:.6f}")
        print(f"health val loss:    {report.health_val_loss:.6f}")
    print(f"mean |model - rule| risk:   {mean_risk_gap:.2f}")
    print(f"mean |model - rule| health: {mean_health_gap:.2f}")
    print()


def train_from_file(data_path: Path, seed: int | None = None, epochs: int = EPOCHS) -> TrainingReport:
    """Load samples, train, print report. Raises TrainingError / ValueError / FileNotFoundError."""
    if not data_path.is_file():
        raise FileNotFoundError(f"Training data not found: {data_path}")
    samples = JsonTrainingSampleSource(data_path).load()
    registry = ModelRegistry(seed=seed, epochs=epochs)
    report = registry.train(samples)

    rules = RuleScorer()
    risk_gaps: list[float] = []
    health_gaps: list[float] = []
    for sample in samples:
        prediction = registry.predict(sample.features)
        if prediction is None:
            continue
        rule = rules.score(sample.features)
        risk_gaps.append(abs(prediction[0] - rule.risk_score))
        health_gaps.append(abs(prediction[1] - rule.health_score))

    print_report(
        report,
        sum(risk_gaps) / len(risk_gaps) if risk_gaps else 0.0,
        sum(health_gaps) / len(health_gaps) if health_gaps else 0.0,
    )
    return report


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(
        description="Train Rivora risk/health regressors from training-data.json and print losses.",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help=f"Training data JSON (default: TRAINING_DATA_PATH or {get_training_data_path()})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible training")
    parser.add_argument("--epochs", type=int, default=EPOCHS, help=f"Epochs per regressor (default: {EPOCHS})")
    args = parser.parse_args(argv)

    print_rivora_startup("train_model")
    try:
        train_from_file(args.data or get_training_data_path(), seed=args.seed, epochs=args.epochs)
    except (FileNotFoundError, ValueError, TrainingError) as e:
        logger.error("train_model_failed", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
