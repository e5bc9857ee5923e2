"""
Feature builder for the Rivora score regressors.

Builds the fixed-size numeric model input from a FeatureVector for training
and inference. Capped features are divided by their cap so every input lies
in [0, 1]; ratios pass through unchanged. A 9th derived value,
1 - portfolio_concentration (diversification), is appended.

The order below is the contract between training and inference.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from backend_rivora.analytics.feature_extractor import (
    MAX_ACCOUNT_AGE_DAYS,
    MAX_ASSET_COUNT,
    MAX_TRANSACTION_FREQUENCY,
    MAX_TRANSACTIONS,
)
from backend_rivora.core.models import FEATURE_NAMES, FeatureVector

MODEL_INPUT_NAMES = (*FEATURE_NAMES, "diversification")
MODEL_INPUT_SIZE = len(MODEL_INPUT_NAMES)

# Divisor per FeatureVector field; 1.0 for values already in [0, 1]
FEATURE_SCALES = {
    "account_age_days": MAX_ACCOUNT_AGE_DAYS,
    "total_transactions": MAX_TRANSACTIONS,
    "transaction_frequency": MAX_TRANSACTION_FREQUENCY,
    "path_payment_ratio": 1.0,
    "asset_count": MAX_ASSET_COUNT,
    "portfolio_concentration": 1.0,
    "trusted_asset_ratio": 1.0,
    "success_rate": 1.0,
}


def to_model_input(features: FeatureVector) -> np.ndarray:
    """Return a float32 vector of MODEL_INPUT_SIZE values in [0, 1]."""
    scaled = [
        float(np.clip(getattr(features, name) / FEATURE_SCALES[name], 0.0, 1.0))
        for name in FEATURE_NAMES
    ]
    concentration = float(np.clip(features.portfolio_concentration, 0.0, 1.0))
    scaled.append(1.0 - concentration)
    out = np.array(scaled, dtype=np.float32)
    return np.nan_to_num(out, nan=0.0, posinf=1.0, neginf=0.0)


def to_model_matrix(features: Iterable[FeatureVector]) -> np.ndarray:
    """Stack model inputs row-wise: shape (n, MODEL_INPUT_SIZE)."""
    rows = [to_model_input(f) for f in features]
    if not rows:
        return np.zeros((0, MODEL_INPUT_SIZE), dtype=np.float32)
    return np.vstack(rows)


def get_feature_names() -> list[str]:
    return list(MODEL_INPUT_NAMES)
