"""
Feature extraction: AccountSnapshot -> FeatureVector.

Pure function, no I/O. Every feature is capped to a documented range so the
model input (see ml/feature_builder.py) can be scaled by the same caps.
A missing or malformed snapshot is treated as the zero-activity default.
"""

from __future__ import annotations

from typing import Any

from backend_rivora.core.models import AccountSnapshot, FeatureVector
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

MAX_ACCOUNT_AGE_DAYS = 3650.0  # 10 years
MAX_TRANSACTIONS = 10_000.0
MAX_TRANSACTION_FREQUENCY = 1000.0  # per month
MAX_ASSET_COUNT = 50.0

DAYS_PER_MONTH = 30.0
SECONDS_PER_DAY = 86_400.0

TRUSTED_ASSETS = frozenset({"XLM", "USDC", "USDT"})
PATH_PAYMENT_TYPES = frozenset({
    "path_payment_strict_receive",
    "path_payment_strict_send",
    "path_payment",
})


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _months_span(snapshot: AccountSnapshot) -> float | None:
    """Months between oldest and newest transaction, or None with < 2 distinct timestamps."""
    stamps = {tx.created_at for tx in snapshot.transactions if tx.created_at is not None}
    if len(stamps) < 2:
        return None
    span = (max(stamps) - min(stamps)).total_seconds() / SECONDS_PER_DAY
    return span / DAYS_PER_MONTH


def transaction_frequency(snapshot: AccountSnapshot, account_age_days: float) -> float:
    """
    Transactions per month. Uses the observed transaction window (at least one month);
    without two distinct timestamps, extrapolates from account age.
    """
    count = len(snapshot.transactions)
    if count == 0:
        return 0.0
    months = _months_span(snapshot)
    if months is not None:
        return count / max(months, 1.0)
    if account_age_days > 0:
        return (count / account_age_days) * DAYS_PER_MONTH
    return 0.0


def portfolio_concentration(amounts: list[float]) -> float:
    """Herfindahl index of balance proportions; 1.0 (fully concentrated) for empty or zero-value portfolios."""
    total = sum(a for a in amounts if a > 0)
    if total <= 0:
        return 1.0
    return sum((a / total) ** 2 for a in amounts if a > 0)


def is_trusted_asset(code: str | None) -> bool:
    return (code or "").upper() in TRUSTED_ASSETS


def extract_features(snapshot: AccountSnapshot | Any) -> FeatureVector:
    """Build the fixed-order FeatureVector for one snapshot."""
    if not isinstance(snapshot, AccountSnapshot):
        if snapshot is not None:
            logger.warning("feature_extractor_malformed_snapshot", type=type(snapshot).__name__)
        snapshot = AccountSnapshot.empty()

    try:
        age = float(snapshot.account_age_days or 0.0)
    except (TypeError, ValueError):
        age = 0.0
    age = _clamp(age, 0.0, MAX_ACCOUNT_AGE_DAYS)

    tx_count = len(snapshot.transactions)
    frequency = _clamp(transaction_frequency(snapshot, age), 0.0, MAX_TRANSACTION_FREQUENCY)

    ops = snapshot.operations
    path_payments = sum(1 for op in ops if op.type in PATH_PAYMENT_TYPES)
    path_ratio = path_payments / len(ops) if ops else 0.0

    balances = snapshot.balances
    asset_count = _clamp(float(max(0, len(balances) - 1)), 0.0, MAX_ASSET_COUNT)
    concentration = portfolio_concentration([b.amount for b in balances])
    trusted = sum(1 for b in balances if is_trusted_asset(b.asset_code))
    trusted_ratio = trusted / len(balances) if balances else 0.0

    features = FeatureVector(
        account_age_days=age,
        total_transactions=min(float(tx_count), MAX_TRANSACTIONS),
        transaction_frequency=frequency,
        path_payment_ratio=path_ratio,
        asset_count=asset_count,
        portfolio_concentration=concentration,
        trusted_asset_ratio=trusted_ratio,
        success_rate=1.0 if tx_count > 0 else 0.0,
    )
    logger.debug("features_extracted", wallet=short_wallet(snapshot.address), **features.to_dict())
    return features
