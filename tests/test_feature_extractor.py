"""
Tests for feature extraction from account snapshots.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from backend_rivora.analytics.feature_extractor import (
    MAX_ACCOUNT_AGE_DAYS,
    MAX_ASSET_COUNT,
    extract_features,
    portfolio_concentration,
    transaction_frequency,
)
from backend_rivora.core.models import AccountSnapshot, Balance, FeatureVector

from conftest import make_operations, make_snapshot, make_transactions


def test_empty_snapshot_defaults():
    """Absent account -> zero activity, fully concentrated empty portfolio."""
    f = extract_features(AccountSnapshot.empty("GABC"))
    assert f == FeatureVector()
    assert f.portfolio_concentration == 1.0
    assert f.success_rate == 0.0


def test_none_and_malformed_snapshot_treated_as_empty():
    """None or a non-snapshot object is the empty snapshot, never an error."""
    assert extract_features(None) == FeatureVector()
    assert extract_features({"balances": "garbage"}) == FeatureVector()


def test_equal_balances_concentration():
    """N equal balances -> HHI 1/N."""
    for n in (1, 2, 4, 10):
        assert portfolio_concentration([25.0] * n) == pytest.approx(1.0 / n)


def test_zero_value_portfolio_fully_concentrated():
    assert portfolio_concentration([]) == 1.0
    assert portfolio_concentration([0.0, 0.0]) == 1.0


def test_asset_count_and_trusted_ratio(active_snapshot):
    """Native + USDC + SHIB: 2 non-native lines, 2 of 3 trusted."""
    f = extract_features(active_snapshot)
    assert f.asset_count == 2.0
    assert f.trusted_asset_ratio == pytest.approx(2 / 3)
    # 500 / 250 / 250 -> 0.25 + 0.0625 + 0.0625
    assert f.portfolio_concentration == pytest.approx(0.375)


def test_path_payment_ratio_counts_all_path_types():
    ops = make_operations([
        "path_payment_strict_send",
        "path_payment_strict_receive",
        "path_payment",
        "payment",
    ])
    f = extract_features(make_snapshot(operations=ops))
    assert f.path_payment_ratio == pytest.approx(0.75)


def test_path_payment_ratio_zero_without_operations():
    assert extract_features(make_snapshot()).path_payment_ratio == 0.0


def test_frequency_uses_observed_window():
    """60 transactions over ~59 days (~1.97 months) -> ~30 per month."""
    snap = make_snapshot(transactions=make_transactions(60, step=timedelta(days=1)))
    freq = transaction_frequency(snap, 400.0)
    assert freq == pytest.approx(60 / (59 / 30))


def test_frequency_window_at_least_one_month():
    """Burst within a single day is not extrapolated above the count."""
    snap = make_snapshot(transactions=make_transactions(20, step=timedelta(minutes=5)))
    assert transaction_frequency(snap, 400.0) == pytest.approx(20.0)


def test_frequency_falls_back_to_account_age():
    """One timestamp only -> count / age * 30."""
    snap = make_snapshot(transactions=make_transactions(1), age_days=60.0)
    assert transaction_frequency(snap, 60.0) == pytest.approx(0.5)
    assert transaction_frequency(make_snapshot(transactions=make_transactions(1)), 0.0) == 0.0


def test_success_rate_and_totals(active_snapshot):
    f = extract_features(active_snapshot)
    assert f.total_transactions == 60.0
    assert f.success_rate == 1.0


def test_values_are_clamped():
    """Age and asset count are capped at their documented maxima."""
    balances = [Balance.native(1.0)] + [
        Balance(asset_code=f"T{i}", amount=1.0, asset_issuer="GISSUER") for i in range(80)
    ]
    f = extract_features(make_snapshot(balances=balances, age_days=10_000.0))
    assert f.account_age_days == MAX_ACCOUNT_AGE_DAYS
    assert f.asset_count == MAX_ASSET_COUNT


def test_negative_age_clamped_to_zero():
    f = extract_features(make_snapshot(age_days=-5.0))
    assert f.account_age_days == 0.0


def test_feature_vector_json_round_trip_keys():
    """to_dict uses camelCase names; from_dict accepts camelCase or snake_case."""
    f = FeatureVector(account_age_days=12.0, asset_count=3.0, portfolio_concentration=0.5)
    data = f.to_dict()
    assert data["accountAgeDays"] == 12.0
    assert data["portfolioConcentration"] == 0.5
    assert FeatureVector.from_dict(data) == f
    assert FeatureVector.from_dict({"asset_count": 3}).asset_count == 3.0
