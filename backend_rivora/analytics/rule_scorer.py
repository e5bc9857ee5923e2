"""
Rule-based scorer: deterministic weighted sums over a FeatureVector.

Risk score (higher = more trustworthy account):
    0.25 wallet_age + 0.20 tx_frequency + 0.20 secure_usage + 0.35 token_trust
Health score (higher = healthier portfolio):
    0.30 diversity + 0.25 concentration + 0.15 token_age + 0.20 volatility + 0.10 gas_efficiency

Each component is a 0-100 step or linear score. NaN components are replaced with
50 before weighting; final scores are clamped to 0-100. No state, no randomness.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from backend_rivora.core.models import FeatureVector, ScorePair, ScoringMethod

RISK_SCORE_WEIGHTS = {
    "wallet_age": 0.25,
    "transaction_frequency": 0.20,
    "secure_swap_usage": 0.20,
    "token_trustworthiness": 0.35,
}

HEALTH_SCORE_WEIGHTS = {
    "token_diversity": 0.30,
    "portfolio_concentration": 0.25,
    "token_age_average": 0.15,
    "volatility_exposure": 0.20,
    "gas_efficiency": 0.10,
}

# (upper bound exclusive, score); last entry applies to everything above
WALLET_AGE_STEPS = ((30, 20.0), (90, 40.0), (365, 60.0), (1095, 80.0))
WALLET_AGE_MAX_SCORE = 100.0
TX_COUNT_STEPS = ((10, 20.0), (50, 40.0), (200, 60.0), (500, 80.0))
TX_COUNT_MAX_SCORE = 100.0
DIVERSITY_STEPS = ((5, 50.0), (10, 70.0), (20, 85.0))
DIVERSITY_SINGLE_SCORE = 30.0
DIVERSITY_MAX_SCORE = 100.0

SECURE_USAGE_BASE = 50.0
SECURE_USAGE_PATH_BONUS = 30.0
SECURE_USAGE_SUCCESS_BONUS = 20.0
TOKEN_TRUST_BASE = 30.0
TOKEN_TRUST_RANGE = 70.0
TOKEN_AGE_BASE = 30.0
TOKEN_AGE_RANGE = 70.0
VOLATILITY_BASE = 20.0
VOLATILITY_RANGE = 80.0
CONCENTRATION_FLOOR = 30.0
EMPTY_PORTFOLIO_DEFAULT = 50.0
NAN_SUBSTITUTE = 50.0

# Stellar base fees are negligible, so fee efficiency is a fixed component
STELLAR_GAS_EFFICIENCY = 70.0

SCORE_MIN = 0.0
SCORE_MAX = 100.0


def _clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


def _step_score(value: float, steps: tuple[tuple[float, float], ...], top: float) -> float:
    for bound, score in steps:
        if value < bound:
            return score
    return top


def _weighted_sum(components: dict[str, float], weights: dict[str, float]) -> float:
    total = 0.0
    for name, weight in weights.items():
        value = components.get(name, NAN_SUBSTITUTE)
        if value is None or math.isnan(value):
            value = NAN_SUBSTITUTE
        total += weight * value
    return total


def wallet_age_score(age_days: float) -> float:
    return _step_score(age_days, WALLET_AGE_STEPS, WALLET_AGE_MAX_SCORE)


def transaction_frequency_score(tx_count: float) -> float:
    return _step_score(tx_count, TX_COUNT_STEPS, TX_COUNT_MAX_SCORE)


def secure_usage_score(path_payment_ratio: float, success_rate: float) -> float:
    score = (
        SECURE_USAGE_BASE
        + path_payment_ratio * SECURE_USAGE_PATH_BONUS
        + success_rate * SECURE_USAGE_SUCCESS_BONUS
    )
    return min(SCORE_MAX, score)


def token_trust_score(trusted_ratio: float) -> float:
    return TOKEN_TRUST_BASE + trusted_ratio * TOKEN_TRUST_RANGE


def diversity_score(balance_lines: float) -> float:
    if balance_lines <= 1:
        return DIVERSITY_SINGLE_SCORE
    return _step_score(balance_lines, DIVERSITY_STEPS, DIVERSITY_MAX_SCORE)


def concentration_score(hhi: float) -> float:
    return _clamp((1.0 - hhi) * 100.0, CONCENTRATION_FLOOR, SCORE_MAX)


def is_empty_portfolio(features: FeatureVector) -> bool:
    """
    No balance lines at all. Funded accounts always hold the native (trusted)
    balance, so zero extra assets with a zero trusted ratio means nothing is held.
    """
    return features.asset_count <= 0 and features.trusted_asset_ratio <= 0


@dataclass(frozen=True)
class RuleBreakdown:
    """All component scores behind one rule-based ScorePair."""

    wallet_age: float
    transaction_frequency: float
    secure_swap_usage: float
    token_trustworthiness: float
    token_diversity: float
    portfolio_concentration: float
    token_age_average: float
    volatility_exposure: float
    gas_efficiency: float

    def risk_components(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in RISK_SCORE_WEIGHTS}

    def health_components(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in HEALTH_SCORE_WEIGHTS}


class RuleScorer:
    """Weighted-sum scorer. Instances hold only constants, so one can be shared freely."""

    def __init__(self, gas_efficiency: float = STELLAR_GAS_EFFICIENCY) -> None:
        self._gas_efficiency = gas_efficiency

    def breakdown(self, features: FeatureVector) -> RuleBreakdown:
        empty = is_empty_portfolio(features)
        trusted = features.trusted_asset_ratio
        return RuleBreakdown(
            wallet_age=wallet_age_score(features.account_age_days),
            transaction_frequency=transaction_frequency_score(features.total_transactions),
            secure_swap_usage=secure_usage_score(features.path_payment_ratio, features.success_rate),
            token_trustworthiness=token_trust_score(trusted),
            token_diversity=diversity_score(0 if empty else features.asset_count + 1),
            portfolio_concentration=(
                EMPTY_PORTFOLIO_DEFAULT if empty else concentration_score(features.portfolio_concentration)
            ),
            token_age_average=EMPTY_PORTFOLIO_DEFAULT if empty else TOKEN_AGE_BASE + trusted * TOKEN_AGE_RANGE,
            volatility_exposure=EMPTY_PORTFOLIO_DEFAULT if empty else VOLATILITY_BASE + trusted * VOLATILITY_RANGE,
            gas_efficiency=self._gas_efficiency,
        )

    def risk_from_breakdown(self, breakdown: RuleBreakdown) -> float:
        total = _weighted_sum(breakdown.risk_components(), RISK_SCORE_WEIGHTS)
        return NAN_SUBSTITUTE if math.isnan(total) else _clamp(total)

    def health_from_breakdown(self, breakdown: RuleBreakdown) -> float:
        total = _weighted_sum(breakdown.health_components(), HEALTH_SCORE_WEIGHTS)
        return NAN_SUBSTITUTE if math.isnan(total) else _clamp(total)

    def risk(self, features: FeatureVector) -> float:
        return self.risk_from_breakdown(self.breakdown(features))

    def health(self, features: FeatureVector) -> float:
        return self.health_from_breakdown(self.breakdown(features))

    def score(self, features: FeatureVector) -> ScorePair:
        breakdown = self.breakdown(features)
        return ScorePair(
            risk_score=self.risk_from_breakdown(breakdown),
            health_score=self.health_from_breakdown(breakdown),
            method=ScoringMethod.RULE,
        )
