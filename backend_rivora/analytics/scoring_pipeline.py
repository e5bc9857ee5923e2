"""
Scoring pipeline: snapshot -> features -> model or rule scores.

Single entrypoint for the API service. Features are extracted once; the model
registry is asked first and the RuleScorer runs on the same features whenever
the registry has no prediction (not loaded, or prediction failed).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from backend_rivora.analytics.feature_extractor import extract_features
from backend_rivora.analytics.rule_scorer import RuleBreakdown, RuleScorer
from backend_rivora.core.models import AccountSnapshot, FeatureVector, ScorePair, ScoringMethod
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)


class ScorePredictor(Protocol):
    def predict(self, features: FeatureVector) -> tuple[float, float] | None: ...


@dataclass(frozen=True)
class ScoreResult:
    features: FeatureVector
    scores: ScorePair
    breakdown: RuleBreakdown


class ScoreOrchestrator:
    def __init__(self, registry: ScorePredictor | None, rule_scorer: RuleScorer | None = None) -> None:
        self._registry = registry
        self._rules = rule_scorer or RuleScorer()

    def score_features(self, features: FeatureVector, wallet: str = "") -> ScoreResult:
        breakdown = self._rules.breakdown(features)
        prediction = self._registry.predict(features) if self._registry is not None else None
        if prediction is not None:
            risk, health = prediction
            pair = ScorePair(risk_score=risk, health_score=health, method=ScoringMethod.MODEL)
        else:
            pair = ScorePair(
                risk_score=self._rules.risk_from_breakdown(breakdown),
                health_score=self._rules.health_from_breakdown(breakdown),
                method=ScoringMethod.RULE,
            )
        logger.info(
            "score_calculated",
            wallet=short_wallet(wallet),
            method=pair.method.value,
            risk_score=round(pair.risk_score, 2),
            health_score=round(pair.health_score, 2),
        )
        return ScoreResult(features=features, scores=pair, breakdown=breakdown)

    def score(self, snapshot: AccountSnapshot) -> ScoreResult:
        """Score one snapshot. Never raises for missing data; the empty snapshot scores by rules."""
        features = extract_features(snapshot)
        wallet = snapshot.address if isinstance(snapshot, AccountSnapshot) else ""
        return self.score_features(features, wallet=wallet)
