"""
Rivora analytics engine.

Turns on-chain account activity into scores and a behavioral user type.
Modules: account_scanner, feature_extractor, rule_scorer, wallet_classifier,
scoring_pipeline.
"""

from backend_rivora.analytics.feature_extractor import extract_features
from backend_rivora.analytics.rule_scorer import RuleBreakdown, RuleScorer
from backend_rivora.analytics.scoring_pipeline import ScoreOrchestrator, ScoreResult
from backend_rivora.analytics.wallet_classifier import (
    build_behavior_profile,
    classify_account,
    classify_user_type,
)

__all__ = [
    "extract_features",
    "RuleBreakdown",
    "RuleScorer",
    "ScoreOrchestrator",
    "ScoreResult",
    "build_behavior_profile",
    "classify_account",
    "classify_user_type",
]
