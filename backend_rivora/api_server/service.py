"""
ReputationService: the operations behind the HTTP API.

Wires SnapshotSource -> ScoreOrchestrator (ModelRegistry + RuleScorer) and
BehaviorClassifier for scoring, and ScoreStore + TransactionSubmitter for
ledger persistence. One instance per process; the API gets it through the
get_service dependency.

Blocking Horizon / Soroban calls run in worker threads (asyncio.to_thread)
from async operations, or in FastAPI's threadpool from sync routes.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from stellar_sdk import Server, StrKey

from backend_rivora import __version__
from backend_rivora.analytics.account_scanner import HorizonSnapshotSource, SnapshotSource
from backend_rivora.analytics.rule_scorer import RuleBreakdown, RuleScorer
from backend_rivora.analytics.scoring_pipeline import ScoreOrchestrator
from backend_rivora.analytics.wallet_classifier import classify_account
from backend_rivora.config.settings import Settings
from backend_rivora.core.exceptions import AbsentAccount, RivoraError, ValidationError
from backend_rivora.core.models import (
    AccountSnapshot,
    BehaviorProfile,
    FeatureVector,
    ScoreRecord,
    ScoringMethod,
    SubmitResult,
    TransactionDraft,
    UserType,
)
from backend_rivora.ml.model_registry import ModelRegistry
from backend_rivora.ml.training_data import JsonTrainingSampleSource
from backend_rivora.oracle.persistence import ScoreStore, build_score_store
from backend_rivora.oracle.submission import TransactionSubmitter
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

MAX_BATCH_SIZE = 50
BATCH_CONCURRENCY = 8

ANALYZED_METRICS = (
    "Wallet Age",
    "Transaction Frequency",
    "Secure Swap Usage",
    "Token Trustworthiness",
    "Token Diversity",
    "Portfolio Concentration",
    "Token Age Average",
    "Volatility Exposure",
    "Gas Efficiency",
    "User Behavior Classification",
)


def validate_address(address: Any) -> str:
    """Stripped G... account id. ValidationError before any network access."""
    addr = str(address or "").strip()
    if not addr:
        raise ValidationError("Missing walletAddress")
    if not StrKey.is_valid_ed25519_public_key(addr):
        raise ValidationError("Invalid Stellar wallet address", address=addr)
    return addr


def validate_score(name: str, value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", field=name) from None
    if not math.isfinite(score) or score < 0 or score > 100:
        raise ValidationError(f"{name} must be between 0 and 100", field=name, value=score)
    return score


def assess_data_quality(snapshot: AccountSnapshot) -> str:
    """high / medium / low by how many activity sources returned data."""
    present = sum(1 for part in (snapshot.balances, snapshot.transactions, snapshot.operations) if part)
    ratio = present / 3
    if ratio >= 0.8:
        return "high"
    if ratio >= 0.4:
        return "medium"
    return "low"


@dataclass(frozen=True)
class AccountScore:
    address: str
    risk_score: float
    health_score: float
    user_type: UserType
    method: ScoringMethod
    features: FeatureVector
    analysis: RuleBreakdown
    behavior: BehaviorProfile
    data_quality: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        risk = round(self.risk_score, 2)
        health = round(self.health_score, 2)
        return {
            "walletAddress": self.address,
            "deFiRiskScore": risk,
            "deFiHealthScore": health,
            "userType": self.user_type.value,
            "userTypeScore": round((risk + health) / 2),
            "method": self.method.value,
            "features": self.features.to_dict(),
            "analysis": {
                "walletAge": self.analysis.wallet_age,
                "transactionFrequency": self.analysis.transaction_frequency,
                "secureSwapUsage": self.analysis.secure_swap_usage,
                "tokenTrustworthiness": self.analysis.token_trustworthiness,
                "portfolioDiversity": self.analysis.token_diversity / 100,
                "portfolioConcentration": self.analysis.portfolio_concentration / 100,
                "tokenAgeAverage": self.analysis.token_age_average / 100,
                "portfolioVolatility": self.analysis.volatility_exposure / 100,
                "gasEfficiency": self.analysis.gas_efficiency / 100,
            },
            "behavior": {
                "swapFrequency": round(self.behavior.swap_frequency, 2),
                "limitOrderUsage": round(self.behavior.limit_order_usage, 2),
                "transactionTiming": self.behavior.transaction_timing.value,
                "newTokenInteraction": round(self.behavior.new_token_interaction, 2),
                "gasOptimization": round(self.behavior.gas_optimization, 2),
            },
            "metadata": {
                "dataQuality": self.data_quality,
                "analyzedMetrics": list(ANALYZED_METRICS),
                "timestamp": self.timestamp,
                "version": __version__,
            },
        }

    def public_scores(self) -> dict[str, Any]:
        return {
            "trustRating": round(self.risk_score, 2),
            "healthScore": round(self.health_score, 2),
            "userType": self.user_type.value,
            "timestamp": self.timestamp,
        }


@dataclass
class BatchItem:
    address: str
    score: AccountScore | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.score is not None:
            return {"walletAddress": self.address, "scores": self.score.public_scores()}
        return {"walletAddress": self.address, "error": self.error}


@dataclass
class ReputationService:
    settings: Settings
    snapshots: SnapshotSource
    registry: ModelRegistry
    store: ScoreStore
    submitter: TransactionSubmitter
    rule_scorer: RuleScorer = field(default_factory=RuleScorer)

    def __post_init__(self) -> None:
        self.orchestrator = ScoreOrchestrator(self.registry, self.rule_scorer)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReputationService":
        horizon = Server(horizon_url=settings.horizon_url)
        return cls(
            settings=settings,
            snapshots=HorizonSnapshotSource(server=horizon),
            registry=ModelRegistry(
                source=JsonTrainingSampleSource(settings.training_data_path),
                seed=settings.training_seed,
            ),
            store=build_score_store(settings, horizon=horizon),
            submitter=TransactionSubmitter({settings.network: horizon}),
        )

    def _fetch_snapshot(self, address: str) -> AccountSnapshot:
        try:
            return self.snapshots.fetch(address)
        except AbsentAccount:
            logger.info("score_account_absent", wallet=short_wallet(address))
            return AccountSnapshot.empty(address)

    async def score_account(self, address: str) -> AccountScore:
        """
        Score one account. Absent accounts score as the zero-activity snapshot.
        Raises ValidationError (bad address) and UpstreamError (Horizon unavailable).
        """
        addr = validate_address(address)
        await self.registry.ensure_loaded()
        snapshot = await asyncio.to_thread(self._fetch_snapshot, addr)
        result = self.orchestrator.score(snapshot)
        profile, user_type = classify_account(snapshot)
        return AccountScore(
            address=addr,
            risk_score=result.scores.risk_score,
            health_score=result.scores.health_score,
            user_type=user_type,
            method=result.scores.method,
            features=result.features,
            analysis=result.breakdown,
            behavior=profile,
            data_quality=assess_data_quality(snapshot),
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

    async def score_batch(self, addresses: list[str]) -> list[BatchItem]:
        """Score up to 50 accounts. Per-address failures are reported, not raised."""
        if not isinstance(addresses, list) or not addresses:
            raise ValidationError("walletAddresses must be a non-empty list")
        if len(addresses) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"Batch size exceeds maximum of {MAX_BATCH_SIZE}",
                total=len(addresses),
                max=MAX_BATCH_SIZE,
            )
        limiter = asyncio.Semaphore(BATCH_CONCURRENCY)

        async def one(address: str) -> BatchItem:
            async with limiter:
                try:
                    return BatchItem(address=address, score=await self.score_account(address))
                except RivoraError as e:
                    return BatchItem(address=address, error=e.message)

        items = await asyncio.gather(*(one(str(a)) for a in addresses))
        logger.info(
            "score_batch_done",
            total=len(items),
            failed=sum(1 for i in items if i.error is not None),
        )
        return list(items)

    def prepare_save(self, address: str, risk: Any, health: Any, user_type: Any) -> TransactionDraft:
        """Unsigned save transaction for the configured strategy."""
        addr = validate_address(address)
        trust_rating = validate_score("trustRating", risk)
        health_score = validate_score("healthScore", health)
        try:
            parsed_type = UserType.parse(user_type)
        except ValueError as e:
            raise ValidationError(str(e), field="userType") from e

        record = ScoreRecord.create(addr, trust_rating, health_score, parsed_type)
        draft = self.store.build_save_transaction(addr, record)
        logger.info(
            "save_draft_prepared",
            wallet=short_wallet(addr),
            strategy=draft.strategy,
            operations=draft.operation_count,
        )
        return draft

    def submit_signed(self, payload: str, network: str | None = None) -> SubmitResult:
        return self.submitter.submit_signed(payload, network or self.settings.network_name)

    def verify_on_chain(self, address: str) -> ScoreRecord | None:
        addr = validate_address(address)
        record = self.store.read_record(addr)
        logger.info("verify_on_chain", wallet=short_wallet(addr), found=record is not None)
        return record

    def status(self) -> dict[str, Any]:
        report = self.registry.last_report
        return {
            "status": "operational",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "network": self.settings.network_name,
            "services": {
                "scoring": "operational",
                "model": self.registry.state.value,
                "blockchain": self.store.strategy,
                "api": "operational",
            },
            "model": report.to_dict() if report else None,
        }
