"""
Domain models for the scoring and persistence pipeline.

Snapshot types are built from Horizon records (from_horizon) and are owned by
the request that fetched them. FeatureVector field order is fixed: the model
input is built from it and must match training-time order exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

NATIVE_ASSET_CODE = "XLM"
SCHEMA_VERSION = "1.0.0"


class UserType(str, Enum):
    TRADER = "Trader"
    EXPLORER = "Explorer"
    OPTIMIZER = "Optimizer"
    PASSIVE = "Passive"

    @classmethod
    def parse(cls, value: Any) -> "UserType":
        """Case-insensitive lookup ('trader', 'Trader', UserType.TRADER). Raises ValueError."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == raw:
                return member
        raise ValueError(f"Invalid user type: {value!r}. Must be one of: {', '.join(m.value for m in cls)}")


class ScoringMethod(str, Enum):
    RULE = "rule"
    MODEL = "model"


class TransactionTiming(str, Enum):
    PEAK = "peak"
    OFF_PEAK = "off-peak"
    MIXED = "mixed"


def parse_horizon_time(value: Any) -> datetime | None:
    """Parse Horizon's ISO timestamps ('2024-01-31T10:00:00Z'). None on missing/invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _safe_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _safe_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# -----------------------------------------------------------------------------
# Account snapshot
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Balance:
    """One balance line. Native lumens are reported with asset_code XLM."""

    asset_code: str
    amount: float
    asset_issuer: str | None = None
    asset_type: str = "credit_alphanum4"

    @property
    def is_native(self) -> bool:
        return self.asset_type == "native"

    @classmethod
    def native(cls, amount: float) -> "Balance":
        return cls(asset_code=NATIVE_ASSET_CODE, amount=amount, asset_type="native")

    @classmethod
    def from_horizon(cls, item: dict[str, Any]) -> "Balance":
        asset_type = item.get("asset_type") or "native"
        code = NATIVE_ASSET_CODE if asset_type == "native" else (item.get("asset_code") or "")
        return cls(
            asset_code=code,
            amount=_safe_float(item.get("balance")),
            asset_issuer=item.get("asset_issuer"),
            asset_type=asset_type,
        )


@dataclass(frozen=True)
class TransactionRecord:
    hash: str
    created_at: datetime | None
    fee_charged: int = 0
    operation_count: int = 1
    successful: bool = True

    @classmethod
    def from_horizon(cls, item: dict[str, Any]) -> "TransactionRecord":
        return cls(
            hash=item.get("hash") or "",
            created_at=parse_horizon_time(item.get("created_at")),
            fee_charged=_safe_int(item.get("fee_charged")),
            operation_count=_safe_int(item.get("operation_count"), 1),
            successful=item.get("successful") is not False,
        )


@dataclass(frozen=True)
class OperationRecord:
    type: str
    created_at: datetime | None = None
    transaction_successful: bool = True

    @classmethod
    def from_horizon(cls, item: dict[str, Any]) -> "OperationRecord":
        return cls(
            type=item.get("type") or "",
            created_at=parse_horizon_time(item.get("created_at")),
            transaction_successful=item.get("transaction_successful") is not False,
        )


@dataclass
class AccountSnapshot:
    """Raw activity for one account, fetched per scoring request."""

    address: str
    balances: list[Balance] = field(default_factory=list)
    transactions: list[TransactionRecord] = field(default_factory=list)
    operations: list[OperationRecord] = field(default_factory=list)
    account_age_days: float = 0.0

    @classmethod
    def empty(cls, address: str = "") -> "AccountSnapshot":
        """Zero-activity default used when the account does not exist."""
        return cls(address=address)

    @property
    def is_empty(self) -> bool:
        return not self.balances and not self.transactions and not self.operations


# -----------------------------------------------------------------------------
# Features and scores
# -----------------------------------------------------------------------------

FEATURE_NAMES = (
    "account_age_days",
    "total_transactions",
    "transaction_frequency",
    "path_payment_ratio",
    "asset_count",
    "portfolio_concentration",
    "trusted_asset_ratio",
    "success_rate",
)

# camelCase names used by training-data.json and the HTTP API
FEATURE_JSON_NAMES = (
    "accountAgeDays",
    "totalTransactions",
    "transactionFrequency",
    "pathPaymentRatio",
    "assetCount",
    "portfolioConcentration",
    "trustedAssetRatio",
    "successRate",
)


@dataclass(frozen=True)
class FeatureVector:
    """Eight normalized activity features in fixed order (FEATURE_NAMES)."""

    account_age_days: float = 0.0
    total_transactions: float = 0.0
    transaction_frequency: float = 0.0
    path_payment_ratio: float = 0.0
    asset_count: float = 0.0
    portfolio_concentration: float = 1.0
    trusted_asset_ratio: float = 0.0
    success_rate: float = 0.0

    def as_tuple(self) -> tuple[float, ...]:
        return tuple(float(getattr(self, name)) for name in FEATURE_NAMES)

    def to_dict(self) -> dict[str, float]:
        return dict(zip(FEATURE_JSON_NAMES, self.as_tuple()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureVector":
        """Accept camelCase (training-data.json) or snake_case keys; missing keys take defaults."""
        values: dict[str, float] = {}
        for snake, camel in zip(FEATURE_NAMES, FEATURE_JSON_NAMES):
            raw = data.get(camel, data.get(snake))
            if raw is not None:
                values[snake] = _safe_float(raw)
        return cls(**values)


@dataclass(frozen=True)
class ScorePair:
    risk_score: float
    health_score: float
    method: ScoringMethod


@dataclass(frozen=True)
class TrainingSample:
    features: FeatureVector
    risk_score: float
    health_score: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrainingSample":
        if not isinstance(data, dict) or "features" not in data:
            raise ValueError("training sample requires 'features'")
        if not isinstance(data["features"], dict):
            raise ValueError("training sample 'features' must be an object")
        risk = data.get("riskScore", data.get("risk_score"))
        health = data.get("healthScore", data.get("health_score"))
        if risk is None or health is None:
            raise ValueError("training sample requires riskScore and healthScore")
        return cls(
            features=FeatureVector.from_dict(data["features"]),
            risk_score=float(risk),
            health_score=float(health),
        )


@dataclass(frozen=True)
class BehaviorProfile:
    swap_frequency: float = 0.0
    limit_order_usage: float = 0.0
    transaction_timing: TransactionTiming = TransactionTiming.MIXED
    new_token_interaction: float = 0.0
    gas_optimization: float = 0.0


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreRecord:
    """Score profile as written to the ledger. JSON keys are camelCase."""

    wallet_address: str
    trust_rating: float
    health_score: float
    user_type: str
    timestamp: str
    version: str = SCHEMA_VERSION

    @classmethod
    def create(
        cls,
        wallet_address: str,
        trust_rating: float,
        health_score: float,
        user_type: UserType | str,
        now: datetime | None = None,
    ) -> "ScoreRecord":
        """New record: scores rounded to 2 decimals, UTC timestamp, current schema version."""
        now = now or datetime.now(timezone.utc)
        return cls(
            wallet_address=wallet_address,
            trust_rating=round(float(trust_rating), 2),
            health_score=round(float(health_score), 2),
            user_type=UserType.parse(user_type).value,
            timestamp=now.isoformat().replace("+00:00", "Z"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "trustRating": self.trust_rating,
            "healthScore": self.health_score,
            "userType": self.user_type,
            "timestamp": self.timestamp,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoreRecord":
        return cls(
            wallet_address=str(data["walletAddress"]),
            trust_rating=float(data["trustRating"]),
            health_score=float(data["healthScore"]),
            user_type=str(data["userType"]),
            timestamp=str(data.get("timestamp") or ""),
            version=str(data.get("version") or SCHEMA_VERSION),
        )


@dataclass(frozen=True)
class TransactionDraft:
    """
    Unsigned transaction envelope (base64 XDR) for an external signer.

    operation_count is every operation in the envelope. For data-entry saves it
    includes deletions of leftover score keys, so it can exceed the chunk count.
    """

    payload: str
    network: str
    strategy: str
    operation_count: int = 1


@dataclass(frozen=True)
class SubmitResult:
    tx_hash: str
    ledger: int | None
