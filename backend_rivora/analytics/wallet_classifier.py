"""
Behavioral user-type classification for Rivora analytics.

Two steps: build_behavior_profile() turns raw snapshot activity into a
BehaviorProfile, classify_user_type() maps the profile to a UserType with an
ordered rule list (first match wins).
"""

from __future__ import annotations

from backend_rivora.analytics.feature_extractor import (
    DAYS_PER_MONTH,
    PATH_PAYMENT_TYPES,
    SECONDS_PER_DAY,
    is_trusted_asset,
)
from backend_rivora.core.models import (
    AccountSnapshot,
    BehaviorProfile,
    TransactionTiming,
    UserType,
)
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

OFFER_TYPES = frozenset({
    "manage_sell_offer",
    "manage_buy_offer",
    "create_passive_sell_offer",
})
SWAP_TYPES = PATH_PAYMENT_TYPES | OFFER_TYPES

# UTC hours [start, end) with the heaviest market activity
PEAK_HOURS_START = 13
PEAK_HOURS_END = 21
PEAK_SHARE_MIN = 0.60
OFF_PEAK_SHARE_MAX = 0.30

TRADER_SWAP_FREQUENCY = 20.0
EXPLORER_NEW_TOKEN_PCT = 40.0
OPTIMIZER_LIMIT_ORDER_PCT = 30.0
OPTIMIZER_GAS_PCT = 60.0
PASSIVE_SWAP_FREQUENCY = 5.0


def _operation_months(snapshot: AccountSnapshot) -> float:
    """Months covered by the operation window (min 1); account age when timestamps are missing."""
    stamps = [op.created_at for op in snapshot.operations if op.created_at is not None]
    if len(stamps) >= 2:
        span_days = (max(stamps) - min(stamps)).total_seconds() / SECONDS_PER_DAY
        return max(span_days / DAYS_PER_MONTH, 1.0)
    age = float(snapshot.account_age_days or 0.0)
    return max(age / DAYS_PER_MONTH, 1.0)


def transaction_timing(snapshot: AccountSnapshot) -> TransactionTiming:
    hours = [tx.created_at.hour for tx in snapshot.transactions if tx.created_at is not None]
    if not hours:
        return TransactionTiming.MIXED
    peak = sum(1 for h in hours if PEAK_HOURS_START <= h < PEAK_HOURS_END)
    share = peak / len(hours)
    if share >= PEAK_SHARE_MIN:
        return TransactionTiming.PEAK
    if share <= OFF_PEAK_SHARE_MAX:
        return TransactionTiming.OFF_PEAK
    return TransactionTiming.MIXED


def build_behavior_profile(snapshot: AccountSnapshot | None) -> BehaviorProfile:
    """Activity heuristics for one account. None yields the all-zero, mixed-timing profile."""
    if snapshot is None:
        return BehaviorProfile()

    ops = snapshot.operations
    swaps = sum(1 for op in ops if op.type in SWAP_TYPES)
    offers = sum(1 for op in ops if op.type in OFFER_TYPES)

    swap_frequency = swaps / _operation_months(snapshot) if swaps else 0.0
    limit_order_usage = (offers / swaps) * 100.0 if swaps else 0.0

    non_native = [b for b in snapshot.balances if not b.is_native]
    untrusted = sum(1 for b in non_native if not is_trusted_asset(b.asset_code))
    new_token_interaction = (untrusted / len(non_native)) * 100.0 if non_native else 0.0

    txs = snapshot.transactions
    multi_op = sum(1 for tx in txs if tx.operation_count > 1)
    gas_optimization = (multi_op / len(txs)) * 100.0 if txs else 0.0

    return BehaviorProfile(
        swap_frequency=swap_frequency,
        limit_order_usage=limit_order_usage,
        transaction_timing=transaction_timing(snapshot),
        new_token_interaction=new_token_interaction,
        gas_optimization=gas_optimization,
    )


def classify_user_type(profile: BehaviorProfile) -> UserType:
    """
    Classify a behavior profile. Order of checks matters.

    1. Frequent swaps concentrated in peak hours: Trader
    2. Mostly unfamiliar tokens: Explorer
    3. Limit orders, batched operations, or off-peak activity: Optimizer
    4. Rare swaps: Passive
    5. Otherwise: Trader
    """
    timing = profile.transaction_timing

    if profile.swap_frequency > TRADER_SWAP_FREQUENCY and timing == TransactionTiming.PEAK:
        return UserType.TRADER

    if profile.new_token_interaction > EXPLORER_NEW_TOKEN_PCT:
        return UserType.EXPLORER

    if (
        profile.limit_order_usage > OPTIMIZER_LIMIT_ORDER_PCT
        or profile.gas_optimization > OPTIMIZER_GAS_PCT
        or timing == TransactionTiming.OFF_PEAK
    ):
        return UserType.OPTIMIZER

    if profile.swap_frequency < PASSIVE_SWAP_FREQUENCY:
        return UserType.PASSIVE

    return UserType.TRADER


def classify_account(snapshot: AccountSnapshot | None) -> tuple[BehaviorProfile, UserType]:
    """Profile and classify in one call."""
    profile = build_behavior_profile(snapshot)
    user_type = classify_user_type(profile)
    logger.debug(
        "user_type_classified",
        wallet=short_wallet(snapshot.address if snapshot else ""),
        user_type=user_type.value,
        swap_frequency=round(profile.swap_frequency, 2),
        timing=profile.transaction_timing.value,
    )
    return profile, user_type
