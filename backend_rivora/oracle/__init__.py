# Ledger persistence: data-entry and Soroban score stores, fallback selection, submission.

from backend_rivora.oracle.auto_save import AutoSaveDecision, should_auto_save
from backend_rivora.oracle.data_entry_store import DataEntryScoreStore
from backend_rivora.oracle.persistence import (
    FallbackScoreStore,
    ScoreStore,
    StorageStrategy,
    build_score_store,
)
from backend_rivora.oracle.soroban_store import SorobanScoreStore
from backend_rivora.oracle.submission import TransactionSubmitter

__all__ = [
    "AutoSaveDecision",
    "should_auto_save",
    "DataEntryScoreStore",
    "FallbackScoreStore",
    "ScoreStore",
    "StorageStrategy",
    "build_score_store",
    "SorobanScoreStore",
    "TransactionSubmitter",
]
