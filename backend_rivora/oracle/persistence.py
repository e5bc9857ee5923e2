"""
Ledger persistence: storage strategy selection and fallback.

Both strategies implement ScoreStore. When Soroban storage is selected and a
contract id is configured, the contract store is primary and the data-entry
store is the fallback for both drafts and reads; otherwise data entries are
used directly.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from stellar_sdk import Server, SorobanServer

from backend_rivora.config.env import STORAGE_DATA_ENTRY, STORAGE_SOROBAN
from backend_rivora.config.settings import Settings
from backend_rivora.core.exceptions import ValidationError
from backend_rivora.core.models import ScoreRecord, TransactionDraft
from backend_rivora.oracle.data_entry_store import DataEntryScoreStore
from backend_rivora.oracle.soroban_store import SorobanScoreStore
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)


class StorageStrategy(str, Enum):
    SOROBAN = STORAGE_SOROBAN
    DATA_ENTRY = STORAGE_DATA_ENTRY


class ScoreStore(Protocol):
    strategy: str

    def build_save_transaction(self, address: str, record: ScoreRecord) -> TransactionDraft: ...

    def read_record(self, address: str) -> ScoreRecord | None: ...


class FallbackScoreStore:
    """
    Try primary, fall back to secondary on any failure.

    Input validation errors are not store failures: they would fail the same
    way on the secondary, so they propagate.
    """

    def __init__(self, primary: ScoreStore, secondary: ScoreStore) -> None:
        self.primary = primary
        self.secondary = secondary

    @property
    def strategy(self) -> str:
        return self.primary.strategy

    def build_save_transaction(self, address: str, record: ScoreRecord) -> TransactionDraft:
        try:
            return self.primary.build_save_transaction(address, record)
        except ValidationError:
            raise
        except Exception as e:
            logger.warning(
                "ledger_persistence_fallback",
                operation="build_save_transaction",
                wallet=short_wallet(address),
                primary=self.primary.strategy,
                secondary=self.secondary.strategy,
                error=str(e),
            )
        return self.secondary.build_save_transaction(address, record)

    def read_record(self, address: str) -> ScoreRecord | None:
        """Primary first; the secondary is also consulted when the primary holds no record,
        since earlier saves may have gone through the fallback."""
        try:
            record = self.primary.read_record(address)
            if record is not None:
                return record
        except Exception as e:
            logger.warning(
                "ledger_persistence_fallback",
                operation="read_record",
                wallet=short_wallet(address),
                primary=self.primary.strategy,
                secondary=self.secondary.strategy,
                error=str(e),
            )
        return self.secondary.read_record(address)


def build_score_store(
    settings: Settings,
    horizon: Server | None = None,
    soroban: SorobanServer | None = None,
) -> ScoreStore:
    """Wire the configured strategy. Data entries are always available as the fallback."""
    horizon = horizon or Server(horizon_url=settings.horizon_url)
    data_entry = DataEntryScoreStore(horizon, settings.network)
    if not settings.use_soroban:
        logger.info("ledger_persistence_selected", strategy=StorageStrategy.DATA_ENTRY.value)
        return data_entry
    soroban = soroban or SorobanServer(settings.soroban_rpc_url)
    contract_store = SorobanScoreStore(soroban, settings.contract_id, settings.network)
    logger.info(
        "ledger_persistence_selected",
        strategy=StorageStrategy.SOROBAN.value,
        fallback=StorageStrategy.DATA_ENTRY.value,
        contract=short_wallet(settings.contract_id),
    )
    return FallbackScoreStore(contract_store, data_entry)
