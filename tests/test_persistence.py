"""
Tests for storage strategy selection and the contract -> data-entry fallback.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from backend_rivora.config.settings import Settings
from backend_rivora.core.exceptions import UpstreamError, ValidationError
from backend_rivora.core.models import ScoreRecord, TransactionDraft
from backend_rivora.oracle.data_entry_store import DataEntryScoreStore
from backend_rivora.oracle.persistence import FallbackScoreStore, build_score_store

from conftest import CONTRACT_ID, WALLET

RECORD = ScoreRecord.create(WALLET, 80.0, 60.0, "Passive", now=datetime(2025, 6, 1, tzinfo=timezone.utc))


def fake_store(strategy):
    store = MagicMock(strategy=strategy)
    store.build_save_transaction.return_value = TransactionDraft("AAAA" + strategy, "testnet", strategy)
    store.read_record.return_value = RECORD
    return store


def test_primary_used_when_healthy():
    primary, secondary = fake_store("soroban"), fake_store("data-entry")
    draft = FallbackScoreStore(primary, secondary).build_save_transaction(WALLET, RECORD)
    assert draft.strategy == "soroban"
    secondary.build_save_transaction.assert_not_called()


def test_fallback_on_primary_failure():
    """Contract unreachable: the data-entry draft is returned instead."""
    primary, secondary = fake_store("soroban"), fake_store("data-entry")
    primary.build_save_transaction.side_effect = UpstreamError("rpc down")
    draft = FallbackScoreStore(primary, secondary).build_save_transaction(WALLET, RECORD)
    assert draft.strategy == "data-entry"


def test_validation_error_not_masked_by_fallback():
    primary, secondary = fake_store("soroban"), fake_store("data-entry")
    primary.build_save_transaction.side_effect = ValidationError("bad score")
    with pytest.raises(ValidationError):
        FallbackScoreStore(primary, secondary).build_save_transaction(WALLET, RECORD)
    secondary.build_save_transaction.assert_not_called()


def test_read_falls_back_on_error_and_on_missing_record():
    primary, secondary = fake_store("soroban"), fake_store("data-entry")
    store = FallbackScoreStore(primary, secondary)

    primary.read_record.side_effect = UpstreamError("rpc down")
    assert store.read_record(WALLET) == RECORD

    primary.read_record.side_effect = None
    primary.read_record.return_value = None
    assert store.read_record(WALLET) == RECORD
    assert secondary.read_record.call_count == 2


def test_strategy_reports_primary():
    assert FallbackScoreStore(fake_store("soroban"), fake_store("data-entry")).strategy == "soroban"


def test_build_score_store_data_entry_default():
    settings = Settings(network="testnet", contract_id="", storage_method="data-entry")
    store = build_score_store(settings, horizon=MagicMock())
    assert isinstance(store, DataEntryScoreStore)


def test_build_score_store_soroban_without_contract_uses_data_entry():
    settings = Settings(network="testnet", contract_id="", storage_method="soroban")
    assert isinstance(build_score_store(settings, horizon=MagicMock()), DataEntryScoreStore)


def test_build_score_store_soroban_with_fallback():
    settings = Settings(network="testnet", contract_id=CONTRACT_ID, storage_method="soroban")
    store = build_score_store(settings, horizon=MagicMock(), soroban=MagicMock())
    assert isinstance(store, FallbackScoreStore)
    assert store.strategy == "soroban"
    assert store.secondary.strategy == "data-entry"
