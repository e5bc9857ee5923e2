"""
Tests for the Horizon-backed snapshot source (MagicMock Server, no network).
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from stellar_sdk.exceptions import ConnectionError, NotFoundError

from backend_rivora.analytics.account_scanner import HorizonSnapshotSource, account_age_days
from backend_rivora.core.exceptions import AbsentAccount, UpstreamError
from backend_rivora.core.models import TransactionRecord

from conftest import NOW, WALLET, horizon_error


def page(*records):
    return {"_embedded": {"records": list(records)}}


def scanner_server(account=None, transactions=(), operations=()):
    server = MagicMock()
    server.accounts.return_value.account_id.return_value.call.return_value = account or {
        "account_id": WALLET,
        "balances": [
            {"asset_type": "native", "balance": "150.5000000"},
            {"asset_type": "credit_alphanum4", "asset_code": "USDC", "asset_issuer": "GI", "balance": "20.0"},
        ],
    }
    server.transactions.return_value.for_account.return_value.limit.return_value.order.return_value.call.return_value = page(
        *transactions
    )
    server.operations.return_value.for_account.return_value.limit.return_value.order.return_value.call.return_value = page(
        *operations
    )
    return server


def test_fetch_builds_snapshot():
    server = scanner_server(
        transactions=[
            {"hash": "t1", "created_at": "2025-05-31T12:00:00Z", "operation_count": 2, "successful": True},
            {"hash": "t2", "created_at": "2025-05-01T12:00:00Z", "successful": False},
        ],
        operations=[{"type": "payment", "created_at": "2025-05-31T12:00:00Z"}],
    )
    snapshot = HorizonSnapshotSource(server=server).fetch(WALLET)

    assert snapshot.address == WALLET
    assert [b.asset_code for b in snapshot.balances] == ["XLM", "USDC"]
    assert snapshot.balances[0].amount == pytest.approx(150.5)
    assert snapshot.transactions[0].operation_count == 2
    assert snapshot.transactions[1].successful is False
    assert snapshot.operations[0].type == "payment"
    assert snapshot.account_age_days > 0


def test_fetch_requests_newest_first_with_limit():
    server = scanner_server()
    HorizonSnapshotSource(server=server, limit=200).fetch(WALLET)
    chain = server.transactions.return_value.for_account
    chain.assert_called_once_with(WALLET)
    chain.return_value.limit.assert_called_once_with(200)
    chain.return_value.limit.return_value.order.assert_called_once_with(desc=True)


def test_missing_account_raises_absent():
    server = MagicMock()
    server.accounts.return_value.account_id.return_value.call.side_effect = horizon_error(NotFoundError, 404)
    with pytest.raises(AbsentAccount):
        HorizonSnapshotSource(server=server).fetch(WALLET)


def test_unreachable_horizon_raises_upstream():
    server = MagicMock()
    server.accounts.return_value.account_id.return_value.call.side_effect = ConnectionError("timeout")
    with pytest.raises(UpstreamError):
        HorizonSnapshotSource(server=server).fetch(WALLET)


def test_account_age_prefers_creation_time():
    account = {"created_at": "2025-05-22T12:00:00Z"}
    assert account_age_days(account, [], [], now=NOW) == pytest.approx(10.0)


def test_account_age_falls_back_to_oldest_record():
    txs = [
        TransactionRecord("a", datetime(2025, 5, 31, 12, tzinfo=timezone.utc)),
        TransactionRecord("b", datetime(2025, 5, 27, 12, tzinfo=timezone.utc)),
    ]
    assert account_age_days({}, txs, [], now=NOW) == pytest.approx(5.0)
    assert account_age_days({}, [], [], now=NOW) == 0.0


def test_source_requires_url_or_server():
    with pytest.raises(ValueError):
        HorizonSnapshotSource()
