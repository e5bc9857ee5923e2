"""
Pytest fixtures for Rivora tests. No network access: Horizon and Soroban RPC
are replaced with MagicMock servers or in-memory snapshot sources.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from stellar_sdk import Keypair, StrKey
from stellar_sdk.client.response import Response

from backend_rivora.core.exceptions import AbsentAccount
from backend_rivora.core.models import (
    AccountSnapshot,
    Balance,
    OperationRecord,
    TransactionRecord,
)

# Deterministic, checksum-valid account ids
WALLET_KEYPAIR = Keypair.from_raw_ed25519_seed(bytes([1]) * 32)
WALLET = WALLET_KEYPAIR.public_key
WALLET_2 = Keypair.from_raw_ed25519_seed(bytes([2]) * 32).public_key
ABSENT_WALLET = Keypair.from_raw_ed25519_seed(bytes([3]) * 32).public_key
CONTRACT_ID = StrKey.encode_contract(bytes([7]) * 32)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_transactions(count: int, start: datetime = NOW, step: timedelta = timedelta(days=1), hour: int | None = None,
                      operation_count: int = 1) -> list[TransactionRecord]:
    txs = []
    for i in range(count):
        ts = start - step * i
        if hour is not None:
            ts = ts.replace(hour=hour)
        txs.append(TransactionRecord(hash=f"tx{i}", created_at=ts, operation_count=operation_count))
    return txs


def make_operations(types: list[str], start: datetime = NOW, step: timedelta = timedelta(days=1)) -> list[OperationRecord]:
    return [OperationRecord(type=t, created_at=start - step * i) for i, t in enumerate(types)]


def make_snapshot(
    address: str = WALLET,
    balances: list[Balance] | None = None,
    transactions: list[TransactionRecord] | None = None,
    operations: list[OperationRecord] | None = None,
    age_days: float = 400.0,
) -> AccountSnapshot:
    return AccountSnapshot(
        address=address,
        balances=balances if balances is not None else [Balance.native(100.0)],
        transactions=transactions or [],
        operations=operations or [],
        account_age_days=age_days,
    )


class FakeSnapshotSource:
    """SnapshotSource over a dict; unknown addresses are absent."""

    def __init__(self, snapshots: dict[str, AccountSnapshot] | None = None) -> None:
        self.snapshots = dict(snapshots or {})
        self.calls: list[str] = []

    def fetch(self, address: str) -> AccountSnapshot:
        self.calls.append(address)
        if address not in self.snapshots:
            raise AbsentAccount(address)
        return self.snapshots[address]


def horizon_account(address: str = WALLET, sequence: int = 1000, data: dict[str, str] | None = None) -> dict:
    return {
        "id": address,
        "account_id": address,
        "sequence": str(sequence),
        "balances": [{"asset_type": "native", "balance": "100.0000000"}],
        "data": data or {},
    }


def mock_horizon_server(account: dict | None = None, error: Exception | None = None) -> MagicMock:
    """MagicMock Horizon Server whose accounts().account_id(...).call() returns account (or raises)."""
    server = MagicMock()
    call = server.accounts.return_value.account_id.return_value.call
    if error is not None:
        call.side_effect = error
    else:
        call.return_value = account or horizon_account()
    return server


def horizon_error(error_cls, status: int = 404, title: str = "Resource Missing", extras: dict | None = None):
    """Build a stellar_sdk Horizon error from a problem+json body."""
    body = {"type": "https://stellar.org/horizon-errors/not_found", "title": title, "status": status,
            "detail": title}
    if extras is not None:
        body["extras"] = extras
    return error_cls(Response(status_code=status, text=json.dumps(body), headers={}, url="https://horizon.test"))


@pytest.fixture
def wallet() -> str:
    return WALLET


@pytest.fixture
def active_snapshot() -> AccountSnapshot:
    """Funded account with trusted and untrusted assets and a month of activity."""
    return make_snapshot(
        balances=[
            Balance.native(500.0),
            Balance(asset_code="USDC", amount=250.0, asset_issuer="GISSUER"),
            Balance(asset_code="SHIB", amount=250.0, asset_issuer="GISSUER"),
        ],
        transactions=make_transactions(60, step=timedelta(hours=12)),
        operations=make_operations(["payment", "path_payment_strict_send"] * 30, step=timedelta(hours=12)),
        age_days=400.0,
    )


@pytest.fixture
def snapshot_source(active_snapshot) -> FakeSnapshotSource:
    return FakeSnapshotSource({WALLET: active_snapshot})


@pytest.fixture
def service(snapshot_source, monkeypatch):
    """ReputationService with an empty model registry (rule scoring) and mocked persistence."""
    monkeypatch.setenv("STELLAR_NETWORK", "testnet")
    monkeypatch.delenv("SOROBAN_CONTRACT_ID", raising=False)

    from backend_rivora.api_server.service import ReputationService
    from backend_rivora.config.settings import Settings
    from backend_rivora.ml.model_registry import ModelRegistry

    return ReputationService(
        settings=Settings(network="testnet", contract_id="", storage_method="data-entry"),
        snapshots=snapshot_source,
        registry=ModelRegistry(source=None),
        store=MagicMock(strategy="data-entry"),
        submitter=MagicMock(),
    )


@pytest.fixture
def client(service):
    """FastAPI TestClient over an app with the injected service (lifespan not run)."""
    from fastapi.testclient import TestClient

    from backend_rivora.api_server.server import create_app

    return TestClient(create_app(service=service))
