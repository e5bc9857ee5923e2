"""
Account scanner: collect on-chain activity for a Stellar account via Horizon.

Fetches the account record (balances), then the 200 most recent transactions
and operations (newest first). Account age comes from the account's creation
time when Horizon reports one, otherwise from the oldest fetched record; with
200 records that is a lower bound for busy accounts.

A missing account raises AbsentAccount; transport and Horizon failures raise
UpstreamError. Callers decide whether to degrade to the empty snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from stellar_sdk import Server
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError, NotFoundError

from backend_rivora.core.exceptions import AbsentAccount, UpstreamError
from backend_rivora.core.models import (
    AccountSnapshot,
    Balance,
    OperationRecord,
    TransactionRecord,
    parse_horizon_time,
)
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

RECORDS_LIMIT = 200
SECONDS_PER_DAY = 86_400.0


class SnapshotSource(Protocol):
    def fetch(self, address: str) -> AccountSnapshot: ...


def _records(response: dict[str, Any]) -> list[dict[str, Any]]:
    return list(((response or {}).get("_embedded") or {}).get("records") or [])


def account_age_days(
    account: dict[str, Any],
    transactions: list[TransactionRecord],
    operations: list[OperationRecord],
    now: datetime | None = None,
) -> float:
    """Days since creation, or since the oldest fetched record when creation time is unknown."""
    now = now or datetime.now(timezone.utc)
    created = parse_horizon_time(account.get("created_at"))
    if created is None:
        stamps = [r.created_at for r in (*transactions, *operations) if r.created_at is not None]
        created = min(stamps) if stamps else None
    if created is None:
        return 0.0
    return max(0.0, (now - created).total_seconds() / SECONDS_PER_DAY)


class HorizonSnapshotSource:
    """SnapshotSource backed by a stellar-sdk Horizon Server (blocking calls)."""

    def __init__(self, horizon_url: str | None = None, server: Server | None = None, limit: int = RECORDS_LIMIT) -> None:
        if server is None and not horizon_url:
            raise ValueError("horizon_url or server is required")
        self._server = server or Server(horizon_url=horizon_url)
        self._limit = limit

    @property
    def server(self) -> Server:
        return self._server

    def fetch(self, address: str) -> AccountSnapshot:
        wallet = short_wallet(address)
        try:
            account = self._server.accounts().account_id(address).call()
            tx_resp = (
                self._server.transactions()
                .for_account(address)
                .limit(self._limit)
                .order(desc=True)
                .call()
            )
            op_resp = (
                self._server.operations()
                .for_account(address)
                .limit(self._limit)
                .order(desc=True)
                .call()
            )
        except NotFoundError:
            logger.info("account_not_found", wallet=wallet)
            raise AbsentAccount(address)
        except ConnectionError as e:
            logger.warning("horizon_unreachable", wallet=wallet, error=str(e))
            raise UpstreamError("Horizon is unreachable", address=address) from e
        except BaseHorizonError as e:
            logger.warning("horizon_error", wallet=wallet, status=getattr(e, "status", None), error=str(e))
            raise UpstreamError(f"Horizon request failed: {e}", address=address) from e

        balances = [Balance.from_horizon(b) for b in account.get("balances") or []]
        transactions = [TransactionRecord.from_horizon(t) for t in _records(tx_resp)]
        operations = [OperationRecord.from_horizon(o) for o in _records(op_resp)]

        snapshot = AccountSnapshot(
            address=address,
            balances=balances,
            transactions=transactions,
            operations=operations,
            account_age_days=account_age_days(account, transactions, operations),
        )
        logger.debug(
            "account_scanned",
            wallet=wallet,
            balances=len(balances),
            transactions=len(transactions),
            operations=len(operations),
            account_age_days=round(snapshot.account_age_days, 1),
        )
        return snapshot
