"""
Native data-entry score store: persist a ScoreRecord as manage_data entries on
the wallet's own account.

- Compact JSON (no spaces). A payload of at most 64 bytes is written under the
  single key `scores`; anything larger is split into 50-byte chunks under
  `scores_0`, `scores_1`, ... with one manage_data op per chunk.
- Fee is the base fee times the operation count (stellar-sdk TransactionBuilder).
- Entries left over from an earlier, longer save are deleted in the same
  transaction so reads never mix old and new chunks.
- Reads prefer `scores`, else reassemble chunks by index. A gap in the
  indices or undecodable JSON returns None (fail closed).
"""

from __future__ import annotations

import base64
import json
import re
from typing import Any

from stellar_sdk import Account, Server, TransactionBuilder
from stellar_sdk.exceptions import BaseHorizonError, ConnectionError, NotFoundError

from backend_rivora.config.env import STORAGE_DATA_ENTRY, get_network_name, get_network_passphrase
from backend_rivora.core.exceptions import AbsentAccount, UpstreamError
from backend_rivora.core.models import ScoreRecord, TransactionDraft
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

SINGLE_KEY = "scores"
CHUNK_KEY_PREFIX = "scores_"
CHUNK_KEY_RE = re.compile(r"^scores_(\d+)$")
MAX_DATA_VALUE_BYTES = 64
CHUNK_SIZE = 50
BASE_FEE = 100
TX_TIMEOUT_SECONDS = 30


def encode_record(record: ScoreRecord) -> bytes:
    return json.dumps(record.to_dict(), separators=(",", ":")).encode("utf-8")


def split_payload(payload: bytes) -> list[tuple[str, bytes]]:
    """(key, value) entries for a payload: one `scores` entry, or 50-byte chunks."""
    if len(payload) <= MAX_DATA_VALUE_BYTES:
        return [(SINGLE_KEY, payload)]
    return [
        (f"{CHUNK_KEY_PREFIX}{i}", payload[start:start + CHUNK_SIZE])
        for i, start in enumerate(range(0, len(payload), CHUNK_SIZE))
    ]


def is_score_key(key: str) -> bool:
    return key == SINGLE_KEY or CHUNK_KEY_RE.match(key) is not None


def stale_keys(existing: dict[str, Any], written: set[str]) -> list[str]:
    """Score keys present on the account that the new save does not overwrite."""
    return sorted(k for k in existing if is_score_key(k) and k not in written)


def _b64decode(value: Any) -> bytes | None:
    try:
        return base64.b64decode(str(value), validate=True)
    except (ValueError, TypeError):
        return None


def _decode_json(raw: bytes) -> ScoreRecord | None:
    try:
        return ScoreRecord.from_dict(json.loads(raw.decode("utf-8")))
    except (ValueError, KeyError, TypeError, UnicodeDecodeError):
        return None


def decode_account_data(data: dict[str, Any]) -> ScoreRecord | None:
    """
    Rebuild a ScoreRecord from Horizon's account `data` map (base64 values).
    `scores` wins over chunks; chunks must be contiguous from 0.
    """
    if not data:
        return None
    if SINGLE_KEY in data:
        raw = _b64decode(data[SINGLE_KEY])
        return _decode_json(raw) if raw is not None else None

    chunks: dict[int, bytes] = {}
    for key, value in data.items():
        m = CHUNK_KEY_RE.match(key)
        if not m:
            continue
        raw = _b64decode(value)
        if raw is None:
            return None
        chunks[int(m.group(1))] = raw
    if not chunks:
        return None
    if set(chunks) != set(range(len(chunks))):
        return None
    return _decode_json(b"".join(chunks[i] for i in range(len(chunks))))


class DataEntryScoreStore:
    """ScoreStore over account data entries. Blocking Horizon calls."""

    strategy = STORAGE_DATA_ENTRY

    def __init__(self, server: Server, network: str, base_fee: int = BASE_FEE) -> None:
        self._server = server
        self._network = network
        self._passphrase = get_network_passphrase(network)
        self._base_fee = base_fee

    def _fetch_account(self, address: str) -> dict[str, Any]:
        try:
            return self._server.accounts().account_id(address).call()
        except NotFoundError:
            raise AbsentAccount(address)
        except ConnectionError as e:
            raise UpstreamError("Horizon is unreachable", address=address) from e
        except BaseHorizonError as e:
            raise UpstreamError(f"Horizon request failed: {e}", address=address) from e

    def build_save_transaction(self, address: str, record: ScoreRecord) -> TransactionDraft:
        """Unsigned manage_data transaction. Sequence is read fresh from Horizon on every call."""
        account = self._fetch_account(address)
        source = Account(address, int(account["sequence"]))

        entries = split_payload(encode_record(record))
        written = {key for key, _ in entries}
        removals = stale_keys(account.get("data") or {}, written)

        builder = TransactionBuilder(
            source_account=source,
            network_passphrase=self._passphrase,
            base_fee=self._base_fee,
        )
        for key, value in entries:
            builder.append_manage_data_op(data_name=key, data_value=value)
        for key in removals:
            builder.append_manage_data_op(data_name=key, data_value=None)
        tx = builder.set_timeout(TX_TIMEOUT_SECONDS).build()

        op_count = len(entries) + len(removals)
        logger.info(
            "data_entry_draft_built",
            wallet=short_wallet(address),
            chunks=len(entries),
            stale_removed=len(removals),
            fee=tx.transaction.fee,
        )
        return TransactionDraft(
            payload=tx.to_xdr(),
            network=get_network_name(self._network),
            strategy=self.strategy,
            operation_count=op_count,
        )

    def read_record(self, address: str) -> ScoreRecord | None:
        try:
            account = self._fetch_account(address)
        except AbsentAccount:
            return None
        record = decode_account_data(account.get("data") or {})
        if record is None and any(is_score_key(k) for k in account.get("data") or {}):
            logger.warning("data_entry_record_unreadable", wallet=short_wallet(address))
        return record
