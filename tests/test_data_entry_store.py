"""
Tests for the data-entry score store: chunking, transaction shape, fail-closed reads.
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import pytest
from stellar_sdk import Network, TransactionEnvelope
from stellar_sdk.exceptions import NotFoundError

from backend_rivora.core.exceptions import AbsentAccount
from backend_rivora.core.models import ScoreRecord
from backend_rivora.oracle.data_entry_store import (
    BASE_FEE,
    CHUNK_SIZE,
    SINGLE_KEY,
    DataEntryScoreStore,
    decode_account_data,
    encode_record,
    split_payload,
)

from conftest import WALLET, horizon_account, horizon_error, mock_horizon_server

RECORD = ScoreRecord.create(WALLET, 72.25, 61.5, "trader", now=datetime(2025, 6, 1, tzinfo=timezone.utc))


def as_account_data(entries):
    return {k: base64.b64encode(v).decode() for k, v in entries}


def test_record_encoding_is_compact_camel_case():
    payload = encode_record(RECORD)
    assert b" " not in payload
    assert b'"walletAddress"' in payload
    assert b'"trustRating":72.25' in payload
    assert len(payload) > 64


def test_small_payload_single_key():
    assert split_payload(b'{"a":1}') == [(SINGLE_KEY, b'{"a":1}')]
    assert split_payload(b"x" * 64) == [(SINGLE_KEY, b"x" * 64)]


def test_large_payload_chunked():
    entries = split_payload(b"y" * 120)
    assert [k for k, _ in entries] == ["scores_0", "scores_1", "scores_2"]
    assert [len(v) for _, v in entries] == [50, 50, 20]


def test_chunk_round_trip():
    """Record > 64 bytes: chunk, store as base64, reassemble to the same record."""
    entries = split_payload(encode_record(RECORD))
    assert len(entries) > 1
    assert all(len(v) <= CHUNK_SIZE for _, v in entries)
    assert decode_account_data(as_account_data(entries)) == RECORD


def test_chunk_order_independent_of_map_order():
    entries = list(reversed(split_payload(encode_record(RECORD))))
    assert decode_account_data(as_account_data(entries)) == RECORD


def test_missing_chunk_fails_closed():
    entries = split_payload(encode_record(RECORD))
    del entries[1]
    assert decode_account_data(as_account_data(entries)) is None


def test_corrupt_json_fails_closed():
    assert decode_account_data(as_account_data([("scores_0", b'{"walletAddress":')])) is None
    assert decode_account_data({"scores": "!!!not-base64!!!"}) is None
    assert decode_account_data({}) is None


def test_single_key_preferred_over_chunks():
    """When `scores` exists the chunks are not consulted."""
    data = as_account_data([(SINGLE_KEY, b"not json")] + split_payload(encode_record(RECORD)))
    assert decode_account_data(data) is None


def test_build_save_transaction_one_op_per_chunk():
    """op count == chunk count, fee == base fee * op count, sequence from Horizon + 1."""
    server = mock_horizon_server(horizon_account(sequence=1000))
    store = DataEntryScoreStore(server, "testnet")
    draft = store.build_save_transaction(WALLET, RECORD)

    chunks = split_payload(encode_record(RECORD))
    assert draft.strategy == "data-entry"
    assert draft.network == "testnet"
    assert draft.operation_count == len(chunks)

    env = TransactionEnvelope.from_xdr(draft.payload, Network.TESTNET_NETWORK_PASSPHRASE)
    tx = env.transaction
    assert len(tx.operations) == len(chunks)
    assert tx.fee == BASE_FEE * len(chunks)
    assert tx.sequence == 1001
    assert [op.data_name for op in tx.operations] == [k for k, _ in chunks]
    assert [op.data_value for op in tx.operations] == [v for _, v in chunks]
    assert env.signatures == []


def test_build_save_transaction_removes_stale_chunks():
    """Chunks beyond the new record's length are deleted in the same transaction."""
    stale = {f"scores_{i}": base64.b64encode(b"old").decode() for i in range(12)}
    stale["other_key"] = base64.b64encode(b"keep").decode()
    server = mock_horizon_server(horizon_account(data=stale))
    draft = DataEntryScoreStore(server, "testnet").build_save_transaction(WALLET, RECORD)

    env = TransactionEnvelope.from_xdr(draft.payload, Network.TESTNET_NETWORK_PASSPHRASE)
    chunks = split_payload(encode_record(RECORD))
    deletes = [op for op in env.transaction.operations if op.data_value is None]
    assert {op.data_name for op in deletes} == {f"scores_{i}" for i in range(len(chunks), 12)}
    assert draft.operation_count == 12
    assert env.transaction.fee == BASE_FEE * 12


def test_build_save_absent_account():
    server = mock_horizon_server(error=horizon_error(NotFoundError, 404))
    with pytest.raises(AbsentAccount):
        DataEntryScoreStore(server, "testnet").build_save_transaction(WALLET, RECORD)


def test_read_record_from_account_data():
    data = as_account_data(split_payload(encode_record(RECORD)))
    server = mock_horizon_server(horizon_account(data=data))
    assert DataEntryScoreStore(server, "testnet").read_record(WALLET) == RECORD


def test_read_record_absent_account_is_none():
    server = mock_horizon_server(error=horizon_error(NotFoundError, 404))
    assert DataEntryScoreStore(server, "testnet").read_record(WALLET) is None
