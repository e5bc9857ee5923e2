"""
Soroban contract score store.

Contract interface (rivora-scores):
    save_scores(wallet_address: Address, trust_rating: i128, health_score: i128, user_type: Symbol) -> ScoreData
    get_scores(wallet_address: Address) -> Option<ScoreData>
    ScoreData { wallet_address, trust_rating, health_score, user_type, timestamp: u64 }

Scores travel as integer hundredths (0..10000); user type as a lowercase symbol.
Save drafts are simulated and prepared (footprint, resource fee) via Soroban
RPC before they are returned. Reads simulate get_scores; void means no record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from stellar_sdk import SorobanServer, TransactionBuilder, scval
from stellar_sdk import xdr as stellar_xdr
from stellar_sdk.exceptions import (
    AccountNotFoundException,
    ConnectionError,
    PrepareTransactionException,
    SorobanRpcErrorResponse,
)

from backend_rivora.config.env import STORAGE_SOROBAN, get_network_name, get_network_passphrase
from backend_rivora.core.exceptions import AbsentAccount, UpstreamError, ValidationError
from backend_rivora.core.models import SCHEMA_VERSION, ScoreRecord, TransactionDraft, UserType
from backend_rivora.rivora_logging import get_logger, short_wallet

logger = get_logger(__name__)

SAVE_FUNCTION = "save_scores"
GET_FUNCTION = "get_scores"
SCORE_SCALE = 100
MAX_CONTRACT_SCORE = 100 * SCORE_SCALE
BASE_FEE = 100
TX_TIMEOUT_SECONDS = 30


def to_contract_score(value: float) -> int:
    """Score in [0, 100] -> integer hundredths. ValidationError outside the contract's range."""
    scaled = int(round(float(value) * SCORE_SCALE))
    if scaled < 0 or scaled > MAX_CONTRACT_SCORE:
        raise ValidationError(f"Score out of range for contract: {value}", value=value)
    return scaled


def to_contract_symbol(user_type: str) -> str:
    return UserType.parse(user_type).value.lower()


def save_scores_parameters(record: ScoreRecord) -> list[stellar_xdr.SCVal]:
    return [
        scval.to_address(record.wallet_address),
        scval.to_int128(to_contract_score(record.trust_rating)),
        scval.to_int128(to_contract_score(record.health_score)),
        scval.to_symbol(to_contract_symbol(record.user_type)),
    ]


def _map_entries(value: stellar_xdr.SCVal) -> dict[str, stellar_xdr.SCVal]:
    if value.type != stellar_xdr.SCValType.SCV_MAP or value.map is None:
        raise ValueError(f"Expected ScoreData map, got {value.type}")
    return {scval.from_symbol(entry.key): entry.val for entry in value.map.sc_map}


def decode_score_data(value: stellar_xdr.SCVal, wallet_address: str) -> ScoreRecord | None:
    """Option<ScoreData> -> ScoreRecord. Void is None; a malformed struct raises ValueError."""
    if value.type == stellar_xdr.SCValType.SCV_VOID:
        return None
    fields = _map_entries(value)
    try:
        trust = scval.from_int128(fields["trust_rating"])
        health = scval.from_int128(fields["health_score"])
        symbol = scval.from_symbol(fields["user_type"])
        seconds = scval.from_uint64(fields["timestamp"])
    except KeyError as e:
        raise ValueError(f"ScoreData missing field {e}") from e
    wallet = wallet_address
    if "wallet_address" in fields:
        wallet = scval.from_address(fields["wallet_address"]).address
    return ScoreRecord(
        wallet_address=wallet,
        trust_rating=trust / SCORE_SCALE,
        health_score=health / SCORE_SCALE,
        user_type=UserType.parse(symbol).value,
        timestamp=datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
        version=SCHEMA_VERSION,
    )


class SorobanScoreStore:
    """ScoreStore over the rivora-scores contract. Blocking Soroban RPC calls."""

    strategy = STORAGE_SOROBAN

    def __init__(self, server: SorobanServer, contract_id: str, network: str, base_fee: int = BASE_FEE) -> None:
        if not contract_id:
            raise ValueError("SOROBAN_CONTRACT_ID is required for Soroban storage")
        self._server = server
        self._contract_id = contract_id
        self._network = network
        self._passphrase = get_network_passphrase(network)
        self._base_fee = base_fee

    @property
    def contract_id(self) -> str:
        return self._contract_id

    def _load_account(self, address: str) -> Any:
        try:
            return self._server.load_account(address)
        except AccountNotFoundException:
            raise AbsentAccount(address)
        except (ConnectionError, SorobanRpcErrorResponse) as e:
            raise UpstreamError(f"Soroban RPC request failed: {e}", address=address) from e

    def _invoke_builder(self, address: str, function_name: str, parameters: list[stellar_xdr.SCVal]) -> Any:
        source = self._load_account(address)
        return (
            TransactionBuilder(
                source_account=source,
                network_passphrase=self._passphrase,
                base_fee=self._base_fee,
            )
            .append_invoke_contract_function_op(
                contract_id=self._contract_id,
                function_name=function_name,
                parameters=parameters,
            )
            .set_timeout(TX_TIMEOUT_SECONDS)
            .build()
        )

    def build_save_transaction(self, address: str, record: ScoreRecord) -> TransactionDraft:
        """Simulated and prepared save_scores invocation, unsigned."""
        parameters = save_scores_parameters(record)
        tx = self._invoke_builder(address, SAVE_FUNCTION, parameters)
        try:
            prepared = self._server.prepare_transaction(tx)
        except PrepareTransactionException as e:
            logger.warning("soroban_simulation_failed", wallet=short_wallet(address), error=str(e))
            raise UpstreamError(f"Soroban simulation failed: {e}", address=address) from e
        except (ConnectionError, SorobanRpcErrorResponse) as e:
            raise UpstreamError(f"Soroban RPC request failed: {e}", address=address) from e

        logger.info(
            "soroban_draft_built",
            wallet=short_wallet(address),
            contract=short_wallet(self._contract_id),
            fee=prepared.transaction.fee,
        )
        return TransactionDraft(
            payload=prepared.to_xdr(),
            network=get_network_name(self._network),
            strategy=self.strategy,
            operation_count=1,
        )

    def read_record(self, address: str) -> ScoreRecord | None:
        try:
            tx = self._invoke_builder(address, GET_FUNCTION, [scval.to_address(address)])
        except AbsentAccount:
            return None
        try:
            sim = self._server.simulate_transaction(tx)
        except (ConnectionError, SorobanRpcErrorResponse) as e:
            raise UpstreamError(f"Soroban RPC request failed: {e}", address=address) from e
        if sim.error:
            raise UpstreamError(f"get_scores simulation failed: {sim.error}", address=address)
        if not sim.results:
            return None
        value = stellar_xdr.SCVal.from_xdr(sim.results[0].xdr)
        return decode_score_data(value, address)
