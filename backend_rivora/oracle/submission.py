"""
Submit externally signed transactions to Horizon.

Shared by both storage strategies. The envelope is decoded first, so empty
or garbage input fails as ValidationError before any network call. A payload
signed for a different network is rejected by Horizon (tx_bad_auth).
Submission happens once; there are no retries.
"""

from __future__ import annotations

from typing import Any

from stellar_sdk import Server, TransactionEnvelope
from stellar_sdk.exceptions import BadRequestError, BaseHorizonError, ConnectionError

from backend_rivora.config.env import get_horizon_url, get_network_passphrase
from backend_rivora.core.exceptions import TransactionRejected, UpstreamError, ValidationError
from backend_rivora.core.models import SubmitResult
from backend_rivora.rivora_logging import get_logger

logger = get_logger(__name__)

# wire name -> internal network name
NETWORK_ALIASES = {
    "testnet": "testnet",
    "public": "mainnet",
    "mainnet": "mainnet",
    "pubnet": "mainnet",
}


def normalize_network(network: str | None) -> str:
    key = (network or "").strip().lower()
    if key not in NETWORK_ALIASES:
        raise ValidationError(f"Unknown network: {network!r}. Use testnet or public.", network=network)
    return NETWORK_ALIASES[key]


def parse_envelope(payload: str, network: str) -> TransactionEnvelope:
    if not payload or not str(payload).strip():
        raise ValidationError("Signed transaction XDR is required")
    try:
        return TransactionEnvelope.from_xdr(str(payload).strip(), get_network_passphrase(network))
    except Exception as e:
        raise ValidationError(f"Invalid transaction XDR: {e}") from e


def _result_codes(error: BadRequestError) -> dict[str, Any]:
    extras = getattr(error, "extras", None) or {}
    codes = extras.get("result_codes") if isinstance(extras, dict) else None
    return dict(codes) if isinstance(codes, dict) else {}


class TransactionSubmitter:
    """One Horizon Server per network, created on first use."""

    def __init__(self, servers: dict[str, Server] | None = None) -> None:
        self._servers: dict[str, Server] = dict(servers or {})

    def _server(self, network: str) -> Server:
        if network not in self._servers:
            self._servers[network] = Server(horizon_url=get_horizon_url(network))
        return self._servers[network]

    def submit_signed(self, payload: str, network: str) -> SubmitResult:
        """
        Submit a signed envelope once.

        Raises ValidationError (unparseable or unknown network), TransactionRejected
        (Horizon result codes passed through verbatim), UpstreamError (transport).
        """
        net = normalize_network(network)
        envelope = parse_envelope(payload, net)
        try:
            response = self._server(net).submit_transaction(envelope)
        except BadRequestError as e:
            codes = _result_codes(e)
            reason = f"Transaction failed: {codes.get('transaction') or e.title or 'rejected'}"
            logger.warning("transaction_rejected", network=net, result_codes=codes)
            raise TransactionRejected(reason, result_codes=codes) from e
        except ConnectionError as e:
            logger.warning("transaction_submit_unreachable", network=net, error=str(e))
            raise UpstreamError("Horizon is unreachable", network=net) from e
        except BaseHorizonError as e:
            logger.warning("transaction_submit_failed", network=net, status=e.status, error=str(e))
            raise UpstreamError(f"Transaction submission failed: {e}", network=net) from e

        result = SubmitResult(tx_hash=response.get("hash") or envelope.hash_hex(), ledger=response.get("ledger"))
        logger.info("transaction_submitted", network=net, tx_hash=result.tx_hash, ledger=result.ledger)
        return result
