"""
Application-level exceptions.

Every error a caller can see is a RivoraError subclass with a stable code so
the API server can map it to a status and a JSON body. AbsentAccount is the
only kind that scoring degrades on silently (zero-activity snapshot).
"""

from __future__ import annotations

from typing import Any


class RivoraError(Exception):
    """Base class for domain errors."""

    code = "rivora_error"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(RivoraError):
    """Malformed address or missing/invalid fields. Raised before any network access."""

    code = "validation_error"
    status_code = 400


class AbsentAccount(RivoraError):
    """Account does not exist on the ledger."""

    code = "account_not_found"
    status_code = 404

    def __init__(self, address: str) -> None:
        super().__init__(f"Account not found: {address}", address=address)
        self.address = address


class UpstreamError(RivoraError):
    """Horizon, Soroban RPC, or another collaborator is unreachable or failed."""

    code = "upstream_unavailable"
    status_code = 502


class TrainingError(RivoraError):
    """Model training could not complete (insufficient samples, non-finite loss)."""

    code = "training_failed"
    status_code = 500


class TransactionRejected(RivoraError):
    """The network rejected a submitted transaction. Never retried by the service."""

    code = "transaction_rejected"
    status_code = 400

    def __init__(self, reason: str, result_codes: dict[str, Any] | None = None) -> None:
        super().__init__(reason, result_codes=result_codes or {})
        self.reason = reason
        self.result_codes = result_codes or {}
