"""
FastAPI router: ledger persistence (two-phase: unsigned draft, external signing, submit).

POST /api/blockchain/save-scores          unsigned save transaction
POST /api/blockchain/auto-save-scores     auto-save policy, then unsigned save transaction
POST /api/blockchain/submit-transaction   submit a signed envelope once
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field

from backend_rivora.api_server.dependencies import get_service
from backend_rivora.api_server.scores import CamelModel
from backend_rivora.api_server.service import ReputationService
from backend_rivora.core.models import TransactionDraft
from backend_rivora.oracle.auto_save import should_auto_save

router = APIRouter(prefix="/api/blockchain", tags=["blockchain"])


class SaveScoresRequest(CamelModel):
    wallet_address: str
    trust_rating: float
    health_score: float
    user_type: str


class AutoSaveScoresRequest(SaveScoresRequest):
    """Client-held state of the last save; all optional (first save)."""

    last_saved_at: str | None = None
    last_trust_rating: float | None = None
    last_health_score: float | None = None


class SubmitTransactionRequest(CamelModel):
    xdr: str = Field(..., description="Signed transaction envelope, base64 XDR")
    network: str | None = Field(None, description="testnet or public (default: configured network)")


def _draft_body(draft: TransactionDraft) -> dict[str, Any]:
    return {
        "success": True,
        "xdr": draft.payload,
        "network": draft.network,
        "method": draft.strategy,
        "operationCount": draft.operation_count,
    }


@router.post("/save-scores")
def save_scores(
    body: SaveScoresRequest,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    draft = service.prepare_save(body.wallet_address, body.trust_rating, body.health_score, body.user_type)
    return _draft_body(draft)


@router.post("/auto-save-scores")
def auto_save_scores(
    body: AutoSaveScoresRequest,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    last_scores = None
    if body.last_trust_rating is not None and body.last_health_score is not None:
        last_scores = (body.last_trust_rating, body.last_health_score)
    decision = should_auto_save(body.last_saved_at, last_scores, (body.trust_rating, body.health_score))
    if not decision.save:
        return {"success": True, "shouldSave": False, "reason": decision.reason}
    draft = service.prepare_save(body.wallet_address, body.trust_rating, body.health_score, body.user_type)
    return {**_draft_body(draft), "shouldSave": True, "reason": decision.reason}


@router.post("/submit-transaction")
def submit_transaction(
    body: SubmitTransactionRequest,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    result = service.submit_signed(body.xdr, body.network)
    return {"success": True, "transactionHash": result.tx_hash, "ledger": result.ledger}
