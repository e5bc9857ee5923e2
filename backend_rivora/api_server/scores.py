"""
FastAPI router: score calculation and the public v1 score API.

POST /api/calculate-scores        full scoring response (analysis + metadata)
GET  /api/v1/score/{wallet}       public score lookup
POST /api/v1/batch-scores         up to 50 wallets, per-wallet errors
GET  /api/v1/verify/{wallet}      scores persisted on the ledger, if any
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend_rivora import __version__
from backend_rivora.api_server.dependencies import get_service
from backend_rivora.api_server.service import ReputationService

router = APIRouter(tags=["scores"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CalculateScoresRequest(CamelModel):
    """POST /api/calculate-scores body."""

    wallet_address: str = Field(..., description="Stellar account id (G...)")


class BatchScoresRequest(CamelModel):
    """POST /api/v1/batch-scores body."""

    wallet_addresses: list[str] = Field(..., description="Up to 50 Stellar account ids")


@router.post("/api/calculate-scores")
async def calculate_scores(
    body: CalculateScoresRequest,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    score = await service.score_account(body.wallet_address)
    return score.to_dict()


@router.get("/api/v1/score/{wallet_address}")
async def public_score(
    wallet_address: str,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    score = await service.score_account(wallet_address)
    return {
        "success": True,
        "walletAddress": score.address,
        "scores": score.public_scores(),
        "metadata": {
            "dataQuality": score.data_quality,
            "method": score.method.value,
            "version": __version__,
        },
    }


@router.post("/api/v1/batch-scores")
async def batch_scores(
    body: BatchScoresRequest,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    items = await service.score_batch(body.wallet_addresses)
    failed = sum(1 for i in items if i.error is not None)
    return {
        "success": True,
        "results": [i.to_dict() for i in items],
        "metadata": {
            "total": len(items),
            "successful": len(items) - failed,
            "failed": failed,
        },
    }


@router.get("/api/v1/verify/{wallet_address}")
def verify(
    wallet_address: str,
    service: ReputationService = Depends(get_service),
) -> dict[str, Any]:
    record = service.verify_on_chain(wallet_address)
    body: dict[str, Any] = {
        "success": True,
        "walletAddress": wallet_address.strip(),
        "hasOnChainScores": record is not None,
    }
    if record is not None:
        data = record.to_dict()
        body["scores"] = {k: data[k] for k in ("trustRating", "healthScore", "userType", "timestamp")}
        body["version"] = record.version
    return body
