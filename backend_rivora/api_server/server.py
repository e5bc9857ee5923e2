"""
FastAPI server: Stellar account reputation scores and ledger persistence.

Routers: scores (calculate, public v1 lookup, batch, verify) and blockchain
(save drafts, auto-save, submit). Domain errors map to
{"success": false, "error", "code"} bodies with the error's status code.

On startup the ReputationService is built from Settings (unless one was
injected) and the model registry starts training in the background. Scoring
requests await that same load task (ModelRegistry.ensure_loaded), so the first
requests on a cold service wait for training to finish; the RuleScorer is used
when no models could be loaded.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend_rivora import __version__
from backend_rivora.api_server.blockchain import router as blockchain_router
from backend_rivora.api_server.dependencies import get_service
from backend_rivora.api_server.scores import router as scores_router
from backend_rivora.api_server.service import ReputationService
from backend_rivora.config import get_settings
from backend_rivora.core.exceptions import RivoraError, TransactionRejected
from backend_rivora.rivora_logging import bind_request, clear_request, get_logger

logger = get_logger(__name__)

_STARTED_AT = time.monotonic()


# -----------------------------------------------------------------------------
# Lifespan: build service, warm model registry (never blocks startup)
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    service: ReputationService | None = getattr(app.state, "service", None)
    if service is None:
        service = ReputationService.from_settings(get_settings())
        app.state.service = service
    logger.info(
        "api_started",
        network=service.settings.network_name,
        storage=service.store.strategy,
    )
    warmup = asyncio.create_task(service.registry.ensure_loaded())

    yield

    if not warmup.done():
        warmup.cancel()
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# Error handlers
# -----------------------------------------------------------------------------


def rivora_error_handler(request: Request, exc: RivoraError) -> JSONResponse:
    body = exc.to_dict()
    if isinstance(exc, TransactionRejected):
        body["reason"] = exc.reason
        body["resultCodes"] = exc.result_codes
    if exc.status_code >= 500:
        logger.warning("api_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request field '{field}': {first.get('msg', 'invalid')}" if field else "Invalid request body"
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message, "code": "validation_error"},
    )


def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
    )


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------


def create_app(service: ReputationService | None = None) -> FastAPI:
    """Build the ASGI app. Pass a service to skip building one from the environment."""
    app = FastAPI(
        title="Backend Rivora API",
        description="Stellar account reputation scores (risk, health, user type) and on-ledger persistence.",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    app.add_exception_handler(RivoraError, rivora_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        bind_request(request.url.path, request.method)
        try:
            return await call_next(request)
        finally:
            clear_request()

    app.include_router(scores_router)
    app.include_router(blockchain_router)

    @app.get("/health")
    def health(service: ReputationService = Depends(get_service)) -> dict[str, Any]:
        """Liveness probe: API is up; reports model state."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": __version__,
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "services": {
                "application": "up",
                "model": service.registry.state.value,
            },
        }

    @app.get("/api/v1/status")
    def status(service: ReputationService = Depends(get_service)) -> dict[str, Any]:
        return service.status()

    return app


app = create_app()
