"""FastAPI dependency: the process-wide ReputationService stored on app.state."""

from __future__ import annotations

from fastapi import Request

from backend_rivora.api_server.service import ReputationService


def get_service(request: Request) -> ReputationService:
    return request.app.state.service
