from __future__ import annotations

from fastapi import APIRouter, Request

from ..settings import get_settings

router = APIRouter()


@router.get("/", tags=["health"])
def health(request: Request):
    settings = get_settings()
    engine = getattr(request.app.state, "sync_engine", None)
    return {
        "message": "TrueBid pricing core",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.normalized_environment,
        "remoteBackend": settings.normalized_remote_backend,
        "activeProposal": engine.proposal_id if engine else None,
        "endpoints": [
            "GET /api/proposals/{id}",
            "PATCH /api/proposals/{id}",
            "POST /api/proposals/{id}/roles",
            "POST /api/proposals/{id}/extraction",
            "GET /api/proposals/{id}/pricing",
            "POST /api/pricing/preview",
        ],
    }
