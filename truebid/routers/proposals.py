from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..observability.context import proposal_id_var
from ..observability.logging import get_logger
from ..pricing import build_summary, cost_breakdown
from ..sync.engine import SyncEngine

router = APIRouter(tags=["proposals"])
log = get_logger("proposals")


def _engine(request: Request, id: str) -> SyncEngine:
    proposal_id_var.set(id)
    return request.app.state.sync_engine


async def _ensure_loaded(engine: SyncEngine, id: str) -> None:
    if engine.proposal_id != id:
        await engine.load(id)


def _require_active(engine: SyncEngine, id: str) -> None:
    if engine.proposal_id != id:
        raise HTTPException(
            status_code=409,
            detail={
                "error": "Proposal Not Active",
                "message": f"Proposal {id} is not the active proposal; load it first",
                "activeProposalId": engine.proposal_id,
            },
        )


def _view(engine: SyncEngine) -> dict[str, Any]:
    p = engine.proposal
    return {
        "proposal": p.model_dump(mode="json"),
        "summary": build_summary(p).model_dump(mode="json"),
        "saveState": engine.save_state().value,
    }


def _invalid(e: ValidationError) -> RequestValidationError:
    return RequestValidationError(e.errors(include_url=False))


@router.get("/{id}")
async def get_one(id: str, request: Request):
    engine = _engine(request, id)
    await _ensure_loaded(engine, id)
    return _view(engine)


@router.patch("/{id}")
async def update_one(id: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        engine.state.update(**body)
    except ValidationError as e:
        raise _invalid(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    log.info("proposal_updated", fields=sorted(body))
    return _view(engine)


@router.patch("/{id}/solicitation")
async def update_solicitation(id: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        engine.state.update_solicitation(**body)
    except ValidationError as e:
        raise _invalid(e) from e
    return _view(engine)


@router.post("/{id}/roles", status_code=201)
async def add_role(id: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        role = engine.state.add_role(body)
    except ValidationError as e:
        raise _invalid(e) from e
    return {"role": role.model_dump(mode="json"), "summary": build_summary(engine.proposal).model_dump(mode="json")}


@router.patch("/{id}/roles/{roleId}")
async def update_role(id: str, roleId: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        role = engine.state.update_role(roleId, **body)
    except KeyError:
        raise HTTPException(status_code=404, detail="Role not found")
    except ValidationError as e:
        raise _invalid(e) from e
    return {"role": role.model_dump(mode="json")}


@router.delete("/{id}/roles/{roleId}")
async def remove_role(id: str, roleId: str, request: Request):
    engine = _engine(request, id)
    _require_active(engine, id)
    if not engine.state.remove_role(roleId):
        raise HTTPException(status_code=404, detail="Role not found")
    return {"success": True}


@router.post("/{id}/subcontractors", status_code=201)
async def add_subcontractor(id: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        sub = engine.state.add_subcontractor(body)
    except ValidationError as e:
        raise _invalid(e) from e
    return {"subcontractor": sub.model_dump(mode="json")}


@router.post("/{id}/wbs-elements", status_code=201)
async def add_wbs_element(id: str, request: Request, body: dict = Body(default_factory=dict)):
    engine = _engine(request, id)
    _require_active(engine, id)
    try:
        el = engine.state.add_wbs_element(body)
    except ValidationError as e:
        raise _invalid(e) from e
    return {"wbsElement": el.model_dump(mode="json")}


@router.post("/{id}/extraction")
async def apply_extraction(id: str, request: Request, body: dict = Body(default_factory=dict)):
    """Append roles/requirements produced by the document extractor."""
    engine = _engine(request, id)
    _require_active(engine, id)

    roles = body.get("roles") or []
    requirements = body.get("requirements") or []
    if not isinstance(roles, list) or not isinstance(requirements, list):
        raise HTTPException(status_code=400, detail="roles and requirements must be lists")

    new_roles, new_reqs = engine.state.apply_extraction(roles=roles, requirements=requirements)
    log.info("extraction_applied", roles=len(new_roles), requirements=len(new_reqs))
    return {
        "roles": [r.model_dump(mode="json") for r in new_roles],
        "requirements": [r.model_dump(mode="json") for r in new_reqs],
    }


@router.get("/{id}/pricing")
async def get_pricing(id: str, request: Request):
    engine = _engine(request, id)
    await _ensure_loaded(engine, id)
    p = engine.proposal
    return {
        "summary": build_summary(p).model_dump(mode="json"),
        "breakdown": cost_breakdown(p).to_dict(),
    }
