from __future__ import annotations

from fastapi import APIRouter, Body
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..domain.models import Proposal
from ..pricing import build_summary, cost_breakdown, loaded_hourly_rate

router = APIRouter(tags=["pricing"])


@router.post("/preview")
def preview(body: dict = Body(default_factory=dict)):
    """Price a posted proposal without loading or saving anything."""
    try:
        proposal = Proposal.model_validate({**body, "id": str(body.get("id") or "preview")})
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e

    return {
        "summary": build_summary(proposal).model_dump(mode="json"),
        "breakdown": cost_breakdown(proposal).to_dict(),
        "loadedHourlyRates": {
            r.id: round(loaded_hourly_rate(r.baseSalary, proposal.rates), 2) for r in proposal.roles
        },
    }
