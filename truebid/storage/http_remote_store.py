from __future__ import annotations

from typing import Any

import httpx

from ..domain.models import ProposalSummary
from .errors import RemoteStoreError, RemoteUnavailable


def summary_from_payload(p: dict[str, Any]) -> ProposalSummary:
    ct = str(p.get("contractType") or "")
    pop = p.get("periodOfPerformance")
    if isinstance(pop, dict):
        pop = pop.get("display")
    return ProposalSummary(
        title=str(p.get("title") or ""),
        solicitation=str(p.get("solicitation") or ""),
        client=str(p.get("client") or ""),
        contractType=ct if ct in ("tm", "ffp", "hybrid") else "tm",
        dueDate=str(p["dueDate"]) if p.get("dueDate") else None,
        totalValue=p.get("totalValue") or 0,
        teamSize=int(p.get("teamSize") or 0),
        periodOfPerformance=str(pop or ""),
        progress=int(p.get("progress") or 0),
    )


class HttpRemoteStore:
    """Remote proposal store behind the proposals REST API (`/api/proposals/{id}`)."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = str(base_url or "").rstrip("/")
        if not self._base_url:
            raise ValueError("base_url is required")
        self._timeout_s = float(timeout_s)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_s,
            transport=self._transport,
        )

    async def fetch(self, proposal_id: str) -> ProposalSummary | None:
        try:
            async with self._client() as c:
                r = await c.get(f"/api/proposals/{proposal_id}")
        except httpx.HTTPError as e:
            raise RemoteUnavailable(
                message="Proposal API unreachable", operation="fetch", proposal_id=proposal_id,
                retryable=True, cause=e,
            ) from e

        if r.status_code == 404:
            return None
        _raise_for_status(r, "fetch", proposal_id)

        data = r.json() if r.content else {}
        proposal = data.get("proposal") if isinstance(data, dict) else None
        if not isinstance(proposal, dict):
            return None
        return summary_from_payload(proposal)

    async def update(self, proposal_id: str, summary: ProposalSummary) -> ProposalSummary:
        try:
            async with self._client() as c:
                r = await c.put(f"/api/proposals/{proposal_id}", json=summary.model_dump())
        except httpx.HTTPError as e:
            raise RemoteUnavailable(
                message="Proposal API unreachable", operation="update", proposal_id=proposal_id,
                retryable=True, cause=e,
            ) from e

        _raise_for_status(r, "update", proposal_id)
        data = r.json() if r.content else {}
        proposal = data.get("proposal") if isinstance(data, dict) else None
        return summary_from_payload(proposal) if isinstance(proposal, dict) else summary


def _raise_for_status(r: httpx.Response, operation: str, proposal_id: str) -> None:
    if r.status_code < 400:
        return
    if r.status_code >= 500 or r.status_code == 429:
        raise RemoteUnavailable(
            message=f"Proposal API error ({r.status_code})", operation=operation,
            proposal_id=proposal_id, retryable=True,
        )
    raise RemoteStoreError(
        message=f"Proposal API rejected request ({r.status_code})", operation=operation,
        proposal_id=proposal_id,
    )
