from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.models import ProposalSummary


@runtime_checkable
class RemoteStore(Protocol):
    """Authoritative store for proposal metadata.

    `fetch` returns None when the proposal does not exist remotely and raises
    `RemoteStoreError` when the store cannot be reached.
    """

    async def fetch(self, proposal_id: str) -> ProposalSummary | None: ...

    async def update(self, proposal_id: str, summary: ProposalSummary) -> ProposalSummary: ...


class MemoryRemoteStore:
    """Process-local remote store for development runs without AWS or an API."""

    def __init__(self, seed: dict[str, ProposalSummary] | None = None):
        self._items: dict[str, ProposalSummary] = dict(seed or {})

    async def fetch(self, proposal_id: str) -> ProposalSummary | None:
        item = self._items.get(proposal_id)
        return item.model_copy(deep=True) if item else None

    async def update(self, proposal_id: str, summary: ProposalSummary) -> ProposalSummary:
        self._items[proposal_id] = summary.model_copy(deep=True)
        return summary

