from __future__ import annotations

from typing import Any, Callable, Iterable

from ..domain.extraction import normalize_extracted_requirements, normalize_extracted_roles
from ..domain.models import (
    Proposal,
    Requirement,
    Role,
    Subcontractor,
    WbsElement,
    active_slots,
)

Listener = Callable[[Proposal, frozenset[str]], None]


def next_wbs_number(existing: Iterable[str]) -> str:
    """Next WBS number after the highest "major.minor" in use ("1.1" when none)."""
    parsed: list[tuple[int, int]] = []
    for n in existing:
        parts = str(n or "").split(".")
        try:
            major = int(parts[0]) if parts[0] else 1
        except ValueError:
            major = 1
        try:
            minor = int(parts[1]) if len(parts) > 1 and parts[1] else 0
        except ValueError:
            minor = 0
        parsed.append((major, minor))
    if not parsed:
        return "1.1"
    major, minor = max(parsed)
    return f"{major}.{minor + 1}"


class ProposalState:
    """
    The in-memory proposal being edited, with change notification.

    Every mutation swaps in a new validated `Proposal`; listeners receive the
    new value and the names of the top-level fields that changed.
    """

    def __init__(self, proposal: Proposal | None = None):
        self._proposal = proposal or Proposal(id="")
        self._listeners: list[Listener] = []

    @property
    def proposal(self) -> Proposal:
        return self._proposal

    @property
    def proposal_id(self) -> str:
        return self._proposal.id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, changed: Iterable[str]) -> None:
        fields = frozenset(changed)
        for listener in list(self._listeners):
            listener(self._proposal, fields)

    def replace(self, proposal: Proposal) -> None:
        self._proposal = proposal
        self._emit(Proposal.model_fields)

    def update(self, **fields: Any) -> Proposal:
        if "id" in fields and fields["id"] != self._proposal.id:
            raise ValueError("proposal id is immutable; load a different proposal instead")
        fields.pop("id", None)
        unknown = set(fields) - set(Proposal.model_fields)
        if unknown:
            raise ValueError(f"unknown proposal fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self._proposal

        data = self._proposal.model_dump()
        data.update({k: _plain(v) for k, v in fields.items()})
        self._proposal = Proposal.model_validate(data)
        self._emit(fields)
        return self._proposal

    def update_solicitation(self, **fields: Any) -> Proposal:
        sol = self._proposal.solicitation.model_dump()
        sol.update({k: _plain(v) for k, v in fields.items()})
        return self.update(solicitation=sol)

    # --- roles ---

    def add_role(self, role: Role | dict[str, Any] | None = None, **fields: Any) -> Role:
        data = _plain(role) if role is not None else {}
        data.update(fields)
        if data.get("years") is None:
            data["years"] = active_slots(self._proposal.solicitation.periodOfPerformance)
        new_role = Role.model_validate(data)
        self.update(roles=[*self._proposal.roles, new_role])
        return new_role

    def update_role(self, role_id: str, **fields: Any) -> Role:
        roles = list(self._proposal.roles)
        for i, r in enumerate(roles):
            if r.id == role_id:
                roles[i] = Role.model_validate({**r.model_dump(), **fields, "id": role_id})
                self.update(roles=roles)
                return roles[i]
        raise KeyError(role_id)

    def remove_role(self, role_id: str) -> bool:
        roles = [r for r in self._proposal.roles if r.id != role_id]
        if len(roles) == len(self._proposal.roles):
            return False
        justifications = {k: v for k, v in self._proposal.rateJustifications.items() if k != role_id}
        self.update(roles=roles, rateJustifications=justifications)
        return True

    # --- subcontractors ---

    def add_subcontractor(self, sub: Subcontractor | dict[str, Any] | None = None, **fields: Any) -> Subcontractor:
        data = _plain(sub) if sub is not None else {}
        data.update(fields)
        if data.get("years") is None:
            data["years"] = active_slots(self._proposal.solicitation.periodOfPerformance)
        new_sub = Subcontractor.model_validate(data)
        self.update(subcontractors=[*self._proposal.subcontractors, new_sub])
        return new_sub

    def update_subcontractor(self, sub_id: str, **fields: Any) -> Subcontractor:
        subs = list(self._proposal.subcontractors)
        for i, s in enumerate(subs):
            if s.id == sub_id:
                subs[i] = Subcontractor.model_validate({**s.model_dump(), **fields, "id": sub_id})
                self.update(subcontractors=subs)
                return subs[i]
        raise KeyError(sub_id)

    def remove_subcontractor(self, sub_id: str) -> bool:
        subs = [s for s in self._proposal.subcontractors if s.id != sub_id]
        if len(subs) == len(self._proposal.subcontractors):
            return False
        self.update(subcontractors=subs)
        return True

    # --- work breakdown ---

    def add_wbs_element(self, element: WbsElement | dict[str, Any] | None = None, **fields: Any) -> WbsElement:
        data = _plain(element) if element is not None else {}
        data.update(fields)
        if not data.get("wbsNumber"):
            data["wbsNumber"] = next_wbs_number(w.wbsNumber for w in self._proposal.wbsElements)
        new_el = WbsElement.model_validate(data)
        self.update(wbsElements=[*self._proposal.wbsElements, new_el])
        return new_el

    # --- extraction ---

    def apply_extraction(
        self,
        *,
        roles: Iterable[dict[str, Any]] | None = None,
        requirements: Iterable[dict[str, Any]] | None = None,
    ) -> tuple[list[Role], list[Requirement]]:
        """Append extracted roles/requirements (partial records allowed) in one change."""
        pop = self._proposal.solicitation.periodOfPerformance
        new_roles = normalize_extracted_roles(roles or [], pop)
        new_reqs = normalize_extracted_requirements(requirements or [])

        changes: dict[str, Any] = {}
        if new_roles:
            changes["roles"] = [*self._proposal.roles, *new_roles]
        if new_reqs:
            changes["requirements"] = [*self._proposal.requirements, *new_reqs]
        if changes:
            self.update(**changes)
        return new_roles, new_reqs


def _plain(v: Any) -> Any:
    if hasattr(v, "model_dump"):
        return v.model_dump()
    if isinstance(v, list):
        return [_plain(x) for x in v]
    if isinstance(v, dict):
        return {k: _plain(x) for k, x in v.items()}
    return v
