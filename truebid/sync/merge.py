"""Field precedence between the remote summary and the locally cached snapshot.

The remote store only models a proposal's identity metadata. Everything else
(the working collections, rates, most solicitation details) exists only in the
local snapshot until the remote schema grows to hold it. `PRECEDENCE` is the
single place that decides which tier owns which field on load.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

import orjson

from ..domain.models import SNAPSHOT_FIELDS, UNTITLED_PROPOSAL, Proposal, ProposalSummary

Owner = Literal["remote", "local"]


@dataclass(frozen=True, slots=True)
class FieldRule:
    path: str
    owner: Owner
    # ProposalSummary attribute feeding a remote-owned path.
    remote_attr: str | None = None


PRECEDENCE: tuple[FieldRule, ...] = (
    FieldRule("solicitation.title", "remote", "title"),
    FieldRule("solicitation.solicitationNumber", "remote", "solicitation"),
    FieldRule("solicitation.clientAgency", "remote", "client"),
    FieldRule("solicitation.proposalDueDate", "remote", "dueDate"),
    # Every other solicitation key (contract type, period of performance, ...).
    FieldRule("solicitation", "local"),
    FieldRule("roles", "local"),
    FieldRule("subcontractors", "local"),
    FieldRule("teamingPartners", "local"),
    FieldRule("wbsElements", "local"),
    FieldRule("rateJustifications", "local"),
    FieldRule("odcs", "local"),
    FieldRule("perDiem", "local"),
    FieldRule("requirements", "local"),
    FieldRule("rates", "local"),
)


def owner_of(path: str) -> Owner:
    """Owner of a dotted field path; the most specific rule wins."""
    best: FieldRule | None = None
    for rule in PRECEDENCE:
        if path == rule.path or path.startswith(rule.path + "."):
            if best is None or len(rule.path) > len(best.path):
                best = rule
    return best.owner if best else "local"


def _remote_value(summary: ProposalSummary, attr: str) -> Any:
    v = getattr(summary, attr)
    if attr == "title" and (v or "").strip() == UNTITLED_PROPOSAL:
        return ""
    return v


def _set_path(data: dict[str, Any], path: str, value: Any) -> None:
    head, _, rest = path.partition(".")
    if not rest:
        data[head] = value
        return
    child = data.get(head)
    if not isinstance(child, dict):
        child = {}
        data[head] = child
    _set_path(child, rest, value)


def merge_remote_and_cached(
    proposal_id: str,
    summary: ProposalSummary,
    cached: dict[str, Any] | None,
) -> Proposal:
    data: dict[str, Any] = {}
    for rule in PRECEDENCE:
        if rule.owner == "local" and cached and rule.path in cached:
            v = cached[rule.path]
            data[rule.path] = dict(v) if isinstance(v, dict) else v
    for rule in PRECEDENCE:
        if rule.owner == "remote" and rule.remote_attr:
            _set_path(data, rule.path, _remote_value(summary, rule.remote_attr))
    return Proposal.model_validate({**data, "id": proposal_id})


def build_snapshot(proposal: Proposal, *, last_saved: str | None = None) -> dict[str, Any]:
    snap = proposal.model_dump(mode="json", include=set(SNAPSHOT_FIELDS))
    snap["lastSaved"] = last_saved or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return snap


def encode_snapshot(snapshot: dict[str, Any]) -> str:
    return orjson.dumps(snapshot).decode("utf-8")


def decode_snapshot(raw: str | None) -> dict[str, Any] | None:
    """Parse a cached snapshot; raises ValueError when it is not a JSON object."""
    if raw is None:
        return None
    data = orjson.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("cached snapshot is not an object")
    return data


def proposal_from_snapshot(proposal_id: str, snapshot: dict[str, Any]) -> Proposal:
    body = {k: v for k, v in snapshot.items() if k in SNAPSHOT_FIELDS}
    return Proposal.model_validate({**body, "id": proposal_id})

