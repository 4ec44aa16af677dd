from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

import anyio

from ..db.dynamodb.errors import DdbError, DdbThrottled, DdbUnavailable
from ..db.dynamodb.table import DynamoTable, get_main_table
from ..domain.models import ProposalSummary
from .errors import RemoteStoreError, RemoteUnavailable


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def proposal_key(proposal_id: str) -> dict[str, str]:
    return {"pk": f"PROPOSAL#{proposal_id}", "sk": "PROFILE"}


def _num(v: Any) -> float:
    try:
        return float(v or 0)
    except (TypeError, ValueError):
        return 0.0


def _pop_display(v: Any) -> str:
    # periodOfPerformance is stored as {"display": "..."}; older rows hold a bare string.
    if isinstance(v, dict):
        return str(v.get("display") or "")
    return str(v or "")


def summary_from_item(item: dict[str, Any]) -> ProposalSummary:
    ct = str(item.get("contractType") or "")
    return ProposalSummary(
        title=str(item.get("title") or ""),
        solicitation=str(item.get("solicitationNumber") or ""),
        client=str(item.get("agency") or ""),
        contractType=ct if ct in ("tm", "ffp", "hybrid") else "tm",
        dueDate=str(item["dueDate"]) if item.get("dueDate") else None,
        totalValue=_num(item.get("totalValue")),
        teamSize=int(_num(item.get("teamSize"))),
        periodOfPerformance=_pop_display(item.get("periodOfPerformance")),
        progress=int(_num(item.get("progress"))),
    )


def item_updates_from_summary(summary: ProposalSummary) -> dict[str, Any]:
    # DynamoDB numbers must be Decimal.
    return {
        "title": summary.title,
        "solicitationNumber": summary.solicitation,
        "agency": summary.client,
        "contractType": summary.contractType,
        "dueDate": summary.dueDate,
        "totalValue": Decimal(str(round(summary.totalValue, 2))),
        "teamSize": int(summary.teamSize),
        "periodOfPerformance": {"display": summary.periodOfPerformance},
        "progress": int(summary.progress),
    }


class DynamoRemoteStore:
    """Remote proposal store backed by the main DynamoDB table (PROPOSAL#{id} / PROFILE)."""

    def __init__(self, table_factory: Callable[[], DynamoTable] = get_main_table):
        self._table_factory = table_factory
        self._table: DynamoTable | None = None

    def _t(self) -> DynamoTable:
        if self._table is None:
            self._table = self._table_factory()
        return self._table

    async def fetch(self, proposal_id: str) -> ProposalSummary | None:
        try:
            item = await anyio.to_thread.run_sync(lambda: self._t().get_item(key=proposal_key(proposal_id)))
        except DdbError as e:
            raise _remote_error(e, "fetch", proposal_id) from e
        if not item:
            return None
        return summary_from_item(item)

    async def update(self, proposal_id: str, summary: ProposalSummary) -> ProposalSummary:
        updates = item_updates_from_summary(summary)

        now = now_iso()
        expr_parts: list[str] = []
        expr_names: dict[str, str] = {}
        expr_values: dict[str, Any] = {":u": now, ":e": "Proposal", ":id": proposal_id}

        for i, (k, v) in enumerate(updates.items(), start=1):
            nk = f"#k{i}"
            vk = f":v{i}"
            expr_names[nk] = k
            expr_values[vk] = v
            expr_parts.append(f"{nk} = {vk}")

        expr_parts.append("updatedAt = :u")
        expr_parts.append("entityType = if_not_exists(entityType, :e)")
        expr_parts.append("proposalId = if_not_exists(proposalId, :id)")

        def _op():
            return self._t().update_item(
                key=proposal_key(proposal_id),
                update_expression="SET " + ", ".join(expr_parts),
                expression_attribute_names=expr_names,
                expression_attribute_values=expr_values,
                return_values="ALL_NEW",
            )

        try:
            updated = await anyio.to_thread.run_sync(_op)
        except DdbError as e:
            raise _remote_error(e, "update", proposal_id) from e
        return summary_from_item(updated) if updated else summary


def _remote_error(e: DdbError, operation: str, proposal_id: str) -> RemoteStoreError:
    if isinstance(e, (DdbThrottled, DdbUnavailable)):
        return RemoteUnavailable(
            message=str(e), operation=operation, proposal_id=proposal_id, retryable=True, cause=e
        )
    return RemoteStoreError(message=str(e), operation=operation, proposal_id=proposal_id, cause=e)
