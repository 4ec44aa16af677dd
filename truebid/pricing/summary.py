from __future__ import annotations

from ..domain.models import UNTITLED_PROPOSAL, Proposal, ProposalSummary
from .engine import format_period, map_contract_type, progress, team_size, total_value


def build_summary(proposal: Proposal) -> ProposalSummary:
    """The remote-facing summary: solicitation identity plus derived aggregates."""
    sol = proposal.solicitation
    return ProposalSummary(
        title=(sol.title or "").strip() or UNTITLED_PROPOSAL,
        solicitation=sol.solicitationNumber or "",
        client=sol.clientAgency or "",
        contractType=map_contract_type(sol.contractType),
        dueDate=sol.proposalDueDate or None,
        totalValue=round(total_value(proposal), 2),
        teamSize=team_size(proposal),
        periodOfPerformance=format_period(sol.periodOfPerformance),
        progress=progress(proposal),
    )
