"""Pure cost, escalation and progress derivations for a proposal.

Nothing here performs I/O or mutates its inputs. Every function is total over
valid models and clamps numbers that slipped past validation (e.g. objects
built with `model_construct`), so totals are never negative or NaN.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from ..domain.models import (
    YEAR_SLOTS,
    CostRates,
    PeriodOfPerformance,
    Proposal,
    Role,
    Solicitation,
    Subcontractor,
    WbsElement,
    active_slots,
    clamp_non_negative,
)

# Subcontractor billed hours per FTE-year.
HOURS_PER_YEAR = 1920
# Direct hourly rate basis: salary / 2080 regardless of billable hours.
STANDARD_HOURS_PER_YEAR = 2080

_SLOT_INDEX = {slot: i for i, slot in enumerate(YEAR_SLOTS)}

_CONTRACT_TYPE_MAP = {
    "FFP": "ffp",
    "CPFF": "ffp",
    "CPAF": "ffp",
    "T&M": "tm",
    "GSA": "tm",
    "hybrid": "hybrid",
    "IDIQ": "hybrid",
    "BPA": "hybrid",
}


def rate_multiplier(rates: CostRates, *, include_profit: bool = True) -> float:
    """
    Burdened multiplier on unburdened direct labor.

    Fringe, then overhead, then G&A on the loaded total, then profit last:
    (1 + fringe) * (1 + overhead) * (1 + G&A) * (1 + profit).
    """
    m = (
        (1.0 + clamp_non_negative(rates.fringe))
        * (1.0 + clamp_non_negative(rates.overhead))
        * (1.0 + clamp_non_negative(rates.gAndA))
    )
    if include_profit:
        m *= 1.0 + clamp_non_negative(rates.profit)
    return m


def escalation_factor(slot: str, rate: float) -> float:
    # optionN is N years from base even when earlier option years are inactive.
    years_from_base = _SLOT_INDEX.get(slot, 0)
    return (1.0 + clamp_non_negative(rate)) ** years_from_base


def _escalation(slot: str, rates: CostRates) -> float:
    if not rates.escalationEnabled:
        return 1.0
    return escalation_factor(slot, rates.escalation)


def loaded_hourly_rate(base_salary: float, rates: CostRates, *, include_profit: bool = True) -> float:
    base_rate = clamp_non_negative(base_salary) / STANDARD_HOURS_PER_YEAR
    return base_rate * rate_multiplier(rates, include_profit=include_profit)


def role_annual_costs(role: Role, rates: CostRates) -> dict[str, float]:
    """Cost per active year slot for one role."""
    base = clamp_non_negative(role.baseSalary) * clamp_non_negative(role.fte)
    multiplier = rate_multiplier(rates)
    return {slot: base * multiplier * _escalation(slot, rates) for slot in _active(role.years)}


def subcontractor_annual_costs(sub: Subcontractor, rates: CostRates) -> dict[str, float]:
    """Cost per active year slot for one subcontractor (billed rates are fully burdened)."""
    base = clamp_non_negative(sub.billedRate) * HOURS_PER_YEAR * clamp_non_negative(sub.fte)
    return {slot: base * _escalation(slot, rates) for slot in _active(sub.years)}


def role_total_cost(role: Role, rates: CostRates) -> float:
    return sum(role_annual_costs(role, rates).values())


def subcontractor_total_cost(sub: Subcontractor, rates: CostRates) -> float:
    return sum(subcontractor_annual_costs(sub, rates).values())


def total_value(proposal: Proposal) -> float:
    rates = proposal.rates
    total = 0.0
    for role in proposal.roles:
        total += role_total_cost(role, rates)
    for sub in proposal.subcontractors:
        total += subcontractor_total_cost(sub, rates)
    return total


def team_size(proposal: Proposal) -> int:
    return len(proposal.roles) + len(proposal.subcontractors)


def progress(proposal: Proposal) -> int:
    return progress_score(proposal.solicitation, proposal.roles, proposal.wbsElements)


def progress_score(
    solicitation: Solicitation,
    roles: Iterable[Role],
    wbs_elements: Iterable[WbsElement],
) -> int:
    score = 0
    if (solicitation.title or "").strip() or (solicitation.solicitationNumber or "").strip():
        score += 15
    if (solicitation.clientAgency or "").strip():
        score += 15
    if any(True for _ in roles):
        score += 40
    if any(True for _ in wbs_elements):
        score += 30
    return min(score, 100)


def format_period(pop: PeriodOfPerformance) -> str:
    option_years = max(0, int(pop.optionYears or 0))
    if pop.baseYear and option_years > 0:
        return f"1 Base + {option_years} OY{'s' if option_years > 1 else ''}"
    if pop.baseYear:
        return "1 Base Year"
    if option_years > 0:
        return f"{option_years} Option Year{'s' if option_years > 1 else ''}"
    return ""


def map_contract_type(code: str | None) -> str:
    return _CONTRACT_TYPE_MAP.get(str(code or ""), "tm")


@dataclass(slots=True)
class CostBreakdown:
    by_year: dict[str, float] = field(default_factory=dict)
    roles: dict[str, float] = field(default_factory=dict)
    subcontractors: dict[str, float] = field(default_factory=dict)
    labor_total: float = 0.0
    subcontractor_total: float = 0.0

    @property
    def total(self) -> float:
        return self.labor_total + self.subcontractor_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "byYear": {k: round(v, 2) for k, v in self.by_year.items()},
            "roles": {k: round(v, 2) for k, v in self.roles.items()},
            "subcontractors": {k: round(v, 2) for k, v in self.subcontractors.items()},
            "laborTotal": round(self.labor_total, 2),
            "subcontractorTotal": round(self.subcontractor_total, 2),
            "total": round(self.total, 2),
        }


def cost_breakdown(proposal: Proposal) -> CostBreakdown:
    rates = proposal.rates
    out = CostBreakdown(by_year={slot: 0.0 for slot in YEAR_SLOTS})

    for role in proposal.roles:
        costs = role_annual_costs(role, rates)
        for slot, cost in costs.items():
            out.by_year[slot] += cost
        out.roles[role.id] = out.roles.get(role.id, 0.0) + sum(costs.values())
        out.labor_total += sum(costs.values())

    for sub in proposal.subcontractors:
        costs = subcontractor_annual_costs(sub, rates)
        for slot, cost in costs.items():
            out.by_year[slot] += cost
        out.subcontractors[sub.id] = out.subcontractors.get(sub.id, 0.0) + sum(costs.values())
        out.subcontractor_total += sum(costs.values())

    return out


def _active(years: Iterable[str] | None) -> list[str]:
    if not years:
        return []
    seen = set(years)
    return [slot for slot in YEAR_SLOTS if slot in seen]
