from __future__ import annotations

import math
import uuid
from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

YearSlot = Literal["base", "option1", "option2", "option3", "option4"]

# Canonical slot order; also the escalation index (base=0, optionN=N).
YEAR_SLOTS: tuple[YearSlot, ...] = ("base", "option1", "option2", "option3", "option4")

ContractType = Literal["FFP", "T&M", "CPFF", "CPAF", "IDIQ", "BPA", "GSA", "hybrid", ""]
_CONTRACT_TYPE_CODES = frozenset(get_args(ContractType))

UNTITLED_PROPOSAL = "Untitled Proposal"


def clamp_non_negative(v: Any) -> float:
    """Coerce to a finite, non-negative float; anything else becomes 0."""
    if isinstance(v, bool):
        return float(v)
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(f) or f < 0:
        return 0.0
    return f


def normalize_years(v: Any) -> list[str]:
    """
    Accept either a list/set of slots or the `{slot: bool}` mapping and return
    the active slots, de-duplicated, in canonical order. Unknown slots drop,
    and a value that is not a collection means no active years.
    """
    if v is None:
        return []
    if isinstance(v, dict):
        active = {str(k) for k, on in v.items() if on}
    elif isinstance(v, str):
        active = {v}
    else:
        try:
            active = {str(s) for s in v}
        except TypeError:
            return []
    return [s for s in YEAR_SLOTS if s in active]


Money = Annotated[float, BeforeValidator(clamp_non_negative)]
Years = Annotated[list[YearSlot], BeforeValidator(normalize_years)]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4()}"


class PeriodOfPerformance(BaseModel):
    baseYear: bool = True
    optionYears: int = 2

    @field_validator("optionYears", mode="before")
    @classmethod
    def _clamp_option_years(cls, v: Any) -> int:
        try:
            n = int(v or 0)
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(0, min(4, n))


def active_slots(pop: PeriodOfPerformance) -> list[str]:
    """Year slots a period of performance covers, in canonical order."""
    option_years = max(0, min(4, int(pop.optionYears or 0)))
    out: list[str] = ["base"] if pop.baseYear else []
    out.extend(f"option{i}" for i in range(1, option_years + 1))
    return out


class Solicitation(BaseModel):
    model_config = ConfigDict(extra="allow")

    solicitationNumber: str = ""
    title: str = ""
    clientAgency: str = ""
    subAgency: str = ""
    contractType: ContractType = ""
    proposalDueDate: str | None = None
    naicsCode: str = ""
    setAside: str = ""
    periodOfPerformance: PeriodOfPerformance = Field(default_factory=PeriodOfPerformance)

    @field_validator("contractType", mode="before")
    @classmethod
    def _known_contract_type(cls, v: Any) -> str:
        s = str(v or "").strip()
        return s if s in _CONTRACT_TYPE_CODES else ""


class Role(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: new_id("role"))
    title: str = ""
    laborCategory: str = ""
    baseSalary: Money = 0.0
    fte: Money = 1.0
    years: Years = Field(default_factory=list)
    isKeyPersonnel: bool = False
    description: str = ""
    source: Literal["manual", "extraction"] = "manual"


class Subcontractor(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: new_id("sub"))
    name: str = ""
    role: str = ""
    billedRate: Money = 0.0
    fte: Money = 1.0
    years: Years = Field(default_factory=list)


class LaborEstimate(BaseModel):
    model_config = ConfigDict(extra="allow")

    roleId: str
    hoursByPeriod: dict[str, Money] = Field(default_factory=dict)


class WbsElement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: new_id("wbs"))
    wbsNumber: str = ""
    title: str = ""
    description: str = ""
    laborEstimates: list[LaborEstimate] = Field(default_factory=list)


class Requirement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: new_id("req"))
    title: str = ""
    text: str = ""
    type: str = "other"
    category: str = "Other"
    sourceSection: str = ""
    pageNumber: int | None = None


class CostRates(BaseModel):
    """Indirect and profit rates as fractions (0.30 == 30%)."""

    fringe: Money = 0.45
    overhead: Money = 0.30
    gAndA: Money = 0.05
    profit: Money = 0.08
    escalation: Money = 0.02
    escalationEnabled: bool = True


class Proposal(BaseModel):
    id: str
    solicitation: Solicitation = Field(default_factory=Solicitation)
    roles: list[Role] = Field(default_factory=list)
    subcontractors: list[Subcontractor] = Field(default_factory=list)
    teamingPartners: list[dict[str, Any]] = Field(default_factory=list)
    wbsElements: list[WbsElement] = Field(default_factory=list)
    rateJustifications: dict[str, Any] = Field(default_factory=dict)
    odcs: list[dict[str, Any]] = Field(default_factory=list)
    perDiem: list[dict[str, Any]] = Field(default_factory=list)
    requirements: list[Requirement] = Field(default_factory=list)
    rates: CostRates = Field(default_factory=CostRates)


# Everything except `id` travels in the cached snapshot.
SNAPSHOT_FIELDS: tuple[str, ...] = tuple(f for f in Proposal.model_fields if f != "id")


class ProposalSummary(BaseModel):
    """The slice of a proposal the remote store models."""

    title: str = ""
    solicitation: str = ""
    client: str = ""
    contractType: Literal["tm", "ffp", "hybrid"] = "tm"
    dueDate: str | None = None
    totalValue: Money = 0.0
    teamSize: int = 0
    periodOfPerformance: str = ""
    progress: int = 0
