from __future__ import annotations

from typing import Any, Iterable

from .models import PeriodOfPerformance, Requirement, Role, active_slots, clamp_non_negative

UNTITLED_ROLE = "Untitled Role"
UNTITLED_REQUIREMENT = "Untitled Requirement"

_CATEGORY_BY_TYPE = {
    "delivery": "Deliverables",
    "reporting": "Reporting",
    "staffing": "Staffing",
    "compliance": "Compliance",
    "governance": "Governance",
    "transition": "Transition",
    "functional": "Core Features",
    "technical": "Technical",
    "management": "Management",
    "other": "Other",
}


def category_for_type(t: Any) -> str:
    return _CATEGORY_BY_TYPE.get(str(t or "").strip().lower(), "Other")


def _text(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def _fte(rec: dict[str, Any]) -> float:
    for k in ("fte", "quantity"):
        if rec.get(k) is not None:
            return clamp_non_negative(rec.get(k))
    return 1.0


def normalize_extracted_roles(
    records: Iterable[dict[str, Any] | None],
    pop: PeriodOfPerformance,
) -> list[Role]:
    """
    Turn extractor role suggestions into roles using the manual creation
    defaults. Extracted roles start active in every year the period of
    performance covers.
    """
    years = active_slots(pop)
    out: list[Role] = []
    for rec in records or []:
        if not isinstance(rec, dict):
            continue
        kwargs: dict[str, Any] = {
            "title": _text(rec.get("title")) or UNTITLED_ROLE,
            "laborCategory": _text(rec.get("laborCategory")),
            "baseSalary": clamp_non_negative(rec.get("baseSalary")),
            "fte": _fte(rec),
            "years": rec.get("years") if rec.get("years") is not None else years,
            "isKeyPersonnel": bool(rec.get("isKeyPersonnel") or False),
            "description": _text(rec.get("description") or rec.get("rationale")),
            "source": "extraction",
        }
        rid = _text(rec.get("id"))
        if rid:
            kwargs["id"] = rid
        out.append(Role(**kwargs))
    return out


def normalize_extracted_requirements(records: Iterable[dict[str, Any] | None]) -> list[Requirement]:
    out: list[Requirement] = []
    for rec in records or []:
        if not isinstance(rec, dict):
            continue
        rtype = _text(rec.get("type")).lower() or "other"
        page = rec.get("pageNumber")
        try:
            page_number = int(page) if page is not None else None
        except (TypeError, ValueError):
            page_number = None
        kwargs: dict[str, Any] = {
            "title": _text(rec.get("title")) or UNTITLED_REQUIREMENT,
            "text": _text(rec.get("text")),
            "type": rtype,
            "category": category_for_type(rtype),
            "sourceSection": _text(rec.get("sourceSection")),
            "pageNumber": page_number,
        }
        rid = _text(rec.get("id"))
        if rid:
            kwargs["id"] = rid
        out.append(Requirement(**kwargs))
    return out
