from __future__ import annotations

from .engine import (
    HOURS_PER_YEAR,
    CostBreakdown,
    active_slots,
    cost_breakdown,
    escalation_factor,
    format_period,
    loaded_hourly_rate,
    map_contract_type,
    progress,
    rate_multiplier,
    total_value,
)
from .summary import build_summary

__all__ = [
    "HOURS_PER_YEAR",
    "CostBreakdown",
    "active_slots",
    "build_summary",
    "cost_breakdown",
    "escalation_factor",
    "format_period",
    "loaded_hourly_rate",
    "map_contract_type",
    "progress",
    "rate_multiplier",
    "total_value",
]
