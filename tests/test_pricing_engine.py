from __future__ import annotations

import math

import pytest

from truebid.domain.models import (
    CostRates,
    PeriodOfPerformance,
    Proposal,
    Role,
    Solicitation,
    Subcontractor,
    WbsElement,
)
from truebid.pricing import (
    build_summary,
    cost_breakdown,
    escalation_factor,
    format_period,
    loaded_hourly_rate,
    map_contract_type,
    progress,
    rate_multiplier,
    total_value,
)
from truebid.pricing.engine import role_annual_costs

DEFAULT_MULTIPLIER = 1.45 * 1.30 * 1.05 * 1.08


def test_rate_multiplier_stacks_rates_multiplicatively():
    assert rate_multiplier(CostRates()) == pytest.approx(DEFAULT_MULTIPLIER)
    assert rate_multiplier(CostRates(), include_profit=False) == pytest.approx(1.45 * 1.30 * 1.05)
    zero = CostRates(fringe=0, overhead=0, gAndA=0, profit=0)
    assert rate_multiplier(zero) == 1.0


def test_escalation_uses_position_of_the_year_slot():
    assert escalation_factor("base", 0.03) == 1.0
    assert escalation_factor("option1", 0.03) == pytest.approx(1.03)
    assert escalation_factor("option3", 0.03) == pytest.approx(1.03**3)
    # Negative rates clamp to no escalation.
    assert escalation_factor("option2", -0.5) == 1.0


def test_role_cost_sums_escalated_active_years():
    role = Role(baseSalary=100000, fte=1, years=["base", "option2"])
    p = Proposal(id="p", roles=[role])

    expected = 100000 * DEFAULT_MULTIPLIER * (1 + 1.02**2)
    assert total_value(p) == pytest.approx(expected)


@pytest.mark.parametrize(
    "rates,expected_multiplier",
    [
        (
            CostRates(fringe=0.30, overhead=0.50, gAndA=0.10, profit=0.08, escalation=0.03),
            1.30 * 1.50 * 1.10 * 1.08,
        ),
        (CostRates(), DEFAULT_MULTIPLIER),
    ],
)
def test_role_cost_for_base_and_first_option_year(rates, expected_multiplier):
    role = Role(baseSalary=100000, fte=1, years={"base": True, "option1": True})

    costs = role_annual_costs(role, rates)

    assert costs["base"] == pytest.approx(100000 * expected_multiplier)
    assert costs["option1"] == pytest.approx(100000 * expected_multiplier * (1 + rates.escalation))
    assert total_value(Proposal(id="p", roles=[role], rates=rates)) == pytest.approx(costs["base"] + costs["option1"])


def test_escalation_can_be_disabled():
    role = Role(baseSalary=100000, fte=0.5, years=["base", "option1", "option2"])
    p = Proposal(id="p", roles=[role], rates=CostRates(escalationEnabled=False))

    assert total_value(p) == pytest.approx(100000 * 0.5 * DEFAULT_MULTIPLIER * 3)


def test_subcontractor_cost_uses_billed_hours():
    sub = Subcontractor(billedRate=150, fte=2, years={"base": True, "option1": True, "option2": False})
    p = Proposal(id="p", subcontractors=[sub])

    assert total_value(p) == pytest.approx(150 * 1920 * 2 * (1 + 1.02))


def test_entity_with_no_active_years_costs_nothing():
    p = Proposal(
        id="p",
        roles=[Role(baseSalary=250000, years=[])],
        subcontractors=[Subcontractor(billedRate=300, years={})],
    )
    assert total_value(p) == 0.0


def test_invalid_numbers_are_clamped_to_zero():
    role = Role(baseSalary=-5, fte=float("nan"), years=["base"])
    assert role.baseSalary == 0.0
    assert role.fte == 0.0
    rates = CostRates(fringe="abc", overhead=float("inf"))
    assert rates.fringe == 0.0
    assert rates.overhead == 0.0
    assert total_value(Proposal(id="p", roles=[role])) == 0.0


def test_scalar_years_normalize_to_no_active_years():
    assert Role(years=5).years == []
    assert Subcontractor(years=2.5).years == []
    assert Role(years="option1").years == ["option1"]


def test_pricing_is_deterministic():
    p = Proposal(
        id="p",
        roles=[Role(id="r1", baseSalary=91000, fte=1.5, years=["base", "option1"])],
        subcontractors=[Subcontractor(id="s1", billedRate=88.5, years=["option1"])],
    )
    assert total_value(p) == total_value(p.model_copy(deep=True))
    assert cost_breakdown(p).to_dict() == cost_breakdown(p).to_dict()


def test_loaded_hourly_rate():
    assert loaded_hourly_rate(208000, CostRates()) == pytest.approx(100 * DEFAULT_MULTIPLIER)
    assert loaded_hourly_rate(-1, CostRates()) == 0.0


def test_progress_scores_each_milestone():
    p = Proposal(id="p")
    assert progress(p) == 0

    p = p.model_copy(update={"solicitation": Solicitation(solicitationNumber="SOL-1")})
    assert progress(p) == 15
    p = p.model_copy(update={"solicitation": Solicitation(solicitationNumber="SOL-1", clientAgency="VA")})
    assert progress(p) == 30
    p = p.model_copy(update={"roles": [Role()]})
    assert progress(p) == 70
    p = p.model_copy(update={"wbsElements": [WbsElement(wbsNumber="1.1")]})
    assert progress(p) == 100


def test_progress_never_decreases_when_adding_entities():
    p = Proposal(id="p", solicitation=Solicitation(title="T"))
    before = progress(p)
    after = progress(p.model_copy(update={"roles": [Role(), Role()], "wbsElements": [WbsElement()]}))
    assert after >= before


@pytest.mark.parametrize(
    "base,options,expected",
    [
        (True, 2, "1 Base + 2 OYs"),
        (True, 1, "1 Base + 1 OY"),
        (True, 0, "1 Base Year"),
        (False, 3, "3 Option Years"),
        (False, 1, "1 Option Year"),
        (False, 0, ""),
    ],
)
def test_format_period(base, options, expected):
    assert format_period(PeriodOfPerformance(baseYear=base, optionYears=options)) == expected


def test_option_years_clamp_to_four():
    assert PeriodOfPerformance(optionYears=9).optionYears == 4
    assert PeriodOfPerformance(optionYears=-2).optionYears == 0
    assert PeriodOfPerformance(optionYears=float("inf")).optionYears == 0
    assert PeriodOfPerformance(optionYears=float("nan")).optionYears == 0


@pytest.mark.parametrize(
    "code,expected",
    [("FFP", "ffp"), ("CPFF", "ffp"), ("T&M", "tm"), ("GSA", "tm"), ("IDIQ", "hybrid"), ("", "tm"), (None, "tm")],
)
def test_map_contract_type(code, expected):
    assert map_contract_type(code) == expected


def test_cost_breakdown_groups_by_year_and_entity():
    p = Proposal(
        id="p",
        roles=[Role(id="r1", baseSalary=100000, years=["base"])],
        subcontractors=[Subcontractor(id="s1", billedRate=100, years=["option1"])],
    )
    out = cost_breakdown(p).to_dict()

    assert out["byYear"]["base"] == pytest.approx(round(100000 * DEFAULT_MULTIPLIER, 2))
    assert out["byYear"]["option1"] == pytest.approx(192000 * 1.02)
    assert out["byYear"]["option4"] == 0.0
    assert set(out["roles"]) == {"r1"}
    assert set(out["subcontractors"]) == {"s1"}
    assert out["total"] == pytest.approx(out["laborTotal"] + out["subcontractorTotal"])


def test_summary_derives_remote_fields():
    p = Proposal(
        id="p",
        solicitation=Solicitation(
            solicitationNumber="70RSAT",
            clientAgency="DHS",
            contractType="BPA",
            proposalDueDate="2026-05-01",
            periodOfPerformance=PeriodOfPerformance(baseYear=True, optionYears=4),
        ),
        roles=[Role(baseSalary=1000, years=["base"])],
        subcontractors=[Subcontractor()],
    )
    s = build_summary(p)

    assert s.title == "Untitled Proposal"
    assert s.solicitation == "70RSAT"
    assert s.client == "DHS"
    assert s.contractType == "hybrid"
    assert s.dueDate == "2026-05-01"
    assert s.teamSize == 2
    assert s.periodOfPerformance == "1 Base + 4 OYs"
    assert s.progress == 70
    assert s.totalValue == pytest.approx(1000 * DEFAULT_MULTIPLIER, abs=0.01)
    assert not math.isnan(s.totalValue)
