from __future__ import annotations

import pytest

from truebid.domain.models import PeriodOfPerformance, Proposal, Solicitation
from truebid.sync.state import ProposalState, next_wbs_number


def _state(**kw) -> ProposalState:
    return ProposalState(Proposal(id="p1", **kw))


def test_listeners_receive_changed_fields():
    st = _state()
    seen: list[frozenset[str]] = []
    unsubscribe = st.subscribe(lambda _p, fields: seen.append(fields))

    st.update_solicitation(title="Bid")
    unsubscribe()
    st.update_solicitation(title="Ignored")

    assert seen == [frozenset({"solicitation"})]


def test_id_is_immutable():
    st = _state()
    with pytest.raises(ValueError):
        st.update(id="other")
    with pytest.raises(ValueError):
        st.update(notAField=1)
    assert st.proposal_id == "p1"


def test_new_roles_default_to_the_period_of_performance():
    st = _state(solicitation=Solicitation(periodOfPerformance=PeriodOfPerformance(baseYear=True, optionYears=1)))
    role = st.add_role(title="Analyst")
    assert role.years == ["base", "option1"]
    assert st.proposal.roles == [role]


def test_update_and_remove_role():
    st = _state()
    role = st.add_role(title="Dev", baseSalary=90000)
    st.update(rateJustifications={role.id: "market survey"})

    updated = st.update_role(role.id, baseSalary=95000)
    assert updated.baseSalary == 95000
    assert updated.title == "Dev"

    assert st.remove_role(role.id) is True
    assert st.proposal.roles == []
    assert st.proposal.rateJustifications == {}
    assert st.remove_role(role.id) is False

    with pytest.raises(KeyError):
        st.update_role("missing", title="x")


def test_subcontractors_round_trip_through_helpers():
    st = _state()
    sub = st.add_subcontractor(name="Acme", billedRate=120)
    st.update_subcontractor(sub.id, fte=0.5)
    assert st.proposal.subcontractors[0].fte == 0.5
    assert st.remove_subcontractor(sub.id) is True
    assert st.proposal.subcontractors == []


def test_wbs_elements_are_numbered_sequentially():
    st = _state()
    assert st.add_wbs_element(title="PM").wbsNumber == "1.1"
    assert st.add_wbs_element(title="Dev").wbsNumber == "1.2"
    assert st.add_wbs_element(title="Custom", wbsNumber="2.5").wbsNumber == "2.5"
    assert st.add_wbs_element(title="Next").wbsNumber == "2.6"


def test_next_wbs_number_tolerates_odd_values():
    assert next_wbs_number([]) == "1.1"
    assert next_wbs_number(["1.9", "1.10"]) == "1.11"
    assert next_wbs_number(["x"]) == "1.1"


def test_apply_extraction_is_a_single_change():
    st = _state()
    calls: list[frozenset[str]] = []
    st.subscribe(lambda _p, fields: calls.append(fields))

    roles, reqs = st.apply_extraction(
        roles=[{"title": "Program Manager", "quantity": 2}],
        requirements=[{"text": "Monthly status report", "type": "reporting"}],
    )

    assert len(roles) == 1 and len(reqs) == 1
    assert calls == [frozenset({"roles", "requirements"})]


def test_apply_extraction_with_nothing_is_a_no_op():
    st = _state()
    calls: list[frozenset[str]] = []
    st.subscribe(lambda _p, fields: calls.append(fields))
    assert st.apply_extraction(roles=[], requirements=None) == ([], [])
    assert calls == []
