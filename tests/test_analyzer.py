from __future__ import annotations

from interact_agent.chaining import analyze_chain_safety, build_chain_metadata, identify_chainable_groups
from interact_agent.views import ChainedAction

TWO_FORMS_DOM = (
    '[1] form id="billing"\n'
    '[2] input type="text" name="street"\n'
    '[6] form id="shipping"\n'
    '[7] input type="text" name="street2"'
)


def test_fewer_than_two_actions_is_certain_no() -> None:
    analysis = analyze_chain_safety(['setValue(2, "Jane")'], "")

    assert not analysis.can_chain
    assert analysis.confidence == 1.0
    assert analysis.blockers == []


def test_terminal_actions_block_chaining(form_dom: str) -> None:
    for terminal in ('finish("done")', 'fail("stuck")'):
        analysis = analyze_chain_safety(['setValue(2, "Jane")', terminal], form_dom)

        assert not analysis.can_chain
        assert analysis.confidence == 1.0
        assert analysis.blockers == ["HIGH_RISK_ACTION"]
        assert terminal in analysis.reason


def test_non_chainable_action_rejected(form_dom: str) -> None:
    analysis = analyze_chain_safety(['setValue(2, "Jane")', 'press("Enter")'], form_dom)

    assert not analysis.can_chain
    assert analysis.reason.startswith("Contains non-chainable actions")


def test_actions_without_element_ids() -> None:
    analysis = analyze_chain_safety(["scroll(true, 1)", "scroll(false, 2)"], "")

    assert not analysis.can_chain
    assert analysis.confidence == 0.8


def test_inputs_in_one_form_can_chain(form_dom: str) -> None:
    analysis = analyze_chain_safety(['setValue(2, "Jane")', 'setValue(3, "Doe")', 'select(4, "Canada")'], form_dom)

    assert analysis.can_chain
    assert analysis.confidence == 1.0
    assert analysis.blockers == []
    assert analysis.container_selector == "form#1"


def test_inputs_mixed_with_click_are_blocked(form_dom: str) -> None:
    analysis = analyze_chain_safety(['setValue(2, "Jane")', "click(5)"], form_dom)

    assert not analysis.can_chain
    assert analysis.blockers == ["DIFFERENT_INTERACTION_TYPE"]
    assert analysis.confidence < 0.7
    assert analysis.container_selector is None


def test_elements_across_forms_are_blocked() -> None:
    analysis = analyze_chain_safety(['setValue(2, "Main St")', 'setValue(7, "Side St")'], TWO_FORMS_DOM)

    assert not analysis.can_chain
    assert "CROSS_CONTAINER" in analysis.blockers


def test_inputs_without_form_context_can_chain() -> None:
    dom = '[2] input type="text" name="first"\n[3] input type="email" name="email"'

    analysis = analyze_chain_safety(['setValue(2, "Jane")', 'setValue(3, "jane@x.test")'], dom)

    assert analysis.can_chain
    assert analysis.container_selector is None


def test_identify_chainable_groups_picks_largest_form(form_dom: str) -> None:
    groups = identify_chainable_groups("Fill out the signup form", form_dom, "")

    assert groups.can_chain
    assert groups.reason == "FORM_FILL"
    assert groups.element_ids == [2, 3, 4]


def test_identify_chainable_groups_requires_fill_intent(form_dom: str) -> None:
    assert not identify_chainable_groups("Click the logo", form_dom, "go home").can_chain
    assert identify_chainable_groups("", form_dom, "please complete registration").can_chain


def test_chain_metadata_duration_estimate() -> None:
    actions = [
        ChainedAction(action='setValue(2, "Jane")', description="Enter first", index=0, action_type="setValue"),
        ChainedAction(action="check(8)", description="Accept terms", index=1, action_type="check"),
        ChainedAction(action="wait(300)", description="Wait", index=2, action_type="wait"),
    ]

    metadata = build_chain_metadata(actions, "RELATED_INPUTS", "form#1")

    assert metadata.total_actions == 3
    assert metadata.estimated_duration == 100 + 50 + 300
    assert metadata.safe_to_chain
    assert metadata.container_selector == "form#1"


def test_padded_terminal_action_is_reported_as_high_risk(form_dom: str) -> None:
    analysis = analyze_chain_safety(['setValue(2, "Jane")', ' finish("done")'], form_dom)

    assert not analysis.can_chain
    assert analysis.blockers == ["HIGH_RISK_ACTION"]
