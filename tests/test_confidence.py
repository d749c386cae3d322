from __future__ import annotations

import pytest

from interact_agent.verification import (
    ActualState,
    calculate_confidence,
    check_next_goal_availability,
    extract_actual_state,
    perform_dom_checks,
)
from interact_agent.verification.types import ClientVerification, DOMCheckResults
from interact_agent.views import DomChanges, ElementTextExpectation, ExpectedElement, ExpectedOutcome, NextGoal

# Next-goal look-ahead

def test_next_goal_by_id_selector() -> None:
    result = check_next_goal_availability(
        NextGoal(description="Email field", selector="#email", required=True), '<input id="email">'
    )

    assert result.available
    assert result.required
    assert result.reason == "Next-goal available: Email field (selector(#email): found)"


def test_next_goal_by_class_selector() -> None:
    goal = NextGoal(description="Primary button", selector=".btn-primary")

    assert check_next_goal_availability(goal, '<button class="btn btn-primary">Go</button>').available
    assert not check_next_goal_availability(goal, '<button class="btn-primary-outline">Go</button>').available


def test_next_goal_falls_back_to_text_then_role() -> None:
    by_text = check_next_goal_availability(
        NextGoal(description="Checkout", selector="#pay", text_content="Checkout"), "<button>Checkout</button>"
    )
    assert by_text.available
    assert by_text.reason == 'Next-goal available: Checkout (selector(#pay): not found, text("Checkout"): found)'

    by_role = check_next_goal_availability(NextGoal(description="Dialog", role="dialog"), "<div role='dialog'></div>")
    assert by_role.available


def test_next_goal_missing() -> None:
    result = check_next_goal_availability(NextGoal(description="Pay", selector="button"), "<div>nothing</div>")

    assert not result.available
    assert result.reason.startswith("Next-goal NOT available: Pay")


def test_next_goal_with_description_only_is_available() -> None:
    result = check_next_goal_availability(NextGoal(description="Continue"), "")

    assert result.available
    assert "no specific selector/text/role to verify" in result.reason


# Confidence

def test_high_semantic_confidence_stands_alone() -> None:
    assert calculate_confidence(DOMCheckResults(element_exists=False), True, 0.9) == pytest.approx(0.9)


def test_blend_below_threshold() -> None:
    all_passed = DOMCheckResults(element_exists=True, url_changed=True)
    assert calculate_confidence(all_passed, True, 0.5) == pytest.approx(0.3 + 0.35)

    nothing_checked = DOMCheckResults()
    assert calculate_confidence(nothing_checked, True, 0.6) == pytest.approx(0.15 + 0.42)


def test_semantic_confidence_defaults_from_match() -> None:
    assert calculate_confidence(DOMCheckResults(), True) == 1.0
    assert calculate_confidence(DOMCheckResults(), False) == pytest.approx(0.15)


def test_missing_expected_element_caps_confidence() -> None:
    checks = DOMCheckResults(element_exists=False)

    assert calculate_confidence(checks, True, 0.95, element_expected_but_missing=True) == pytest.approx(0.6)
    assert calculate_confidence(
        checks, True, 0.95,
        action_type="navigation",
        url_actually_changed=True,
        expected_url_change=True,
        element_expected_but_missing=True,
    ) == pytest.approx(0.95)


def test_client_verification() -> None:
    missing = ClientVerification(element_found=False, selector="#done")
    assert calculate_confidence(DOMCheckResults(), True, 0.95, client_verification=missing) == pytest.approx(0.6)

    found = ClientVerification(element_found=True, selector="#done")
    assert calculate_confidence(DOMCheckResults(), False, 0.0, client_verification=found) == pytest.approx(0.4)


def test_expected_url_change_boost() -> None:
    confidence = calculate_confidence(
        DOMCheckResults(),
        False,
        0.2,
        action_type="navigation",
        url_actually_changed=True,
        expected_url_change=True,
    )

    assert confidence == pytest.approx(0.5)


# DOM checks

def test_dom_checks_for_element_text_and_url() -> None:
    expected = ExpectedOutcome(dom_changes=DomChanges(
        element_should_exist="submit-btn",
        element_should_not_exist="spinner",
        element_should_have_text=ElementTextExpectation(selector="status", text="Saved"),
        url_should_change=True,
    ))
    actual = ActualState(
        dom_snapshot='<button id="submit-btn">Go</button><p id="status">Saved</p>',
        url="https://a.test/form",
    )

    results = perform_dom_checks(expected, actual, previous_url="https://a.test/form")

    assert results.element_exists is True
    assert results.element_not_exists is True
    assert results.element_text_matches is True
    assert results.url_changed is False
    assert results.attribute_changed is None


def test_popup_expectation_skips_element_checks() -> None:
    expected = ExpectedOutcome(dom_changes=DomChanges(
        element_should_exist="menu-guess",
        url_should_change=False,
        elements_to_appear=[ExpectedElement(role="menu")],
    ))
    actual = ActualState(dom_snapshot='<ul role="menu"><li>One</li></ul>', url="https://a.test/")

    results = perform_dom_checks(expected, actual, previous_url="https://a.test/")

    assert results.element_exists is None
    assert results.elements_appeared is True
    assert results.url_changed is True


def test_dropdown_action_skips_element_checks() -> None:
    expected = ExpectedOutcome(dom_changes=DomChanges(element_should_exist="menu-guess"))
    actual = ActualState(dom_snapshot="<div></div>", url="https://a.test/")

    assert perform_dom_checks(expected, actual, action_type="dropdown").element_exists is None
    assert perform_dom_checks(expected, actual).element_exists is False


def test_no_expected_changes() -> None:
    actual = ActualState(dom_snapshot="<div></div>", url="https://a.test/")
    assert perform_dom_checks(ExpectedOutcome(), actual).checked_values() == []


def test_extract_actual_state() -> None:
    state = extract_actual_state("<div><p>Hello</p><span>World</span></div>", "https://a.test/")

    assert state.extracted_text == "Hello World"
    assert extract_actual_state("", "https://a.test/").extracted_text is None
