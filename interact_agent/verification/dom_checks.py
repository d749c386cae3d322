"""
DOM checks for planner expectations

Compares the expected DOM changes the planner predicted with the DOM after the
action. Element expectations are skipped for dropdown/popup outcomes because a
freshly opened menu rarely matches the selector the planner guessed.
"""
import re
from typing import List, Optional

from interact_agent.actions.action_type import ActionType
from interact_agent.dom.helpers import (
    check_aria_expanded,
    check_element_exists,
    check_element_has_text,
    check_element_not_exists,
    check_roles_exist,
    has_significant_url_change,
)
from interact_agent.views import DomChanges, ExpectedOutcome
from interact_agent.verification.types import ActualState, DOMCheckResults

_TEXT_NODE_RE = re.compile(r"<[^>]*>([^<]+)</[^>]*>")


def extract_actual_state(dom: str, url: str) -> ActualState:
    """ActualState with a short text sample from the first text-bearing elements"""
    texts = _TEXT_NODE_RE.findall(dom or "")
    extracted = " ".join(texts[:10])[:500] if texts else None
    return ActualState(dom_snapshot=dom, url=url, extracted_text=extracted)


def _expects_expanded(dom_changes: DomChanges) -> bool:
    return any(
        c.attribute == "aria-expanded" and c.expected_value == "true"
        for c in dom_changes.attribute_changes
    )


def is_popup_expectation(dom_changes: DomChanges) -> bool:
    """Expected outcome describes a dropdown or popup opening in place"""
    if dom_changes.url_should_change is not False:
        return False
    return bool(dom_changes.elements_to_appear) or _expects_expanded(dom_changes)


def perform_dom_checks(
    expected_outcome: ExpectedOutcome,
    actual_state: ActualState,
    previous_url: Optional[str] = None,
    action_type: Optional[ActionType] = None,
) -> DOMCheckResults:
    dom_changes = expected_outcome.dom_changes
    if dom_changes is None:
        return DOMCheckResults()

    dom = actual_state.dom_snapshot
    popup = is_popup_expectation(dom_changes) or action_type == "dropdown"
    results = DOMCheckResults()

    if not popup:
        if dom_changes.element_should_exist:
            results.element_exists = check_element_exists(dom, dom_changes.element_should_exist)
        if dom_changes.element_should_not_exist:
            results.element_not_exists = check_element_not_exists(dom, dom_changes.element_should_not_exist)
        if dom_changes.element_should_have_text:
            expectation = dom_changes.element_should_have_text
            results.element_text_matches = check_element_has_text(dom, expectation.selector, expectation.text)

    if dom_changes.url_should_change is not None and previous_url is not None:
        url_changed = has_significant_url_change(previous_url, actual_state.url)
        results.url_changed = url_changed if dom_changes.url_should_change else not url_changed

    if _expects_expanded(dom_changes):
        results.attribute_changed = check_aria_expanded(dom, "true")

    if dom_changes.elements_to_appear:
        roles: List[str] = [e.role for e in dom_changes.elements_to_appear if e.role]
        selectors: List[str] = [e.selector for e in dom_changes.elements_to_appear if e.selector]
        has_roles = bool(roles) and check_roles_exist(dom, roles)
        has_selectors = any(check_element_exists(dom, s) for s in selectors)
        results.elements_appeared = has_roles or has_selectors

    return results
