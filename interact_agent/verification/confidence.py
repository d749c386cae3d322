"""
Next-goal look-ahead and confidence blending
"""
import logging
import re
from typing import Optional

from interact_agent.actions.action_type import ActionType
from interact_agent.views import NextGoal
from interact_agent.verification.types import ClientVerification, DOMCheckResults, NextGoalCheckResult

logger = logging.getLogger(__name__)

SEMANTIC_OVERRIDE_THRESHOLD = 0.85
DOM_WEIGHT = 0.3
SEMANTIC_WEIGHT = 0.7
URL_CHANGE_BOOST = 0.5
CLIENT_VERIFICATION_WEIGHT = 0.4
NOT_FOUND_PENALTY_CAP = 0.6


def _found(ok: bool) -> str:
    return "found" if ok else "not found"


def check_next_goal_availability(next_goal: NextGoal, dom: str) -> NextGoalCheckResult:
    """
    Check whether what the next step needs is already on the page.

    Tries the selector (#id, .class or tag name), then text content, then
    ARIA role. A goal with only a description counts as available.
    """
    available = False
    checks = []

    selector = next_goal.selector
    if selector:
        if selector.startswith("#"):
            element_id = selector[1:]
            available = f'id="{element_id}"' in dom or f"id='{element_id}'" in dom
        elif selector.startswith("."):
            class_name = selector[1:]
            available = any(
                needle in dom
                for needle in (
                    f'class="{class_name}"',
                    f"class='{class_name}'",
                    f" {class_name} ",
                    f' {class_name}"',
                    f" {class_name}'",
                )
            )
        else:
            available = f"<{selector.lower()}" in dom.lower()
        checks.append(f"selector({selector}): {_found(available)}")

    if not available and next_goal.text_content:
        available = next_goal.text_content in dom
        checks.append(f'text("{next_goal.text_content}"): {_found(available)}')

    if not available and next_goal.role:
        available = re.search(rf"role=[\"']?{re.escape(next_goal.role)}[\"']?", dom, re.IGNORECASE) is not None
        checks.append(f"role({next_goal.role}): {_found(available)}")

    if not checks and next_goal.description:
        available = True
        checks.append("no specific selector/text/role to verify")

    prefix = "Next-goal available" if available else "Next-goal NOT available"
    return NextGoalCheckResult(
        available=available,
        reason=f"{prefix}: {next_goal.description} ({', '.join(checks)})",
        required=next_goal.required,
    )


def calculate_confidence(
    dom_checks: DOMCheckResults,
    semantic_match: bool,
    semantic_confidence: Optional[float] = None,
    action_type: Optional[ActionType] = None,
    url_actually_changed: bool = False,
    expected_url_change: bool = False,
    client_verification: Optional[ClientVerification] = None,
    element_expected_but_missing: bool = False,
) -> float:
    """
    Blend DOM checks, the semantic verdict and client evidence into one score.

    A semantic confidence of at least SEMANTIC_OVERRIDE_THRESHOLD stands on its
    own; below it the DOM average (0.5 when nothing was checked) and the
    semantic confidence are weighted 0.3 / 0.7. A missing expected element caps
    the result at NOT_FOUND_PENALTY_CAP unless an expected navigation happened.
    """
    if semantic_confidence is None:
        semantic_confidence = 1.0 if semantic_match else 0.0

    confidence = 0.0
    cap = 1.0

    if client_verification is not None:
        if client_verification.element_found:
            confidence = max(confidence, CLIENT_VERIFICATION_WEIGHT)
        else:
            cap = min(cap, NOT_FOUND_PENALTY_CAP)
            logger.info(
                f"Client querySelector returned false for selector \"{client_verification.selector}\" "
                f"- capping confidence at {NOT_FOUND_PENALTY_CAP}"
            )
        if client_verification.url_changed and expected_url_change:
            confidence += 0.2

    if element_expected_but_missing and dom_checks.element_exists is False:
        if expected_url_change and url_actually_changed:
            logger.info("Expected element not found, but URL changed as expected - skipping penalty")
        else:
            cap = min(cap, NOT_FOUND_PENALTY_CAP)
            logger.info(f"Expected element not found in DOM context - capping confidence at {NOT_FOUND_PENALTY_CAP}")

    checked = dom_checks.checked_values()
    dom_average = sum(1 for v in checked if v) / len(checked) if checked else 0.5

    if action_type in ("navigation", "generic") and expected_url_change and url_actually_changed:
        confidence += URL_CHANGE_BOOST

    if semantic_confidence >= SEMANTIC_OVERRIDE_THRESHOLD:
        confidence = max(confidence, semantic_confidence)
    else:
        confidence = max(confidence, dom_average * DOM_WEIGHT + semantic_confidence * SEMANTIC_WEIGHT)

    return max(0.0, min(1.0, min(confidence, cap)))
