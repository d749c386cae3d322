"""
Action-Type Classification

Classifies an executed action into a behaviour type so verification can apply
type-specific rules (a dropdown opening is not a navigation).
"""
from typing import Literal

from interact_agent.actions.parser import (
    extract_click_element_id,
    extract_tag_name,
    find_element_by_id,
    has_navigation_indicator,
    has_popup_indicator,
)

ActionType = Literal["dropdown", "navigation", "generic"]


def classify_action_type(action: str, dom: str) -> ActionType:
    """
    Classify an action using the action string and the DOM it ran against.

    - dropdown: click on an element with aria-haspopup or data-has-popup
    - navigation: navigate(...), goBack(...), or a click on a link or tab
    - generic: everything else
    """
    lowered = action.strip().lower()
    if lowered.startswith("navigate(") or lowered.startswith("goback("):
        return "navigation"

    element_id = extract_click_element_id(action)
    if element_id:
        element_tag = find_element_by_id(dom, element_id)
        if element_tag:
            if has_popup_indicator(element_tag):
                return "dropdown"
            if has_navigation_indicator(element_tag):
                return "navigation"
            if extract_tag_name(element_tag) == "a":
                return "navigation"

    return "generic"
