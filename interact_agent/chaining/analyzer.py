"""
Chain Safety Analyzer

Decides whether a list of proposed actions can be sent to the client as one
chain. A chain is safe when every action is a low-risk chainable type, all
targets sit in the same form or container, and the action types do not mix
input with clicks that might navigate away.
"""
import logging
import re
from typing import Dict, List, Optional

from interact_agent.actions.grammar import (
    INPUT_ACTION_TYPES,
    extract_action_type,
    extract_element_id,
    is_chainable_action,
    is_high_risk_action,
    parse_action,
)
from interact_agent.config import settings
from interact_agent.dom.resolver import ElementInfo, ResolverFactory, default_resolver
from interact_agent.views import (
    ChainableGroups,
    ChainBlocker,
    ChainedAction,
    ChainMetadata,
    ChainReason,
    ChainSafetyAnalysis,
)

logger = logging.getLogger(__name__)

MAX_CHAIN_SIZE = settings.max_chain_size
MIN_CHAIN_SIZE = settings.min_chain_size
CHAIN_CONFIDENCE_THRESHOLD = settings.chain_confidence_threshold

FILL_INTENT_RE = re.compile(r"fill|enter|input|type|complete|form", re.IGNORECASE)

NO_FORM_KEY = "_noform"


class _Check:
    """Outcome of one analysis factor"""

    def __init__(self, ok: bool, reason: str, container_selector: Optional[str] = None):
        self.ok = ok
        self.reason = reason
        self.container_selector = container_selector


def analyze_chain_safety(
    actions: List[str],
    dom: str,
    resolver_factory: ResolverFactory = default_resolver,
) -> ChainSafetyAnalysis:
    """
    Analyze whether actions can be chained.

    Args:
        actions: Action strings in execution order
        dom: Simplified DOM snapshot the actions were planned against
        resolver_factory: Builds the element resolver for the DOM

    Returns:
        ChainSafetyAnalysis with confidence and blockers
    """
    if len(actions) < MIN_CHAIN_SIZE:
        return ChainSafetyAnalysis(can_chain=False, confidence=1.0, reason="Not enough actions to chain")

    high_risk = [a for a in actions if is_high_risk_action(a)]
    if high_risk:
        return ChainSafetyAnalysis(
            can_chain=False,
            confidence=1.0,
            reason=f"Contains high-risk actions: {', '.join(high_risk)}",
            blockers=["HIGH_RISK_ACTION"],
        )

    non_chainable = [a for a in actions if not is_chainable_action(a)]
    if non_chainable:
        return ChainSafetyAnalysis(
            can_chain=False,
            confidence=1.0,
            reason=f"Contains non-chainable actions: {', '.join(non_chainable)}",
        )

    element_ids = [i for i in (extract_element_id(a) for a in actions) if i is not None]
    if not element_ids:
        return ChainSafetyAnalysis(
            can_chain=False,
            confidence=0.8,
            reason="Could not extract element IDs from actions",
        )

    resolver = resolver_factory(dom)
    elements = [
        resolver.resolve(element_id) or ElementInfo(id=element_id, tag_name="unknown")
        for element_id in element_ids
    ]

    container = _analyze_container_relationship(elements)
    action_types = [t for t in (extract_action_type(a) for a in actions) if t is not None]
    consistency = _analyze_action_type_consistency(action_types)

    confidence = _calculate_chain_confidence(container, consistency, len(actions))

    blockers: List[ChainBlocker] = []
    if not container.ok:
        blockers.append("CROSS_CONTAINER")
    if not consistency.ok:
        blockers.append("DIFFERENT_INTERACTION_TYPE")

    can_chain = confidence >= CHAIN_CONFIDENCE_THRESHOLD and not blockers
    reason = (
        f"Actions can be chained: {container.reason}"
        if can_chain
        else f"Cannot chain: {', '.join(blockers) or consistency.reason}"
    )
    logger.debug(f"Chain safety for {len(actions)} actions: can_chain={can_chain} confidence={confidence:.2f} ({reason})")

    return ChainSafetyAnalysis(
        can_chain=can_chain,
        confidence=confidence,
        reason=reason,
        blockers=blockers,
        container_selector=container.container_selector if can_chain else None,
    )


def identify_chainable_groups(
    plan_step: str,
    dom: str,
    query: str,
    resolver_factory: ResolverFactory = default_resolver,
) -> ChainableGroups:
    """
    Propose a form-fill chain before the planner asks for one.

    Looks for fill intent in the plan step or user query, then picks the form
    with the most input and select elements.
    """
    if not (FILL_INTENT_RE.search(plan_step or "") or FILL_INTENT_RE.search(query or "")):
        return ChainableGroups(can_chain=False)

    form_elements = resolver_factory(dom).form_elements()
    if not form_elements:
        return ChainableGroups(can_chain=False)

    groups: Dict[str, List[ElementInfo]] = {}
    for element in form_elements:
        groups.setdefault(element.form_id or NO_FORM_KEY, []).append(element)

    best: List[ElementInfo] = []
    for elements in groups.values():
        inputs = [e for e in elements if e.is_input or e.is_select]
        if len(inputs) > len(best):
            best = inputs

    if len(best) < MIN_CHAIN_SIZE:
        return ChainableGroups(can_chain=False)

    return ChainableGroups(
        can_chain=True,
        reason="FORM_FILL",
        element_ids=[e.id for e in best[:MAX_CHAIN_SIZE]],
    )


def _action_duration(chained: ChainedAction) -> int:
    action_type = chained.action_type or extract_action_type(chained.action)
    if action_type in ("setValue", "select"):
        return 100
    if action_type in ("click", "check", "uncheck"):
        return 50
    if action_type == "wait":
        parsed = parse_action(chained.action)
        if parsed and parsed.args and isinstance(parsed.args[0], int) and not isinstance(parsed.args[0], bool):
            return parsed.args[0]
        return 100
    return 75


def build_chain_metadata(
    actions: List[ChainedAction],
    reason: ChainReason,
    container_selector: Optional[str] = None,
) -> ChainMetadata:
    """Metadata with the advisory duration estimate for the client's progress UI"""
    return ChainMetadata(
        total_actions=len(actions),
        estimated_duration=sum(_action_duration(a) for a in actions),
        safe_to_chain=True,
        chain_reason=reason,
        container_selector=container_selector,
    )


# =============================================================================
# Analysis helpers
# =============================================================================

def _analyze_container_relationship(elements: List[ElementInfo]) -> _Check:
    if not elements:
        return _Check(False, "No elements found")

    form_ids = {e.form_id for e in elements if e.form_id}
    if len(form_ids) == 1:
        form_id = next(iter(form_ids))
        return _Check(True, f"All elements in form {form_id}", container_selector=f"form#{form_id}")

    if not form_ids and all(e.is_input or e.is_select for e in elements):
        # No form context but all inputs: most likely one unnamed form
        return _Check(True, "All elements are input fields")

    return _Check(False, f"Elements spread across {len(form_ids)} containers")


def _analyze_action_type_consistency(action_types: List[str]) -> _Check:
    if not action_types:
        return _Check(False, "No action types found")

    has_input = any(t in INPUT_ACTION_TYPES for t in action_types)
    has_click = "click" in action_types

    if has_click and has_input:
        # Trailing submit clicks included: they may navigate mid-chain
        return _Check(False, "Click action may trigger navigation")
    if has_click:
        return _Check(False, "Click actions should not be chained")
    if has_input:
        return _Check(True, "Input actions only")
    return _Check(True, "Compatible action types")


def _calculate_chain_confidence(container: _Check, consistency: _Check, action_count: int) -> float:
    confidence = 1.0
    if not container.ok:
        confidence *= 0.3
    if not consistency.ok:
        confidence *= 0.4
    if action_count > 5:
        confidence *= 0.9
    if action_count > 8:
        confidence *= 0.85
    return max(0.0, min(1.0, confidence))
