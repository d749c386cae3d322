"""
Verification levels for chained actions

Intermediate steps of a form fill have outcomes the client can check locally
(the input holds the value, the box is ticked). Those run with client-side
checks only; clicks and the final step of a chain still go through server
verification.
"""
from typing import List, Optional

from interact_agent.actions.grammar import extract_action_type, extract_element_id, is_high_risk_action, parse_action
from interact_agent.views import (
    ActionChain,
    ChainedAction,
    ChainReason,
    ClientVerificationCheck,
    VerificationLevel,
)

CLIENT_VERIFIABLE_ACTIONS = frozenset({"setValue", "check", "uncheck", "select", "focus", "blur"})
REQUIRES_SERVER_VERIFICATION = frozenset({"click"})
CLIENT_SAFE_REASONS = frozenset({"FORM_FILL", "RELATED_INPUTS", "BULK_SELECTION"})


def determine_verification_level(
    action_type: Optional[str],
    is_last_in_chain: bool,
    has_navigation_risk: bool = False,
) -> VerificationLevel:
    if has_navigation_risk or not action_type:
        return "full"

    if action_type in REQUIRES_SERVER_VERIFICATION:
        return "full" if is_last_in_chain else "lightweight"

    if action_type in CLIENT_VERIFIABLE_ACTIONS:
        return "lightweight" if is_last_in_chain else "client"

    return "lightweight"


def can_use_client_verification(actions: List[ChainedAction], chain_reason: ChainReason) -> bool:
    """True when every action in the chain has a locally checkable outcome"""
    if chain_reason not in CLIENT_SAFE_REASONS:
        return False

    for chained in actions:
        action_type = chained.action_type or extract_action_type(chained.action)
        if not action_type or action_type in REQUIRES_SERVER_VERIFICATION:
            return False
        if is_high_risk_action(chained.action):
            return False

    return True


def build_client_verification_checks(action: str, action_type: Optional[str]) -> List[ClientVerificationCheck]:
    element_id = extract_element_id(action)

    if action_type == "setValue":
        parsed = parse_action(action)
        if element_id is not None and parsed and len(parsed.args) > 1 and isinstance(parsed.args[1], str):
            return [ClientVerificationCheck(type="value_matches", element_id=element_id, expected_value=parsed.args[1])]
        return []

    if action_type in ("check", "uncheck", "select"):
        return [ClientVerificationCheck(type="state_changed", element_id=element_id)] if element_id is not None else []

    if action_type in ("focus", "blur"):
        return [ClientVerificationCheck(type="element_visible", element_id=element_id)] if element_id is not None else []

    return [ClientVerificationCheck(type="no_error_message")]


def apply_verification_levels(chain: ActionChain) -> ActionChain:
    """Copy of the chain with per-action levels, checks and chain-level defaults"""
    last = len(chain.actions) - 1
    actions = []
    for chained in chain.actions:
        action_type = chained.action_type or extract_action_type(chained.action)
        level = determine_verification_level(action_type, chained.index == last)
        checks = build_client_verification_checks(chained.action, action_type) if level == "client" else None
        actions.append(chained.model_copy(update={
            "verification_level": level,
            "client_verification_checks": checks,
        }))

    client_ok = can_use_client_verification(actions, chain.metadata.chain_reason)
    metadata = chain.metadata.model_copy(update={
        "default_verification_level": "client" if client_ok else "lightweight",
        "client_verification_sufficient": client_ok,
        "final_verification_level": actions[-1].verification_level,
    })
    return chain.model_copy(update={"actions": actions, "metadata": metadata})
