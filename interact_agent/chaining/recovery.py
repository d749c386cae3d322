"""
Chain Recovery

When the client reports that a chain stopped part-way, pick how to continue:
retry the failed action on a nearby element, skip it, ask the planner for a
fresh chain, fall back to one action at a time, or abort.

Recovery only produces the decision. For REGENERATE_CHAIN the caller runs the
planner against the current DOM; this module never calls a model.
"""
import logging
from typing import Optional

from interact_agent.actions.grammar import extract_action_type, extract_element_id, parse_action
from interact_agent.config import settings
from interact_agent.dom.resolver import ResolverFactory, default_resolver
from interact_agent.errors import ChainValidationError
from interact_agent.telemetry import capture_message
from interact_agent.views import (
    ELEMENT_DISABLED,
    ELEMENT_NOT_FOUND,
    ELEMENT_NOT_VISIBLE,
    ELEMENT_OBSCURED,
    INVALID_STATE,
    NETWORK_ERROR,
    TIMEOUT,
    ActionChain,
    ChainActionError,
    ChainedAction,
    ChainPartialState,
    ChainRecoveryResult,
    PartialStateValidation,
    RecoveryStrategy,
    SingleActionInstruction,
)

logger = logging.getLogger(__name__)

# Enforced by the caller that acts on RETRY_FAILED (see nodes/recover.py)
MAX_RETRY_ATTEMPTS = settings.max_retry_attempts

# Fewer remaining actions than this after a skip: no chain
MIN_REMAINING_FOR_CHAIN = 2

ALTERNATIVE_ELEMENT_MAX_DISTANCE = settings.alternative_element_max_distance


async def handle_chain_partial_failure(
    original_chain: ActionChain,
    last_executed_action_index: int,
    partial_state: ChainPartialState,
    current_dom: str,
    error: Optional[ChainActionError] = None,
    resolver_factory: ResolverFactory = default_resolver,
) -> ChainRecoveryResult:
    """
    Decide how to continue after a chain failed part-way.

    Args:
        original_chain: Chain that was sent to the client
        last_executed_action_index: Index of the last action that succeeded (-1 if none)
        partial_state: Client report of how far the chain got
        current_dom: DOM snapshot taken after the failure
        error: Error the client reported for the failed action, if any
        resolver_factory: Builds the element resolver for the DOM

    Returns:
        ChainRecoveryResult with the strategy and its payload
    """
    total = len(original_chain.actions)
    logger.info(f"🔧 Chain recovery: failure after index {last_executed_action_index} (chain size {total})")

    if partial_state.total_actions_in_chain != total:
        capture_message(
            "Chain length mismatch in recovery",
            level="warning",
            extra={"expected": total, "reported": partial_state.total_actions_in_chain},
        )

    failed_index = last_executed_action_index + 1
    if failed_index < 0 or failed_index >= total:
        logger.info("Failed action not found in chain, regenerating")
        return create_regenerate_result(original_chain, last_executed_action_index)

    failed_action = original_chain.actions[failed_index]

    if failed_action.can_fail:
        logger.info(f"Action {failed_index} is marked can_fail, skipping it")
        return create_skip_result(original_chain, failed_index)

    strategy = determine_recovery_strategy(error, failed_action, current_dom, resolver_factory)
    logger.info(f"Recovery strategy for {error.code if error else 'unknown error'}: {strategy}")

    if strategy == "RETRY_FAILED":
        return create_retry_result(failed_action, current_dom, error, resolver_factory)
    if strategy == "SKIP_FAILED":
        return create_skip_result(original_chain, failed_index)
    if strategy == "REGENERATE_CHAIN":
        return create_regenerate_result(original_chain, last_executed_action_index)
    if strategy == "SINGLE_ACTION":
        return create_single_action_result(original_chain, failed_index)

    return ChainRecoveryResult(
        strategy="ABORT",
        reason=(error.message if error else None) or "Unrecoverable chain failure",
    )


def determine_recovery_strategy(
    error: Optional[ChainActionError],
    failed_action: ChainedAction,
    current_dom: str,
    resolver_factory: ResolverFactory = default_resolver,
) -> RecoveryStrategy:
    """Map the client's error code to a recovery strategy"""
    if error is None:
        # Nothing to reason about
        return "REGENERATE_CHAIN"

    code = error.code
    if code == ELEMENT_NOT_FOUND:
        if find_alternative_action(failed_action, current_dom, resolver_factory) is not None:
            return "RETRY_FAILED"
        return "REGENERATE_CHAIN"
    if code == TIMEOUT:
        return "RETRY_FAILED"
    if code in (ELEMENT_NOT_VISIBLE, ELEMENT_OBSCURED):
        return "REGENERATE_CHAIN"
    if code == ELEMENT_DISABLED:
        return "SKIP_FAILED" if failed_action.can_fail else "REGENERATE_CHAIN"
    if code == INVALID_STATE:
        return "SINGLE_ACTION"
    if code == NETWORK_ERROR:
        return "ABORT"
    return "REGENERATE_CHAIN"


def find_alternative_action(
    failed_action: ChainedAction,
    current_dom: str,
    resolver_factory: ResolverFactory = default_resolver,
) -> Optional[ChainedAction]:
    """
    Retarget the failed action at the nearest element of the same kind.

    Candidates come from the resolver; the original id is excluded and the
    closest id wins (first in document order on ties) if it is within
    ALTERNATIVE_ELEMENT_MAX_DISTANCE.
    """
    action_type = failed_action.action_type or extract_action_type(failed_action.action)
    original_id = failed_action.target_element_id
    if original_id is None:
        original_id = extract_element_id(failed_action.action)
    if not action_type or original_id is None:
        return None

    closest_id: Optional[int] = None
    closest_distance = 0
    for candidate in resolver_factory(current_dom).candidates_for(action_type):
        if candidate == original_id:
            continue
        distance = abs(candidate - original_id)
        if closest_id is None or distance < closest_distance:
            closest_id, closest_distance = candidate, distance

    if closest_id is None or closest_distance > ALTERNATIVE_ELEMENT_MAX_DISTANCE:
        return None

    parsed = parse_action(failed_action.action)
    if parsed is None or parsed.element_id is None:
        return None

    return failed_action.model_copy(update={
        "action": parsed.with_element_id(closest_id).to_action_string(),
        "target_element_id": closest_id,
        "description": f"{failed_action.description} (alternative element)",
    })


# =============================================================================
# Result builders
# =============================================================================

def create_retry_result(
    failed_action: ChainedAction,
    current_dom: str,
    error: Optional[ChainActionError] = None,
    resolver_factory: ResolverFactory = default_resolver,
) -> ChainRecoveryResult:
    alternative = find_alternative_action(failed_action, current_dom, resolver_factory)
    if alternative is not None:
        return ChainRecoveryResult(
            strategy="RETRY_FAILED",
            reason=f"Retrying with alternative selector: {(error.code if error else None) or 'unknown error'}",
            corrected_action=alternative,
        )

    return ChainRecoveryResult(
        strategy="REGENERATE_CHAIN",
        reason="Cannot find alternative for failed action, regenerating chain",
    )


def create_skip_result(original_chain: ActionChain, skip_index: int) -> ChainRecoveryResult:
    remaining = original_chain.actions[skip_index + 1:]

    if len(remaining) < MIN_REMAINING_FOR_CHAIN:
        if len(remaining) == 1:
            return ChainRecoveryResult(
                strategy="SINGLE_ACTION",
                reason="Only one action remaining after skip",
                single_action=SingleActionInstruction(
                    action=remaining[0].action,
                    thought=f"Continuing with: {remaining[0].description}",
                ),
            )
        return ChainRecoveryResult(strategy="ABORT", reason="No actions remaining after skip")

    new_chain = ActionChain(
        actions=[a.model_copy(update={"index": i}) for i, a in enumerate(remaining)],
        metadata=original_chain.metadata.model_copy(update={"total_actions": len(remaining)}),
    )
    return ChainRecoveryResult(
        strategy="SKIP_FAILED",
        reason=f"Skipped failed action (canFail=true), continuing with {len(remaining)} remaining",
        new_chain=new_chain,
    )


def create_regenerate_result(original_chain: ActionChain, last_success_index: int) -> ChainRecoveryResult:
    total = len(original_chain.actions)
    if not original_chain.actions[max(last_success_index + 1, 0):]:
        return ChainRecoveryResult(strategy="ABORT", reason="No actions remaining to regenerate")

    return ChainRecoveryResult(
        strategy="REGENERATE_CHAIN",
        reason=f"Regenerating chain from current DOM state. Completed {last_success_index + 1}/{total} actions.",
    )


def create_single_action_result(original_chain: ActionChain, from_index: int) -> ChainRecoveryResult:
    if not 0 <= from_index < len(original_chain.actions):
        return ChainRecoveryResult(strategy="ABORT", reason="No action available for single-action mode")

    next_action = original_chain.actions[from_index]
    return ChainRecoveryResult(
        strategy="SINGLE_ACTION",
        reason="Switching to single-action mode for stability",
        single_action=SingleActionInstruction(
            action=next_action.action,
            thought=f"Single-action mode: {next_action.description}",
        ),
    )


# =============================================================================
# Validation
# =============================================================================

def validate_chain_partial_state(
    partial_state: ChainPartialState,
    original_chain: ActionChain,
    last_executed_action_index: Optional[int] = None,
) -> PartialStateValidation:
    """
    Check a client report against the chain the server issued.

    When given, last_executed_action_index must point at the last reported
    action (-1 when nothing ran).
    """
    total = len(original_chain.actions)

    if partial_state.total_actions_in_chain != total:
        return PartialStateValidation(
            valid=False,
            error=f"Total actions mismatch: expected {total}, got {partial_state.total_actions_in_chain}",
        )

    if len(partial_state.executed_actions) >= total:
        return PartialStateValidation(valid=False, error="Executed actions count exceeds total")

    executed_count = len(partial_state.executed_actions)
    if last_executed_action_index is not None and last_executed_action_index != executed_count - 1:
        return PartialStateValidation(
            valid=False,
            error=(
                f"Last executed index mismatch: {executed_count} actions reported, "
                f"index {last_executed_action_index}"
            ),
        )

    for i, executed in enumerate(partial_state.executed_actions):
        expected = original_chain.actions[i].action
        if executed != expected:
            return PartialStateValidation(
                valid=False,
                error=f'Action mismatch at index {i}: expected "{expected}", got "{executed}"',
            )

    return PartialStateValidation(valid=True)


def require_valid_partial_state(
    partial_state: ChainPartialState,
    original_chain: ActionChain,
    last_executed_action_index: Optional[int] = None,
) -> None:
    """Raise ChainValidationError when the client report does not match the chain"""
    validation = validate_chain_partial_state(partial_state, original_chain, last_executed_action_index)
    if not validation.valid:
        raise ChainValidationError(validation.error)
