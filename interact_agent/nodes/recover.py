"""
Recover Node - Continue after a partially failed chain

This node:
1. Validates the client's partial-state report against the issued chain
2. Picks a recovery strategy
3. Enforces the retry budget: once MAX_RETRY_ATTEMPTS corrected retries were
   issued for the failed action, a further RETRY_FAILED becomes REGENERATE_CHAIN
"""
import logging
from typing import Any, Dict

from interact_agent.chaining.recovery import (
    MAX_RETRY_ATTEMPTS,
    handle_chain_partial_failure,
    require_valid_partial_state,
)
from interact_agent.errors import ChainValidationError
from interact_agent.state import InteractAgentState
from interact_agent.telemetry import capture_exception
from interact_agent.views import ChainRecoveryResult

logger = logging.getLogger(__name__)


async def recover_node(state: InteractAgentState) -> Dict[str, Any]:
    """
    Recover node: chain partial-failure recovery

    Args:
        state: Current agent state (original_chain and partial_state required)

    Returns:
        Updated state with recovery_result and retry_attempts
    """
    chain = state.get("original_chain")
    partial_state = state.get("partial_state")
    if chain is None or partial_state is None:
        return {"error": "original_chain and partial_state are required for recovery"}

    retry_attempts = state.get("retry_attempts", 0)
    last_executed_action_index = state.get("last_executed_action_index", -1)

    try:
        require_valid_partial_state(partial_state, chain, last_executed_action_index)

        result = await handle_chain_partial_failure(
            chain,
            last_executed_action_index,
            partial_state,
            state.get("current_dom", ""),
            state.get("chain_error"),
        )

        if result.strategy == "RETRY_FAILED":
            if retry_attempts >= MAX_RETRY_ATTEMPTS:
                logger.warning(f"⚠️ Retry limit reached ({retry_attempts}/{MAX_RETRY_ATTEMPTS}), regenerating chain")
                result = ChainRecoveryResult(
                    strategy="REGENERATE_CHAIN",
                    reason=f"Retry limit reached ({MAX_RETRY_ATTEMPTS} attempts), regenerating chain",
                )
            else:
                retry_attempts += 1

        logger.info(f"Recovery decision: {result.strategy} - {result.reason}")
        return {
            "recovery_result": result,
            "retry_attempts": retry_attempts,
            "history": [{"node": "recover_chain", "strategy": result.strategy, "reason": result.reason}],
        }

    except ChainValidationError as e:
        logger.error(f"Invalid chain partial state: {e}")
        return {
            "error": str(e),
            "history": [{"node": "recover_chain", "error": str(e)}],
        }
    except Exception as e:
        logger.error(f"Error in recover node: {e}", exc_info=True)
        capture_exception(e, tags={"component": "recover-node"})
        return {
            "error": str(e),
            "history": [{"node": "recover_chain", "error": str(e)}],
        }
