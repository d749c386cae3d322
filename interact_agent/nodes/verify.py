"""
Verify Node - Decide whether an executed action worked

This node:
1. Derives the inputs the client left unset (action type, look-ahead, observations)
2. Runs Tier 1 heuristics and, on the last step, the Tier 2 check
3. Falls back to Tier 3 semantic verification (DOM or observation mode)
4. Picks where the planner goes next
"""
import logging
from typing import Any, Dict, Literal, Optional, Tuple

from langchain_core.runnables import RunnableConfig

from interact_agent.actions.action_type import classify_action_type
from interact_agent.dom.helpers import compute_dom_hash
from interact_agent.llm import LangChainGenerator, TextGenerator
from interact_agent.state import InteractAgentState
from interact_agent.telemetry import capture_exception
from interact_agent.verification.confidence import check_next_goal_availability
from interact_agent.verification.dom_checks import extract_actual_state
from interact_agent.verification.observations import build_observation_list
from interact_agent.verification.semantic import verify_action
from interact_agent.verification.tiered import compute_is_last_step
from interact_agent.verification.types import ActualState, TieredVerificationOptions

logger = logging.getLogger(__name__)

NextRoute = Literal["correction", "next_step", "goal_achieved", "replan"]


def get_generator(config: Optional[RunnableConfig]) -> TextGenerator:
    """Model collaborator from the run config, or the LangChain default"""
    configurable = (config or {}).get("configurable", {})
    return configurable.get("generator") or LangChainGenerator()


def route_after_verification(state: InteractAgentState) -> NextRoute:
    """
    Where the planner goes after verification.

    Only a verdict with action_succeeded and task_completed both true ends the task.
    """
    if state.get("error"):
        return "replan"

    result = state.get("verification_result")
    if not result:
        return "replan"

    if result.get("route_to_correction"):
        return "correction"
    if result.get("action_succeeded") and result.get("task_completed"):
        return "goal_achieved"
    if result.get("action_succeeded"):
        return "next_step"
    return "correction"


def prepare_verification_inputs(state: InteractAgentState) -> Tuple[TieredVerificationOptions, Optional[ActualState]]:
    """
    Fill in what the client left unset from the page state it sent.

    - actual_state: visible text sample extracted from the DOM snapshot
    - action_type: classified from the action and the DOM after it
    - is_last_step: from the plan position
    - next_goal_check: look-ahead on expected_outcome.next_goal
    - observations: before/after comparison, for the observation prompts

    Values the client sent explicitly are kept.
    """
    options = state["verification_options"]
    actual_state = state.get("actual_state")
    provided = options.model_fields_set
    updates: Dict[str, Any] = {}

    dom = actual_state.dom_snapshot if actual_state is not None else ""
    if actual_state is not None and dom and actual_state.extracted_text is None:
        actual_state = extract_actual_state(dom, actual_state.url)

    if "action_type" not in provided and dom:
        updates["action_type"] = classify_action_type(options.action, dom)

    if "is_last_step" not in provided:
        updates["is_last_step"] = compute_is_last_step(state.get("current_step_index"), state.get("total_steps"))

    next_goal = options.expected_outcome.next_goal if options.expected_outcome else None
    if options.next_goal_check is None and next_goal is not None and dom:
        updates["next_goal_check"] = check_next_goal_availability(next_goal, dom)

    before_state = state.get("before_state")
    after_dom_hash = compute_dom_hash(dom) if dom else state.get("after_dom_hash")
    if not options.observations and before_state is not None and after_dom_hash:
        updates["observations"] = build_observation_list(
            before_state,
            actual_state.url if actual_state is not None else options.after_url,
            after_dom_hash,
            state.get("after_active_element"),
            state.get("client_observations"),
        )

    if updates:
        logger.debug(f"Derived verification inputs: {sorted(updates)}")
        options = options.model_copy(update=updates)
    return options, actual_state


async def verify_node(state: InteractAgentState, config: Optional[RunnableConfig] = None) -> Dict[str, Any]:
    """
    Verify node: tiered verification for one executed action

    Args:
        state: Current agent state (verification_options required)
        config: Run config; configurable["generator"] overrides the model collaborator

    Returns:
        Updated state with verification_result and route
    """
    options = state.get("verification_options")
    if options is None:
        return {"error": "verification_options missing", "route": "replan"}

    try:
        options, actual_state = prepare_verification_inputs(state)
        logger.info(f"Verify node - action {options.action} ({options.action_type}, last step: {options.is_last_step})")
        result = await verify_action(options, get_generator(config), actual_state, state.get("client_verification"))
        result_dict = result.model_dump()

        route = route_after_verification({"verification_result": result_dict})
        logger.info(f"✅ Verification via {result.tier}: succeeded={result.action_succeeded} completed={result.task_completed} → {route}")

        return {
            "verification_result": result_dict,
            "route": route,
            "history": [{
                "node": "verify",
                "tier": result.tier,
                "action": options.action,
                "action_succeeded": result.action_succeeded,
                "task_completed": result.task_completed,
                "route": route,
            }],
        }

    except Exception as e:
        logger.error(f"Error in verify node: {e}", exc_info=True)
        capture_exception(e, tags={"component": "verify-node"})
        return {
            "error": str(e),
            "route": "replan",
            "history": [{"node": "verify", "error": str(e)}],
        }
