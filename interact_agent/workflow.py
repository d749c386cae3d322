"""
LangGraph Workflow Definition

One round of the interact loop: START routes to chain recovery when the client
reported a partially failed chain, otherwise to verification of the executed
action. Both end the round; the planner reads recovery_result or route.
"""
import logging
from typing import Any, Literal

from langgraph.graph import END, START, StateGraph

from interact_agent.nodes import recover_node, verify_node
from interact_agent.state import InteractAgentState

logger = logging.getLogger(__name__)


def route_round(state: InteractAgentState) -> Literal["recover_chain", "verify"]:
    """Router for the round entry: recovery needs an issued chain and a partial-state report"""
    if state.get("original_chain") is not None and state.get("partial_state") is not None:
        return "recover_chain"
    return "verify"


def create_interact_workflow() -> Any:
    """
    Create the interact round workflow

    Architecture:
    - START → RECOVER_CHAIN → END (partial chain failure reported)
    - START → VERIFY → END (action executed)

    Returns:
        Compiled LangGraph workflow
    """
    logger.info("Creating interact round workflow")

    workflow = StateGraph(InteractAgentState)

    workflow.add_node("recover_chain", recover_node)
    workflow.add_node("verify", verify_node)

    workflow.add_conditional_edges(
        START,
        route_round,
        {
            "recover_chain": "recover_chain",
            "verify": "verify",
        }
    )

    workflow.add_edge("recover_chain", END)
    workflow.add_edge("verify", END)

    compiled_workflow = workflow.compile()
    logger.info("Workflow created successfully")
    return compiled_workflow
