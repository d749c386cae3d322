"""
Interact Agent State Definition - LangGraph TypedDict

One graph invocation handles one round: either verifying an executed action
or recovering from a partially failed chain.
"""
from typing import Any, Dict, List, Optional, TypedDict
from typing_extensions import Annotated
import operator

from interact_agent.verification.types import (
    ActualState,
    BeforeState,
    ClientObservations,
    ClientVerification,
    TieredVerificationOptions,
)
from interact_agent.views import ActionChain, ChainActionError, ChainPartialState, ChainRecoveryResult


class InteractAgentState(TypedDict, total=False):
    """
    Fields with Annotated use reducers for automatic accumulation.
    Fields without Annotated are replaced each step.
    """

    # ========== Verification Round ==========
    verification_options: Optional[TieredVerificationOptions]
    actual_state: Optional[ActualState]  # DOM after the action; None → observation mode
    before_state: Optional[BeforeState]  # URL, DOM hash and focus before the action
    after_dom_hash: Optional[str]  # observation mode: hash of the DOM after the action
    after_active_element: Optional[str]
    client_observations: Optional[ClientObservations]
    client_verification: Optional[ClientVerification]
    current_step_index: Optional[int]  # plan position; decides is_last_step when the client leaves it unset
    total_steps: Optional[int]
    verification_result: Optional[Dict[str, Any]]  # Tier result as a dict (tier, action_succeeded, ...)
    route: Optional[str]  # correction | next_step | goal_achieved | replan

    # ========== Chain Recovery Round ==========
    original_chain: Optional[ActionChain]
    last_executed_action_index: int
    partial_state: Optional[ChainPartialState]
    current_dom: str
    chain_error: Optional[ChainActionError]
    retry_attempts: int  # corrected retries already issued for the failed action
    recovery_result: Optional[ChainRecoveryResult]

    # ========== History (Accumulated) ==========
    history: Annotated[List[Dict[str, Any]], operator.add]

    # ========== Errors ==========
    error: Optional[str]
