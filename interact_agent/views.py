"""
Pydantic models for Interact Agent

Wire models exchanged with the browser client. Fields are snake_case in
Python and camelCase on the wire (canFail, totalActionsInChain, ...); both
spellings are accepted on input.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from interact_agent.actions.grammar import ChainableActionType
from interact_agent.config import settings

ChainReason = Literal["FORM_FILL", "RELATED_INPUTS", "BULK_SELECTION", "SEQUENTIAL_STEPS", "OPTIMIZED_PATH"]

ChainBlocker = Literal[
    "NAVIGATION_EXPECTED",
    "ASYNC_DEPENDENCY",
    "CROSS_CONTAINER",
    "HIGH_RISK_ACTION",
    "DYNAMIC_CONTENT",
    "REQUIRES_VERIFICATION",
    "DIFFERENT_INTERACTION_TYPE",
]

RecoveryStrategy = Literal["RETRY_FAILED", "SKIP_FAILED", "REGENERATE_CHAIN", "SINGLE_ACTION", "ABORT"]

VerificationLevel = Literal["client", "lightweight", "full"]

ClientVerificationCheckType = Literal[
    "value_matches",
    "element_visible",
    "element_enabled",
    "state_changed",
    "no_error_message",
    "success_message",
]

# Error codes the client reports; unknown codes are accepted as plain strings
ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"
TIMEOUT = "TIMEOUT"
ELEMENT_NOT_VISIBLE = "ELEMENT_NOT_VISIBLE"
ELEMENT_OBSCURED = "ELEMENT_OBSCURED"
ELEMENT_DISABLED = "ELEMENT_DISABLED"
INVALID_STATE = "INVALID_STATE"
NETWORK_ERROR = "NETWORK_ERROR"


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Expected outcomes (planner predictions)
# =============================================================================

class ElementTextExpectation(WireModel):
    selector: str
    text: str


class AttributeChange(WireModel):
    attribute: str
    expected_value: str


class ExpectedElement(WireModel):
    role: Optional[str] = None
    selector: Optional[str] = None


class DomChanges(WireModel):
    element_should_exist: Optional[str] = None
    element_should_not_exist: Optional[str] = None
    element_should_have_text: Optional[ElementTextExpectation] = None
    url_should_change: Optional[bool] = None
    attribute_changes: List[AttributeChange] = Field(default_factory=list)
    elements_to_appear: List[ExpectedElement] = Field(default_factory=list)


class NextGoal(WireModel):
    """Look-ahead: what the next step needs to find on the page"""
    description: str = ""
    selector: Optional[str] = None
    text_content: Optional[str] = None
    role: Optional[str] = None
    required: bool = False


class ExpectedOutcome(WireModel):
    description: Optional[str] = None
    dom_changes: Optional[DomChanges] = None
    next_goal: Optional[NextGoal] = None


# =============================================================================
# Chains
# =============================================================================

class ClientVerificationCheck(WireModel):
    type: ClientVerificationCheckType
    element_id: Optional[int] = None
    expected_value: Optional[str] = None
    text_pattern: Optional[str] = None


class ChainedAction(WireModel):
    """One step of a chain"""
    action: str
    description: str
    index: int = Field(ge=0)
    can_fail: bool = False
    target_element_id: Optional[int] = None
    action_type: Optional[ChainableActionType] = None
    expected_outcome: Optional[ExpectedOutcome] = None
    verification_level: Optional[VerificationLevel] = None
    client_verification_checks: Optional[List[ClientVerificationCheck]] = None


class ChainMetadata(WireModel):
    total_actions: int
    estimated_duration: int  # milliseconds, advisory
    safe_to_chain: bool
    chain_reason: ChainReason
    container_selector: Optional[str] = None
    default_verification_level: Optional[VerificationLevel] = None
    client_verification_sufficient: Optional[bool] = None
    final_verification_level: Optional[VerificationLevel] = None


class ActionChain(WireModel):
    actions: List[ChainedAction] = Field(min_length=1, max_length=settings.max_chain_size)
    metadata: ChainMetadata

    @model_validator(mode="after")
    def _check_dense_indices(self) -> "ActionChain":
        for position, action in enumerate(self.actions):
            if action.index != position:
                raise ValueError(f"Chain indices must be dense and zero-based: position {position} has index {action.index}")
        return self


class ChainPartialState(WireModel):
    """Client report of how far a chain got"""
    executed_actions: List[str] = Field(default_factory=list)
    dom_after_last_success: Optional[str] = None
    total_actions_in_chain: int


class ChainActionError(WireModel):
    action: str
    message: str
    code: str
    element_id: Optional[int] = None
    failed_index: int = Field(ge=0)


class SingleActionInstruction(WireModel):
    action: str
    thought: str


_PAYLOAD_STRATEGY = {
    "corrected_action": "RETRY_FAILED",
    "new_chain": "SKIP_FAILED",
    "single_action": "SINGLE_ACTION",
}


class ChainRecoveryResult(WireModel):
    """
    Recovery decision. At most one payload is set and it must belong to the
    strategy: corrected_action for RETRY_FAILED, new_chain for SKIP_FAILED,
    single_action for SINGLE_ACTION. REGENERATE_CHAIN and ABORT carry none.
    """
    strategy: RecoveryStrategy
    reason: str
    corrected_action: Optional[ChainedAction] = None
    new_chain: Optional[ActionChain] = None
    single_action: Optional[SingleActionInstruction] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "ChainRecoveryResult":
        for field, strategy in _PAYLOAD_STRATEGY.items():
            if getattr(self, field) is not None and self.strategy != strategy:
                raise ValueError(f"{field} is only valid with {strategy}, not {self.strategy}")
        return self


# =============================================================================
# Analysis results
# =============================================================================

class ChainSafetyAnalysis(WireModel):
    can_chain: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    blockers: List[ChainBlocker] = Field(default_factory=list)
    container_selector: Optional[str] = None


class ChainableGroups(WireModel):
    can_chain: bool
    reason: Optional[ChainReason] = None
    element_ids: List[int] = Field(default_factory=list)


class PartialStateValidation(WireModel):
    valid: bool
    error: Optional[str] = None
