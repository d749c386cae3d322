"""
Verification types shared across the verification modules
"""
from typing import List, Literal, Optional, Union

from pydantic import Field

from interact_agent.actions.action_type import ActionType
from interact_agent.views import ExpectedOutcome, WireModel

VerificationTier = Literal["deterministic", "lightweight", "full"]

Complexity = Literal["SIMPLE", "MEDIUM", "COMPLEX"]


class VerificationContext(WireModel):
    """Who the verification is for; usage is only recorded with tenant and user set"""
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    task_id: Optional[str] = None


class ActualState(WireModel):
    """Page state after the action"""
    dom_snapshot: str
    url: str
    extracted_text: Optional[str] = None


class BeforeState(WireModel):
    """Page state captured before the action"""
    url: str
    dom_hash: str
    active_element: Optional[str] = None


class ClientObservations(WireModel):
    """What the browser extension witnessed while the action ran"""
    did_network_occur: Optional[bool] = None
    did_dom_mutate: Optional[bool] = None
    did_url_change: Optional[bool] = None


class ClientVerification(WireModel):
    """Result of the client's own querySelector check after the action"""
    element_found: bool
    selector: Optional[str] = None
    url_changed: Optional[bool] = None


class DOMCheckResults(WireModel):
    """Outcome of each DOM expectation; None when the expectation was not checked"""
    element_exists: Optional[bool] = None
    element_not_exists: Optional[bool] = None
    element_text_matches: Optional[bool] = None
    url_changed: Optional[bool] = None
    attribute_changed: Optional[bool] = None
    elements_appeared: Optional[bool] = None

    def checked_values(self) -> List[bool]:
        return [v for v in self.model_dump().values() if v is not None]


class NextGoalCheckResult(WireModel):
    available: bool
    reason: str
    required: bool = False


# =============================================================================
# Tier results
# =============================================================================

class _TierResult(WireModel):
    action_succeeded: bool
    task_completed: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str


class HeuristicResult(_TierResult):
    """Tier 1 verdict"""
    tier: Literal["deterministic"] = "deterministic"
    # Bypass Tier 2/3 and go straight to correction
    route_to_correction: bool = False


class LightweightResult(_TierResult):
    """Tier 2 verdict"""
    tier: Literal["lightweight"] = "lightweight"


class FullVerificationResult(_TierResult):
    """Tier 3 verdict"""
    tier: Literal["full"] = "full"
    sub_task_completed: Optional[bool] = None


TierResult = Union[HeuristicResult, LightweightResult]


class Verdict(WireModel):
    kind: Literal["verdict"] = "verdict"
    result: Union[HeuristicResult, LightweightResult]


class NeedsEscalation(WireModel):
    """Tiers 1 and 2 could not decide; Tier 3 must run"""
    kind: Literal["escalate"] = "escalate"
    reason: str


class VerificationFailure(WireModel):
    """Tier 2 failed outright (model error, unparseable output); also escalates"""
    kind: Literal["failure"] = "failure"
    error: str


TierOutcome = Union[Verdict, NeedsEscalation, VerificationFailure]


class TieredVerificationOptions(WireModel):
    """Inputs for one tiered verification"""
    before_url: str
    after_url: str
    action: str
    action_type: ActionType = "generic"
    # Without a plan position every step is treated as the last one
    is_last_step: bool = True
    meaningful_content_change: bool = False
    complexity: Complexity = "MEDIUM"
    next_goal_check: Optional[NextGoalCheckResult] = None
    expected_outcome: Optional[ExpectedOutcome] = None
    user_goal: str = ""
    observations: List[str] = Field(default_factory=list)
    sub_task_objective: Optional[str] = None
    context: Optional[VerificationContext] = None
