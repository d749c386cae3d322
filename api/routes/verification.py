"""
Verification Routes

Tiered verification of executed actions.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from typing_extensions import Annotated

from api.dependencies import get_generator, get_workflow
from interact_agent.llm import TextGenerator
from interact_agent.verification import (
    ActualState,
    BeforeState,
    ClientObservations,
    ClientVerification,
    FullVerificationResult,
    HeuristicResult,
    LightweightResult,
    NeedsEscalation,
    TieredVerificationOptions,
    Verdict,
    estimate_tokens_saved,
    evaluate_tiers,
)
from interact_agent.views import WireModel

logger = logging.getLogger(__name__)
router = APIRouter()

AnyTierResult = Annotated[
    Union[HeuristicResult, LightweightResult, FullVerificationResult],
    Field(discriminator="tier"),
]


class TieredResponse(WireModel):
    """Tier 1/2 verdict, or escalate=true when the caller must run Tier 3"""
    result: Optional[Union[HeuristicResult, LightweightResult]] = None
    escalate: bool
    reason: Optional[str] = None
    tokens_saved: int = 0


class VerifyRequest(WireModel):
    """
    One executed action. Unset action type, plan position, look-ahead and
    observations are derived from the page state sent alongside.
    """
    options: TieredVerificationOptions
    actual_state: Optional[ActualState] = None
    before_state: Optional[BeforeState] = None
    after_dom_hash: Optional[str] = None
    after_active_element: Optional[str] = None
    client_observations: Optional[ClientObservations] = None
    client_verification: Optional[ClientVerification] = None
    current_step_index: Optional[int] = Field(default=None, ge=0)
    total_steps: Optional[int] = Field(default=None, ge=0)


class VerifyResponse(WireModel):
    result: AnyTierResult
    route: str


@router.post("/verification/tiered", response_model=TieredResponse)
async def tiered_verification(
    options: TieredVerificationOptions,
    generator: TextGenerator = Depends(get_generator),
):
    """
    Run Tier 1 and, on the last step, Tier 2

    Returns:
        The verdict, or escalate=true with the reason Tier 3 is needed
    """
    outcome = await evaluate_tiers(options, generator)

    if isinstance(outcome, Verdict):
        return TieredResponse(
            result=outcome.result,
            escalate=False,
            tokens_saved=estimate_tokens_saved(outcome.result.tier),
        )

    reason = outcome.reason if isinstance(outcome, NeedsEscalation) else outcome.error
    logger.info(f"Tiered verification escalates to Tier 3: {reason}")
    return TieredResponse(escalate=True, reason=reason)


@router.post("/verification/verify", response_model=VerifyResponse)
async def verify(
    request: VerifyRequest,
    generator: TextGenerator = Depends(get_generator),
    workflow=Depends(get_workflow),
):
    """
    Full verification of one executed action (Tier 1, then 2, then 3)

    Returns:
        The verdict and where the planner should go next
    """
    final_state = await workflow.ainvoke(
        {
            "verification_options": request.options,
            "actual_state": request.actual_state,
            "before_state": request.before_state,
            "after_dom_hash": request.after_dom_hash,
            "after_active_element": request.after_active_element,
            "client_observations": request.client_observations,
            "client_verification": request.client_verification,
            "current_step_index": request.current_step_index,
            "total_steps": request.total_steps,
            "history": [],
        },
        config={"configurable": {"generator": generator}},
    )

    result = final_state.get("verification_result")
    if final_state.get("error") or not result:
        raise HTTPException(status_code=500, detail=final_state.get("error") or "Verification produced no result")

    return VerifyResponse(result=result, route=final_state.get("route") or "replan")
