"""
Chain Routes

Wire contract with the browser client for action chains: safety analysis,
chain generation and partial-failure recovery.
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from api.dependencies import get_workflow
from interact_agent.chaining import (
    analyze_chain_safety,
    enhance_prompt_for_chaining,
    generate_chain_from_actions,
    generate_form_fill_chain,
    identify_chainable_groups,
    parse_chain_from_llm_response,
    require_valid_partial_state,
)
from interact_agent.errors import ChainValidationError
from interact_agent.views import (
    ActionChain,
    ChainableGroups,
    ChainActionError,
    ChainPartialState,
    ChainRecoveryResult,
    ChainSafetyAnalysis,
    WireModel,
)

logger = logging.getLogger(__name__)
router = APIRouter()


class AnalyzeRequest(WireModel):
    """Request model for chain safety analysis"""
    actions: List[str]
    dom: str


class GroupsRequest(WireModel):
    plan_step: str = ""
    dom: str
    query: str = ""


class GenerateRequest(WireModel):
    """Exactly one of actions, field_data or llm_response"""
    actions: Optional[List[str]] = None
    descriptions: Optional[List[str]] = None
    field_data: Optional[Dict[str, str]] = None
    llm_response: Optional[str] = None
    dom: Optional[str] = None
    container_selector: Optional[str] = None


class GenerateResponse(WireModel):
    chain: Optional[ActionChain] = None


class PromptRequest(WireModel):
    base_prompt: str
    plan_step: Optional[str] = None


class PromptResponse(WireModel):
    prompt: str


class RecoverRequest(WireModel):
    """Client report of a partially failed chain"""
    original_chain: ActionChain
    last_executed_action_index: int = Field(ge=-1)
    partial_state: ChainPartialState
    current_dom: str = ""
    error: Optional[ChainActionError] = None
    retry_attempts: int = Field(default=0, ge=0)


class RecoverResponse(WireModel):
    result: ChainRecoveryResult
    retry_attempts: int


@router.post("/chain/analyze", response_model=ChainSafetyAnalysis)
async def analyze_chain(request: AnalyzeRequest):
    """
    Decide whether the actions can run as one chain

    Args:
        request: Candidate actions and the DOM they were planned against

    Returns:
        Chain safety analysis with confidence and blockers
    """
    return analyze_chain_safety(request.actions, request.dom)


@router.post("/chain/groups", response_model=ChainableGroups)
async def chainable_groups(request: GroupsRequest):
    """Propose a form-fill group before the planner asks for one"""
    return identify_chainable_groups(request.plan_step, request.dom, request.query)


@router.post("/chain/generate", response_model=GenerateResponse)
async def generate_chain(request: GenerateRequest):
    """
    Build a chain from planner actions, form data or planner text

    Returns:
        {"chain": ActionChain} or {"chain": null} when no safe chain exists
    """
    sources = [s for s in (request.actions, request.field_data, request.llm_response) if s is not None]
    if len(sources) != 1:
        raise HTTPException(status_code=422, detail="Provide exactly one of actions, fieldData or llmResponse")

    if request.field_data is not None:
        if not request.dom:
            raise HTTPException(status_code=422, detail="fieldData requires dom")
        chain = generate_form_fill_chain(request.field_data, request.dom, request.container_selector)
    elif request.actions is not None:
        chain = generate_chain_from_actions(request.actions, request.descriptions, request.dom)
    else:
        chain = parse_chain_from_llm_response(request.llm_response, request.dom)

    logger.info(f"Chain generation: {len(chain.actions) if chain else 0} actions")
    return GenerateResponse(chain=chain)


@router.post("/chain/prompt", response_model=PromptResponse)
async def chain_prompt(request: PromptRequest):
    """Add chaining instructions to a planner prompt for form-like steps"""
    return PromptResponse(prompt=enhance_prompt_for_chaining(request.base_prompt, request.plan_step))


@router.post("/chain/recover", response_model=RecoverResponse)
async def recover_chain(request: RecoverRequest, workflow=Depends(get_workflow)):
    """
    Decide how to continue after a chain failed part-way

    An inconsistent partial state is a hard error (422), never a recovery case.

    Returns:
        Recovery result and the updated retry counter for the failed action
    """
    try:
        require_valid_partial_state(request.partial_state, request.original_chain, request.last_executed_action_index)
    except ChainValidationError as e:
        logger.warning(f"Rejected chain partial state: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    final_state = await workflow.ainvoke({
        "original_chain": request.original_chain,
        "last_executed_action_index": request.last_executed_action_index,
        "partial_state": request.partial_state,
        "current_dom": request.current_dom,
        "chain_error": request.error,
        "retry_attempts": request.retry_attempts,
        "history": [],
    })

    if final_state.get("error") or final_state.get("recovery_result") is None:
        raise HTTPException(status_code=500, detail=final_state.get("error") or "Recovery produced no result")

    return RecoverResponse(
        result=final_state["recovery_result"],
        retry_attempts=final_state.get("retry_attempts", request.retry_attempts),
    )
