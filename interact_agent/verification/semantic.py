"""
Semantic Verification (Tier 3)

Full model verification, used when Tiers 1 and 2 cannot decide. Two modes:
- DOM mode: windowed DOM excerpt, visible text and URL facts
- observation mode: only the list of observed changes, when no DOM is available

Both report action_succeeded and task_completed independently. Anything that
goes wrong (missing credentials, timeout, empty or malformed output) fails
closed: both false, with the failure in reason.
"""
import logging
import time
from typing import List, Optional, Union

from interact_agent.actions.action_type import ActionType
from interact_agent.config import settings
from interact_agent.dom.helpers import (
    extract_text_content,
    get_smart_dom_context,
    has_significant_url_change,
)
from interact_agent.llm import GenerateOptions, TextGenerator
from interact_agent.telemetry import capture_exception
from interact_agent.views import ExpectedOutcome
from interact_agent.verification.confidence import calculate_confidence
from interact_agent.verification.dom_checks import perform_dom_checks
from interact_agent.verification.response_parser import (
    VERIFICATION_RESPONSE_SCHEMA,
    ParseSuccess,
    parse_structured_response,
)
from interact_agent.verification.tiered import evaluate_tiers
from interact_agent.verification.types import (
    ActualState,
    ClientVerification,
    FullVerificationResult,
    HeuristicResult,
    LightweightResult,
    TieredVerificationOptions,
    Verdict,
    VerificationContext,
)
from interact_agent.verification.usage import record_verification_usage

logger = logging.getLogger(__name__)

RESPONSE_FORMAT = """Respond with a JSON object:
{
  "action_succeeded": true/false,
  "task_completed": true/false,
  "sub_task_completed": true/false,
  "confidence": 0.0-1.0,
  "reason": "User-friendly explanation"
}"""

SEMANTIC_SYSTEM_PROMPT = f"""You are a verification AI that checks whether a browser action achieved its expected outcome.

Analyze:
1. What was expected to happen (expected outcome)
2. The URL change (did it navigate as expected?)
3. The current page content
4. Whether the user's overall goal is now finished

**Two separate questions:**
- action_succeeded: did THIS action do something useful toward the goal?
- task_completed: is the user's ENTIRE goal finished?
A form becoming visible is action_succeeded=true, task_completed=false.
Only the final step of a multi-step goal can have task_completed=true.

**CRITICAL: Use user-friendly, non-technical language in the "reason" field.**

{RESPONSE_FORMAT}

**Verification Guidelines:**
- If URL changed and the expected outcome mentions navigation, that's a strong positive signal
- Ignore minor ID/class mismatches if the visual content matches
- Focus on semantic meaning, not exact HTML structure

**Language Guidelines:**
- AVOID: "Verification failed", "Element not found", "DOM structure mismatch"
- USE: "The page navigated to the overview section", "The form is now visible", "The menu opened successfully"
"""

ActionVerificationResult = Union[HeuristicResult, LightweightResult, FullVerificationResult]


def _fail_closed(reason: str) -> FullVerificationResult:
    return FullVerificationResult(action_succeeded=False, task_completed=False, confidence=0.0, reason=reason)


def _step_note(is_last_step: bool, sub_task_objective: Optional[str]) -> str:
    lines = []
    if is_last_step:
        lines.append("- This is the FINAL step of the plan: task_completed may be true if the goal is met.")
    else:
        lines.append("- This is NOT the final step of the plan: task_completed must be false.")
    if sub_task_objective:
        lines.append(f"- Current sub-task: {sub_task_objective} (report sub_task_completed for it)")
    return "\n".join(lines)


def interpret_verification_response(content: Optional[str], is_last_step: bool) -> FullVerificationResult:
    """
    Read a Tier 3 response. Only literal JSON true counts as true.

    On a non-final step task_completed is forced to false.
    """
    parsed = parse_structured_response(
        content,
        schema_name="VERIFICATION_RESPONSE_SCHEMA",
        generation_name="semantic_verification",
    )
    if not isinstance(parsed, ParseSuccess):
        if parsed.diagnostics.issue_type == "empty_content":
            return _fail_closed("Empty LLM response")
        return _fail_closed(f"Unparseable verification response ({parsed.diagnostics.issue_type})")

    data = parsed.data
    action_succeeded = data.get("action_succeeded") is True
    task_completed = data.get("task_completed") is True
    if task_completed and not is_last_step:
        logger.info("Tier 3 reported task_completed on a non-final step, overriding to false")
        task_completed = False

    sub_task = data.get("sub_task_completed")
    raw_confidence = data.get("confidence")
    if isinstance(raw_confidence, (int, float)) and not isinstance(raw_confidence, bool):
        confidence = max(0.0, min(1.0, float(raw_confidence)))
    else:
        confidence = 1.0 if action_succeeded else 0.0

    reason = data.get("reason")
    return FullVerificationResult(
        action_succeeded=action_succeeded,
        task_completed=task_completed,
        sub_task_completed=sub_task if isinstance(sub_task, bool) else None,
        confidence=confidence,
        reason=reason if isinstance(reason, str) and reason else "No reason provided",
    )


async def _run_semantic_call(
    system_prompt: str,
    user_prompt: str,
    generator: TextGenerator,
    is_last_step: bool,
    context: Optional[VerificationContext],
    generation_name: str,
) -> FullVerificationResult:
    model = settings.verification_model
    started = time.monotonic()
    try:
        generation = await generator.generate(
            system_prompt,
            user_prompt,
            GenerateOptions(
                model=model,
                temperature=settings.verification_temperature,
                max_output_tokens=settings.verification_max_output_tokens,
                response_schema=VERIFICATION_RESPONSE_SCHEMA,
                timeout_seconds=settings.verification_timeout_seconds,
            ),
        )
    except Exception as e:
        logger.error(f"Semantic verification failed ({generation_name}): {e}", exc_info=True)
        capture_exception(e, tags={"component": "semantic-verification", "mode": generation_name})
        return _fail_closed(f"Verification error: {e}")

    record_verification_usage(
        context,
        generation,
        model=model,
        action_type="VERIFICATION",
        duration_ms=int((time.monotonic() - started) * 1000),
        metadata={"mode": generation_name},
    )

    result = interpret_verification_response(generation.content, is_last_step)
    logger.info(
        f"Tier 3 ({generation_name}): action_succeeded={result.action_succeeded}, "
        f"task_completed={result.task_completed}, confidence={result.confidence:.2f}"
    )
    return result


async def perform_semantic_verification(
    expected_outcome: ExpectedOutcome,
    actual_state: ActualState,
    previous_url: Optional[str],
    generator: TextGenerator,
    user_goal: Optional[str] = None,
    is_last_step: bool = True,
    sub_task_objective: Optional[str] = None,
    context: Optional[VerificationContext] = None,
    action_type: Optional[ActionType] = None,
    client_verification: Optional[ClientVerification] = None,
) -> FullVerificationResult:
    """
    Tier 3 in DOM mode.

    The model confidence is blended with the DOM checks of the expected outcome
    and the client's own element check. Fail-closed results are returned as is.

    Args:
        expected_outcome: Planner prediction for this action
        actual_state: DOM and URL after the action
        previous_url: URL before the action, if known
        generator: Model collaborator
        user_goal: The user's overall goal
        is_last_step: Whether this is the final plan step
        sub_task_objective: Current sub-task, when a hierarchical plan is active
        context: Tenant/user/session for usage recording
        action_type: Behaviour type of the action, for popup-aware DOM checks
        client_verification: The client's querySelector result after the action

    Returns:
        FullVerificationResult; fails closed on any error
    """
    expected_description = expected_outcome.description or "No specific description provided"
    dom_changes = expected_outcome.dom_changes
    search_target = (
        (dom_changes.element_should_exist if dom_changes else None)
        or (dom_changes.element_should_have_text.text if dom_changes and dom_changes.element_should_have_text else None)
        or expected_description[:50]
    )

    dom_context = get_smart_dom_context(actual_state.dom_snapshot, search_target, settings.verification_dom_window)
    text_content = extract_text_content(actual_state.dom_snapshot, settings.verification_text_window)

    url_changed = has_significant_url_change(previous_url, actual_state.url) if previous_url else False
    if previous_url:
        url_info = f"- URL Changed: {'Yes' if url_changed else 'No'} ({previous_url} → {actual_state.url})"
    else:
        url_info = f"- Current URL: {actual_state.url}"

    extracted_line = f"- Leading Text: {actual_state.extracted_text}\n" if actual_state.extracted_text else ""
    goal_section = f"**User Goal:**\n{user_goal}\n\n" if user_goal else ""
    user_prompt = f"""{goal_section}**Expected Outcome:**
{expected_description}

**Plan Position:**
{_step_note(is_last_step, sub_task_objective)}

**URL Status:**
{url_info}

**Current Page State:**
- Visible Text Content: {text_content or "Not extracted"}
{extracted_line}
**Page Structure (cleaned HTML):**
{dom_context}

**Task:** Determine whether the action succeeded and whether the user's goal is complete based on:
1. Did the URL change as expected (if navigation was expected)?
2. Does the page content match what was expected?
3. Is the expected element/section visible?

Remember: Focus on whether the user would see the expected result. Ignore technical details like exact element IDs."""

    result = await _run_semantic_call(
        SEMANTIC_SYSTEM_PROMPT,
        user_prompt,
        generator,
        is_last_step,
        context,
        "semantic_verification",
    )
    if not result.action_succeeded and result.confidence == 0.0:
        return result

    dom_checks = perform_dom_checks(expected_outcome, actual_state, previous_url, action_type)
    confidence = calculate_confidence(
        dom_checks,
        result.action_succeeded,
        result.confidence,
        action_type=action_type,
        url_actually_changed=url_changed,
        expected_url_change=bool(dom_changes and dom_changes.url_should_change),
        client_verification=client_verification,
        element_expected_but_missing=bool(dom_changes and dom_changes.element_should_exist),
    )
    logger.debug(f"Tier 3 confidence blended with DOM checks {dom_checks.model_dump(exclude_none=True)}: {confidence:.2f}")
    return result.model_copy(update={"confidence": confidence})


async def perform_semantic_verification_on_observations(
    user_goal: str,
    action: str,
    observations: List[str],
    generator: TextGenerator,
    is_last_step: bool = True,
    context: Optional[VerificationContext] = None,
) -> FullVerificationResult:
    """Tier 3 in observation mode: goal, action and observed facts only"""
    observed = "\n".join(f"- {o}" for o in observations) or "- (no observations)"
    prompt = f"""You are a verification AI. The user wanted to achieve a goal. An action was executed. We observed specific changes. Decide if the action succeeded and whether the goal is complete.

**User goal:** {user_goal}

**Action executed:** {action}

**Observed changes (facts):**
{observed}

**Plan Position:**
{_step_note(is_last_step, None)}

{RESPONSE_FORMAT}

Guidelines:
- If URL changed and the goal was navigation (e.g. "go to overview"), that's a strong success signal.
- If page content updated and the goal was to see new content, that's a success signal.
- If nothing changed (URL same, DOM same, no network), the action likely failed.
- Be decisive: high confidence when observations clearly support success or failure."""

    return await _run_semantic_call(
        "",
        prompt,
        generator,
        is_last_step,
        context,
        "verification_observation",
    )


async def verify_action(
    options: TieredVerificationOptions,
    generator: TextGenerator,
    actual_state: Optional[ActualState] = None,
    client_verification: Optional[ClientVerification] = None,
) -> ActionVerificationResult:
    """
    Full verification for one executed action.

    Runs Tiers 1 and 2; if neither decides, runs Tier 3 in DOM mode when a DOM
    snapshot is available and in observation mode otherwise. A Tier 1
    route_to_correction result is returned unchanged.
    """
    outcome = await evaluate_tiers(options, generator)
    if isinstance(outcome, Verdict):
        return outcome.result

    if actual_state is not None and actual_state.dom_snapshot:
        return await perform_semantic_verification(
            options.expected_outcome or ExpectedOutcome(),
            actual_state,
            options.before_url,
            generator,
            user_goal=options.user_goal or None,
            is_last_step=options.is_last_step,
            sub_task_objective=options.sub_task_objective,
            context=options.context,
            action_type=options.action_type,
            client_verification=client_verification,
        )

    return await perform_semantic_verification_on_observations(
        options.user_goal,
        options.action,
        options.observations,
        generator,
        is_last_step=options.is_last_step,
        context=options.context,
    )
