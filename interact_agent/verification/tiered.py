"""
Tiered Verification Engine

Three tiers, cheapest first:
- Tier 1 (deterministic): no model call, only for unambiguous outcomes
- Tier 2 (lightweight): ~100 output tokens, last step only, behind a safety gate
- Tier 3 (full): semantic verification in verification/semantic.py, run by the caller

On step 1 of 5 task_completed is false by definition, so intermediate steps
rarely need a model at all. Tiers 1 and 2 never guess: when they cannot decide
they escalate.
"""
import logging
import time
from typing import Optional

from interact_agent.config import settings
from interact_agent.dom.helpers import get_hostname, has_significant_url_change, is_cross_domain_navigation
from interact_agent.llm import GenerateOptions, TextGenerator
from interact_agent.telemetry import capture_exception
from interact_agent.verification.response_parser import (
    VERIFICATION_RESPONSE_SCHEMA,
    ParseSuccess,
    get_field,
    parse_structured_response,
)
from interact_agent.verification.types import (
    HeuristicResult,
    LightweightResult,
    NeedsEscalation,
    TieredVerificationOptions,
    TierOutcome,
    TierResult,
    Verdict,
    VerificationFailure,
    VerificationTier,
)
from interact_agent.verification.usage import record_verification_usage

logger = logging.getLogger(__name__)

# Average full verification cost, used for savings estimates
FULL_LLM_TOKENS = 400


def compute_is_last_step(current_step_index: Optional[int], total_steps: Optional[int]) -> bool:
    """Without a plan every step is treated as the last one"""
    if current_step_index is None or not total_steps:
        return True
    return current_step_index >= total_steps - 1


# =============================================================================
# Tier 1: Deterministic heuristics
# =============================================================================

def try_deterministic_verification(options: TieredVerificationOptions) -> Optional[HeuristicResult]:
    """
    Tier 1: verify without any model call.

    Returns None when no deterministic verdict is possible.
    """
    before_url, after_url = options.before_url, options.after_url
    is_last_step = options.is_last_step
    next_goal_check = options.next_goal_check

    url_changed = has_significant_url_change(before_url, after_url)
    cross_domain = is_cross_domain_navigation(before_url, after_url)

    if options.action_type == "navigation" and url_changed and not is_last_step:
        logger.info(f"Tier 1: intermediate navigation success ({get_hostname(before_url)} → {get_hostname(after_url)})")
        return HeuristicResult(
            action_succeeded=True,
            task_completed=False,
            confidence=1.0,
            reason="Deterministic: Navigation successful for intermediate step.",
        )

    if options.meaningful_content_change and not is_last_step:
        logger.info("Tier 1: intermediate DOM change success")
        return HeuristicResult(
            action_succeeded=True,
            task_completed=False,
            confidence=0.95,
            reason="Deterministic: Content changed as expected for intermediate step.",
        )

    if cross_domain and not is_last_step:
        hosts = f"{get_hostname(before_url)} → {get_hostname(after_url)}"
        logger.info(f"Tier 1: cross-domain navigation ({hosts})")
        return HeuristicResult(
            action_succeeded=True,
            task_completed=False,
            confidence=1.0,
            reason=f"Deterministic: Cross-domain navigation ({hosts}).",
        )

    # Look-ahead failure goes straight to correction, last step or not
    if next_goal_check and not next_goal_check.available and next_goal_check.required:
        logger.info(f"Tier 1: look-ahead failure - {next_goal_check.reason}")
        return HeuristicResult(
            action_succeeded=False,
            task_completed=False,
            confidence=0.8,
            reason=f"Deterministic failure: Expected element for next step not found. {next_goal_check.reason}",
            route_to_correction=True,
        )

    if next_goal_check and next_goal_check.available and not is_last_step:
        logger.info("Tier 1: look-ahead success - next element available")
        return HeuristicResult(
            action_succeeded=True,
            task_completed=False,
            confidence=0.95,
            reason="Deterministic: Next step element is available (look-ahead success).",
        )

    # The only Tier 1 path that may report the task complete
    if options.complexity == "SIMPLE" and options.action_type == "navigation" and url_changed:
        logger.info("Tier 1: SIMPLE navigation task completed")
        return HeuristicResult(
            action_succeeded=True,
            task_completed=True,
            confidence=1.0,
            reason="Deterministic: SIMPLE navigation task completed (single-step plan).",
        )

    logger.debug("Tier 1: no deterministic verdict, falling through to Tier 2/3")
    return None


# =============================================================================
# Tier 2: Lightweight model call
# =============================================================================

def lightweight_may_complete(options: TieredVerificationOptions) -> bool:
    """Safety gate: when Tier 2 is trusted to report task_completed=True"""
    if options.complexity == "SIMPLE":
        return True
    dom_changes = options.expected_outcome.dom_changes if options.expected_outcome else None
    return options.action_type == "navigation" and dom_changes is not None and dom_changes.url_should_change is True


def build_lightweight_prompt(options: TieredVerificationOptions) -> str:
    observations = "\n".join(f"- {o}" for o in options.observations)
    return f"""You are a verification AI. Quick check only.

User goal: {options.user_goal}
Action: {options.action}
Observations:
{observations}

Is the user's goal fully achieved? Reply JSON only:
{{"action_succeeded": true/false, "task_completed": true/false, "confidence": 0.0-1.0, "reason": "brief"}}"""


async def _lightweight_outcome(options: TieredVerificationOptions, generator: TextGenerator) -> TierOutcome:
    model = settings.lightweight_verification_model or settings.llm_model
    started = time.monotonic()

    try:
        generation = await generator.generate(
            "",
            build_lightweight_prompt(options),
            GenerateOptions(
                model=model,
                temperature=0.0,
                max_output_tokens=settings.lightweight_max_output_tokens,
                response_schema=VERIFICATION_RESPONSE_SCHEMA,
                timeout_seconds=settings.verification_timeout_seconds,
            ),
        )
    except Exception as e:
        logger.error(f"Tier 2 verification error, falling through to Tier 3: {e}", exc_info=True)
        capture_exception(e, tags={"component": "tiered-verification", "tier": "lightweight"})
        return VerificationFailure(error=str(e))

    record_verification_usage(
        options.context,
        generation,
        model=model,
        action_type="VERIFICATION_LIGHTWEIGHT",
        duration_ms=int((time.monotonic() - started) * 1000),
        metadata={"tier": "lightweight"},
    )

    parsed = parse_structured_response(
        generation.content,
        schema_name="VERIFICATION_RESPONSE_SCHEMA",
        generation_name="verification_lightweight",
    )
    if not isinstance(parsed, ParseSuccess):
        logger.warning("Tier 2 parse failed, falling through to Tier 3")
        return VerificationFailure(error=f"Unparseable lightweight response: {parsed.diagnostics.issue_type}")

    data = parsed.data
    action_succeeded = get_field(data, "action_succeeded", False)
    task_completed = get_field(data, "task_completed", False)
    if not isinstance(action_succeeded, bool) or not isinstance(task_completed, bool):
        logger.warning(
            f"Tier 2 response has non-boolean verdict fields "
            f"(action_succeeded={action_succeeded!r}, task_completed={task_completed!r}), falling through to Tier 3"
        )
        return VerificationFailure(error="Lightweight verdict fields must be JSON booleans")

    try:
        confidence = max(0.0, min(1.0, float(get_field(data, "confidence", 0.7))))
        reason = str(get_field(data, "reason", "Lightweight verification"))
    except (TypeError, ValueError) as e:
        logger.warning(f"Tier 2 response has invalid field types, falling through to Tier 3: {e}")
        return VerificationFailure(error=f"Invalid lightweight response: {e}")

    if task_completed and not lightweight_may_complete(options):
        logger.warning(
            f"Tier 2 returned task_completed=true outside its safety gate "
            f"(complexity={options.complexity}, action_type={options.action_type}); falling through to Tier 3"
        )
        return NeedsEscalation(reason="Lightweight completion claim outside safety gate")

    logger.info(
        f"Tier 2 result: action_succeeded={action_succeeded}, task_completed={task_completed}, "
        f"confidence={confidence:.2f}"
    )
    return Verdict(result=LightweightResult(
        action_succeeded=action_succeeded,
        task_completed=task_completed,
        confidence=confidence,
        reason=reason,
    ))


async def perform_lightweight_verification(
    options: TieredVerificationOptions,
    generator: TextGenerator,
) -> Optional[LightweightResult]:
    """
    Tier 2: one small model call on the final step.

    Returns None on model failure, unparseable output, or a completion claim
    outside the safety gate.
    """
    outcome = await _lightweight_outcome(options, generator)
    if isinstance(outcome, Verdict) and isinstance(outcome.result, LightweightResult):
        return outcome.result
    return None


# =============================================================================
# Orchestration
# =============================================================================

async def evaluate_tiers(options: TieredVerificationOptions, generator: TextGenerator) -> TierOutcome:
    """
    Run Tier 1, then Tier 2 on the last step.

    Returns:
        Verdict with the tier result, NeedsEscalation when neither tier could
        decide, or VerificationFailure when Tier 2 failed. Anything but a
        Verdict means the caller runs Tier 3.
    """
    heuristic = try_deterministic_verification(options)
    if heuristic is not None:
        logger.info(f"Tiered verification: Tier 1 (deterministic) - {heuristic.reason}")
        return Verdict(result=heuristic)

    if not options.is_last_step:
        logger.info("Tiered verification: no Tier 1 verdict for intermediate step, escalating to Tier 3")
        return NeedsEscalation(reason="No deterministic verdict for intermediate step")

    outcome = await _lightweight_outcome(options, generator)
    if isinstance(outcome, Verdict):
        logger.info(f"Tiered verification: Tier 2 (lightweight) - {outcome.result.reason}")
    else:
        logger.info("Tiered verification: falling through to Tier 3 (full LLM)")
    return outcome


async def run_tiered_verification(
    options: TieredVerificationOptions,
    generator: TextGenerator,
) -> Optional[TierResult]:
    """Tier 1/2 result, or None: the caller must run Tier 3"""
    outcome = await evaluate_tiers(options, generator)
    if isinstance(outcome, Verdict):
        return outcome.result
    return None


def estimate_tokens_saved(tier: VerificationTier) -> int:
    """Tokens saved compared with a full verification"""
    if tier == "deterministic":
        return FULL_LLM_TOKENS
    if tier == "lightweight":
        return FULL_LLM_TOKENS - 100
    return 0
