from __future__ import annotations

import json

import pytest

from interact_agent.config import settings
from interact_agent.verification import (
    LightweightResult,
    NeedsEscalation,
    NextGoalCheckResult,
    TieredVerificationOptions,
    Verdict,
    VerificationContext,
    VerificationFailure,
    compute_is_last_step,
    estimate_tokens_saved,
    evaluate_tiers,
    perform_lightweight_verification,
    run_tiered_verification,
    try_deterministic_verification,
)
from interact_agent.views import DomChanges, ExpectedOutcome


def options(**overrides) -> TieredVerificationOptions:
    values = {
        "before_url": "https://shop.test/",
        "after_url": "https://shop.test/",
        "action": "click(3)",
        "is_last_step": False,
        "user_goal": "Open the cart",
        "observations": ["URL did not change"],
    }
    values.update(overrides)
    return TieredVerificationOptions(**values)


def verdict(action_succeeded: bool = True, task_completed: bool = True, confidence: float = 0.9) -> str:
    return json.dumps({
        "action_succeeded": action_succeeded,
        "task_completed": task_completed,
        "confidence": confidence,
        "reason": "Looks done",
    })


# Tier 1

def test_intermediate_navigation_succeeds_deterministically() -> None:
    result = try_deterministic_verification(
        options(action_type="navigation", after_url="https://shop.test/cart")
    )

    assert result.tier == "deterministic"
    assert result.action_succeeded and not result.task_completed
    assert result.confidence == 1.0
    assert result.reason == "Deterministic: Navigation successful for intermediate step."


def test_intermediate_content_change() -> None:
    result = try_deterministic_verification(options(meaningful_content_change=True))

    assert result.confidence == 0.95
    assert result.reason == "Deterministic: Content changed as expected for intermediate step."


def test_intermediate_cross_domain_navigation() -> None:
    result = try_deterministic_verification(options(after_url="https://pay.test/checkout"))

    assert result.action_succeeded and not result.task_completed
    assert result.reason == "Deterministic: Cross-domain navigation (shop.test → pay.test)."


def test_required_look_ahead_failure_routes_to_correction_even_on_last_step() -> None:
    check = NextGoalCheckResult(available=False, reason="Next-goal NOT available: Pay button", required=True)

    result = try_deterministic_verification(options(is_last_step=True, next_goal_check=check))

    assert not result.action_succeeded
    assert result.route_to_correction
    assert result.confidence == 0.8
    assert result.reason.endswith("Next-goal NOT available: Pay button")


def test_optional_look_ahead_failure_has_no_verdict() -> None:
    check = NextGoalCheckResult(available=False, reason="missing", required=False)
    assert try_deterministic_verification(options(next_goal_check=check)) is None


def test_look_ahead_success_on_intermediate_step() -> None:
    check = NextGoalCheckResult(available=True, reason="found")

    result = try_deterministic_verification(options(next_goal_check=check))

    assert result.action_succeeded
    assert result.reason == "Deterministic: Next step element is available (look-ahead success)."


def test_only_simple_navigation_completes_task_in_tier_one() -> None:
    simple = try_deterministic_verification(
        options(is_last_step=True, complexity="SIMPLE", action_type="navigation", after_url="https://shop.test/cart")
    )
    assert simple.task_completed
    assert simple.reason == "Deterministic: SIMPLE navigation task completed (single-step plan)."

    medium = options(is_last_step=True, complexity="MEDIUM", action_type="navigation", after_url="https://shop.test/cart")
    assert try_deterministic_verification(medium) is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"action_type": "navigation", "after_url": "https://shop.test/cart", "complexity": "SIMPLE"},
        {"meaningful_content_change": True, "complexity": "SIMPLE"},
        {"after_url": "https://pay.test/"},
        {"next_goal_check": NextGoalCheckResult(available=True, reason="found")},
    ],
)
def test_intermediate_steps_never_complete_the_task(overrides) -> None:
    result = try_deterministic_verification(options(**overrides))

    assert result is not None
    assert not result.task_completed


def test_fragment_only_change_is_not_navigation() -> None:
    result = try_deterministic_verification(
        options(is_last_step=True, complexity="SIMPLE", action_type="navigation", after_url="https://shop.test/#top")
    )
    assert result is None


# Tier 2

@pytest.mark.asyncio
async def test_intermediate_step_without_verdict_escalates(fake_generator) -> None:
    generator = fake_generator(verdict())

    outcome = await evaluate_tiers(options(), generator)

    assert isinstance(outcome, NeedsEscalation)
    assert outcome.reason == "No deterministic verdict for intermediate step"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_lightweight_verification_on_simple_last_step(fake_generator) -> None:
    generator = fake_generator(verdict())

    result = await perform_lightweight_verification(options(is_last_step=True, complexity="SIMPLE"), generator)

    assert isinstance(result, LightweightResult)
    assert result.task_completed
    assert result.confidence == 0.9
    call = generator.calls[0]
    assert call["options"].temperature == 0.0
    assert call["options"].max_output_tokens == settings.lightweight_max_output_tokens
    assert "User goal: Open the cart" in call["user_prompt"]
    assert "- URL did not change" in call["user_prompt"]


@pytest.mark.asyncio
async def test_lightweight_completion_outside_gate_is_rejected(fake_generator) -> None:
    complex_click = options(is_last_step=True, complexity="COMPLEX")

    assert await perform_lightweight_verification(complex_click, fake_generator(verdict())) is None

    outcome = await evaluate_tiers(complex_click, fake_generator(verdict()))
    assert isinstance(outcome, NeedsEscalation)


@pytest.mark.asyncio
async def test_lightweight_gate_allows_expected_navigation(fake_generator) -> None:
    expected = ExpectedOutcome(dom_changes=DomChanges(url_should_change=True))
    navigation = options(is_last_step=True, complexity="COMPLEX", action_type="navigation", expected_outcome=expected)

    result = await perform_lightweight_verification(navigation, fake_generator(verdict()))

    assert result is not None and result.task_completed


@pytest.mark.asyncio
async def test_lightweight_not_completed_passes_gate(fake_generator) -> None:
    result = await perform_lightweight_verification(
        options(is_last_step=True, complexity="COMPLEX"),
        fake_generator(verdict(task_completed=False, confidence=1.7)),
    )

    assert result is not None
    assert not result.task_completed
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_lightweight_parse_failure_falls_through(fake_generator, telemetry) -> None:
    last = options(is_last_step=True, complexity="SIMPLE")

    assert await perform_lightweight_verification(last, fake_generator("Yes, it worked")) is None

    outcome = await evaluate_tiers(last, fake_generator("Yes, it worked"))
    assert isinstance(outcome, VerificationFailure)
    assert any(e["type"] == "exception" for e in telemetry.events)


@pytest.mark.asyncio
@pytest.mark.parametrize("action_succeeded, task_completed", [("false", "false"), (True, "true"), (1, True)])
async def test_lightweight_string_booleans_fall_through(fake_generator, action_succeeded, task_completed) -> None:
    reply = json.dumps({
        "action_succeeded": action_succeeded,
        "task_completed": task_completed,
        "confidence": 0.9,
        "reason": "Looks done",
    })
    last = options(is_last_step=True, complexity="SIMPLE")

    assert await perform_lightweight_verification(last, fake_generator(reply)) is None
    assert await run_tiered_verification(last, fake_generator(reply)) is None

    outcome = await evaluate_tiers(last, fake_generator(reply))
    assert isinstance(outcome, VerificationFailure)
    assert outcome.error == "Lightweight verdict fields must be JSON booleans"


@pytest.mark.asyncio
async def test_lightweight_model_error_is_captured(fake_generator, telemetry) -> None:
    generator = fake_generator(error=RuntimeError("rate limited"))

    outcome = await evaluate_tiers(options(is_last_step=True, complexity="SIMPLE"), generator)

    assert isinstance(outcome, VerificationFailure)
    assert outcome.error == "rate limited"
    exception = next(e for e in telemetry.events if e["type"] == "exception")
    assert exception["payload"]["tags"] == {"component": "tiered-verification", "tier": "lightweight"}


@pytest.mark.asyncio
async def test_tier_one_verdict_skips_model(fake_generator) -> None:
    generator = fake_generator(verdict())

    outcome = await evaluate_tiers(options(action_type="navigation", after_url="https://shop.test/cart"), generator)

    assert isinstance(outcome, Verdict)
    assert outcome.result.tier == "deterministic"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_run_tiered_verification_returns_none_when_escalating(fake_generator) -> None:
    assert await run_tiered_verification(options(), fake_generator(verdict())) is None


@pytest.mark.asyncio
async def test_usage_recorded_only_with_tenant_and_user(fake_generator, telemetry) -> None:
    context = VerificationContext(tenant_id="t1", user_id="u1", session_id="s1")
    generator = fake_generator(verdict(), prompt_tokens=120, completion_tokens=30)

    await perform_lightweight_verification(options(is_last_step=True, complexity="SIMPLE", context=context), generator)
    await perform_lightweight_verification(options(is_last_step=True, complexity="SIMPLE"), generator)

    assert len(telemetry.usage) == 1
    record = telemetry.usage[0]
    assert record.action_type == "VERIFICATION_LIGHTWEIGHT"
    assert (record.input_tokens, record.output_tokens) == (120, 30)
    assert record.session_id == "s1"


def test_compute_is_last_step() -> None:
    assert compute_is_last_step(None, 5)
    assert compute_is_last_step(0, 0)
    assert compute_is_last_step(4, 5)
    assert not compute_is_last_step(3, 5)


def test_estimate_tokens_saved() -> None:
    assert estimate_tokens_saved("deterministic") == 400
    assert estimate_tokens_saved("lightweight") == 300
    assert estimate_tokens_saved("full") == 0
