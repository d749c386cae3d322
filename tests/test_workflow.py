from __future__ import annotations

import json

import pytest

from interact_agent.chaining import build_chain_metadata
from interact_agent.nodes import route_after_verification
from interact_agent.verification import ActualState, BeforeState, ClientObservations, TieredVerificationOptions
from interact_agent.views import (
    ActionChain,
    ChainActionError,
    ChainedAction,
    ChainPartialState,
    ExpectedOutcome,
    NextGoal,
)
from interact_agent.workflow import create_interact_workflow, route_round

DOM_AFTER_FAILURE = '[7] input type="text" name="last"'


def make_chain() -> ActionChain:
    chained = [
        ChainedAction(action='setValue(2, "Jane")', description="Enter first", index=0,
                      target_element_id=2, action_type="setValue"),
        ChainedAction(action='setValue(3, "Doe")', description="Enter last", index=1,
                      target_element_id=3, action_type="setValue"),
        ChainedAction(action='setValue(4, "jane@x.test")', description="Enter email", index=2,
                      target_element_id=4, action_type="setValue"),
    ]
    return ActionChain(actions=chained, metadata=build_chain_metadata(chained, "FORM_FILL"))


def recovery_state(retry_attempts: int = 0, executed=None) -> dict:
    chain = make_chain()
    return {
        "original_chain": chain,
        "last_executed_action_index": 0,
        "partial_state": ChainPartialState(
            executed_actions=executed if executed is not None else [chain.actions[0].action],
            total_actions_in_chain=3,
        ),
        "current_dom": DOM_AFTER_FAILURE,
        "chain_error": ChainActionError(action='setValue(3, "Doe")', message="timed out", code="TIMEOUT", failed_index=1),
        "retry_attempts": retry_attempts,
        "history": [],
    }


def test_route_round() -> None:
    assert route_round(recovery_state()) == "recover_chain"
    assert route_round({"verification_options": None}) == "verify"


@pytest.mark.parametrize(
    "state,expected",
    [
        ({"error": "boom"}, "replan"),
        ({}, "replan"),
        ({"verification_result": {"route_to_correction": True, "action_succeeded": False}}, "correction"),
        ({"verification_result": {"action_succeeded": True, "task_completed": True}}, "goal_achieved"),
        ({"verification_result": {"action_succeeded": True, "task_completed": False}}, "next_step"),
        ({"verification_result": {"action_succeeded": False, "task_completed": False}}, "correction"),
    ],
)
def test_route_after_verification(state, expected) -> None:
    assert route_after_verification(state) == expected


@pytest.mark.asyncio
async def test_verification_round_with_tier_one_verdict(fake_generator) -> None:
    generator = fake_generator()
    options = TieredVerificationOptions(
        before_url="https://a.test/", after_url="https://a.test/next", action="click(2)",
        action_type="navigation", is_last_step=False,
    )

    final = await create_interact_workflow().ainvoke(
        {"verification_options": options, "history": []},
        config={"configurable": {"generator": generator}},
    )

    assert final["route"] == "next_step"
    assert final["verification_result"]["tier"] == "deterministic"
    assert final["history"][0]["node"] == "verify"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_verification_round_reaches_goal_with_semantic_check(fake_generator) -> None:
    generator = fake_generator(json.dumps({
        "action_succeeded": True, "task_completed": True, "confidence": 0.9, "reason": "Order placed",
    }))
    options = TieredVerificationOptions(
        before_url="https://a.test/", after_url="https://a.test/", action="click(9)", is_last_step=True,
    )

    final = await create_interact_workflow().ainvoke(
        {"verification_options": options, "history": []},
        config={"configurable": {"generator": generator}},
    )

    # MEDIUM generic click: the lightweight completion claim is outside the gate
    assert final["verification_result"]["tier"] == "full"
    assert final["route"] == "goal_achieved"
    assert len(generator.calls) == 2


@pytest.mark.asyncio
async def test_verification_round_without_options_replans() -> None:
    final = await create_interact_workflow().ainvoke({"history": []})

    assert final["route"] == "replan"
    assert final["error"] == "verification_options missing"


@pytest.mark.asyncio
async def test_verification_round_classifies_link_click_from_dom(fake_generator) -> None:
    generator = fake_generator()
    options = TieredVerificationOptions(before_url="https://a.test/", after_url="https://a.test/docs", action="click(4)")

    final = await create_interact_workflow().ainvoke(
        {
            "verification_options": options,
            "actual_state": ActualState(dom_snapshot='<a id="4" href="/docs">Docs</a>', url="https://a.test/docs"),
            "current_step_index": 0,
            "total_steps": 3,
            "history": [],
        },
        config={"configurable": {"generator": generator}},
    )

    assert final["verification_result"]["tier"] == "deterministic"
    assert final["verification_result"]["reason"] == "Deterministic: Navigation successful for intermediate step."
    assert final["route"] == "next_step"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_verification_round_checks_next_goal_from_expected_outcome(fake_generator) -> None:
    generator = fake_generator()
    options = TieredVerificationOptions(
        before_url="https://a.test/cart", after_url="https://a.test/cart", action="click(2)",
        expected_outcome=ExpectedOutcome(next_goal=NextGoal(description="Shipping form", selector="#shipping", required=True)),
    )

    final = await create_interact_workflow().ainvoke(
        {
            "verification_options": options,
            "actual_state": ActualState(dom_snapshot='<div id="billing">Billing</div>', url="https://a.test/cart"),
            "current_step_index": 1,
            "total_steps": 3,
            "history": [],
        },
        config={"configurable": {"generator": generator}},
    )

    assert final["verification_result"]["route_to_correction"] is True
    assert "Next-goal NOT available: Shipping form" in final["verification_result"]["reason"]
    assert final["route"] == "correction"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_verification_round_builds_observations_from_before_state(fake_generator) -> None:
    generator = fake_generator(json.dumps({
        "action_succeeded": True, "task_completed": False, "confidence": 0.8, "reason": "Saved",
    }))
    options = TieredVerificationOptions(
        before_url="https://a.test/", after_url="https://a.test/", action="click(2)", is_last_step=False,
    )

    final = await create_interact_workflow().ainvoke(
        {
            "verification_options": options,
            "before_state": BeforeState(url="https://a.test/", dom_hash="before", active_element="button Save"),
            "after_dom_hash": "after",
            "client_observations": ClientObservations(did_network_occur=True),
            "history": [],
        },
        config={"configurable": {"generator": generator}},
    )

    assert final["route"] == "next_step"
    prompt = generator.calls[0]["user_prompt"]
    assert "- URL did not change" in prompt
    assert "- Page content updated (DOM changed)" in prompt
    assert '- Focus/active element changed from "button Save" to "none"' in prompt
    assert "- Background network activity detected (extension witnessed)" in prompt


@pytest.mark.asyncio
async def test_verification_round_keeps_client_observations(fake_generator) -> None:
    generator = fake_generator(json.dumps({
        "action_succeeded": False, "task_completed": False, "confidence": 0.2, "reason": "Nothing happened",
    }))
    options = TieredVerificationOptions(
        before_url="https://a.test/", after_url="https://a.test/", action="click(2)", is_last_step=False,
        observations=["Nothing visible changed"],
    )

    final = await create_interact_workflow().ainvoke(
        {
            "verification_options": options,
            "before_state": BeforeState(url="https://a.test/", dom_hash="same"),
            "after_dom_hash": "same",
            "history": [],
        },
        config={"configurable": {"generator": generator}},
    )

    assert final["route"] == "correction"
    prompt = generator.calls[0]["user_prompt"]
    assert "- Nothing visible changed" in prompt
    assert "DOM hash identical" not in prompt


@pytest.mark.asyncio
async def test_recovery_round_counts_retries() -> None:
    final = await create_interact_workflow().ainvoke(recovery_state(retry_attempts=0))

    result = final["recovery_result"]
    assert result.strategy == "RETRY_FAILED"
    assert result.corrected_action.action == 'setValue(7, "Doe")'
    assert final["retry_attempts"] == 1
    assert final["history"][0]["strategy"] == "RETRY_FAILED"


@pytest.mark.asyncio
async def test_recovery_round_regenerates_after_retry_budget() -> None:
    final = await create_interact_workflow().ainvoke(recovery_state(retry_attempts=2))

    result = final["recovery_result"]
    assert result.strategy == "REGENERATE_CHAIN"
    assert result.reason == "Retry limit reached (2 attempts), regenerating chain"
    assert final["retry_attempts"] == 2


@pytest.mark.asyncio
async def test_recovery_round_rejects_inconsistent_report() -> None:
    final = await create_interact_workflow().ainvoke(recovery_state(executed=['setValue(2, "Janet")']))

    assert final.get("recovery_result") is None
    assert final["error"].startswith("Action mismatch at index 0")
