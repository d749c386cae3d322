from __future__ import annotations

import pytest

from interact_agent.actions import (
    DEFAULT_GRAMMAR,
    build_fail_action,
    build_finish_action,
    classify_action_type,
    extract_action_name,
    extract_action_type,
    extract_click_element_id,
    extract_element_id,
    extract_set_value_params,
    is_chainable_action,
    is_high_risk_action,
    is_terminal_action,
    parse_action,
    parse_fail_message,
    parse_finish_message,
)
from interact_agent.actions.grammar import encode_quoted


def test_parse_action_decodes_typed_arguments() -> None:
    parsed = parse_action('setValue(42, "Jane, Doe", true)')

    assert parsed is not None
    assert parsed.name == "setValue"
    assert parsed.args == (42, "Jane, Doe", True)
    assert parsed.element_id == 42
    assert parsed.string_args == ["Jane, Doe"]


@pytest.mark.parametrize("action", ["click(", "setValue(1, \"open)", "noParens", "click(1,)"])
def test_parse_action_rejects_malformed_input(action: str) -> None:
    assert parse_action(action) is None


def test_with_element_id_keeps_other_arguments_verbatim() -> None:
    parsed = parse_action('setValue(42, "He said \\"hi\\"")')

    retargeted = parsed.with_element_id(45)

    assert retargeted.to_action_string() == 'setValue(45, "He said \\"hi\\"")'
    assert retargeted.raw == retargeted.to_action_string()
    assert retargeted.args[1] == 'He said "hi"'


def test_with_element_id_requires_element_argument() -> None:
    with pytest.raises(ValueError):
        parse_action('press("Enter")').with_element_id(3)


def test_encode_quoted_escapes_quotes_and_control_characters() -> None:
    encoded = encode_quoted('line "one"\nline two')

    assert encoded == '"line \\"one\\"\\nline two"'
    assert parse_action(f"setValue(1, {encoded})").args[1] == 'line "one"\nline two'


def test_grammar_validates_names_and_argument_counts() -> None:
    assert DEFAULT_GRAMMAR.validate_action("click(12)").valid
    assert DEFAULT_GRAMMAR.validate_action('setValue(3, "x", true)').valid

    unknown = DEFAULT_GRAMMAR.validate_action("explode(1)")
    assert not unknown.valid
    assert unknown.action_name == "explode"
    assert 'Invalid action name: "explode"' in unknown.error

    missing_args = DEFAULT_GRAMMAR.validate_action("click()")
    assert not missing_args.valid
    assert "Expected format: click(123)" in missing_args.error

    assert not DEFAULT_GRAMMAR.validate_action("not an action").valid


def test_grammar_prompt_lists_categories_and_version() -> None:
    prompt = DEFAULT_GRAMMAR.build_prompt()

    assert "Form Controls:" in prompt
    assert "setValue(index (number), text (string), clear (boolean, optional))" in prompt
    assert f"Grammar version: {DEFAULT_GRAMMAR.version}" in prompt
    assert DEFAULT_GRAMMAR.is_valid_action_name("finish")
    assert not DEFAULT_GRAMMAR.is_valid_action_name("Finish")


def test_chainability_is_case_sensitive_but_type_lookup_is_not() -> None:
    assert is_chainable_action('setValue(1, "x")')
    assert is_chainable_action("check(4)")
    assert not is_chainable_action("Click(1)")
    assert not is_chainable_action('press("Enter")')
    assert extract_action_type("Click(1)") == "click"
    assert extract_action_type('press("Enter")') is None


@pytest.mark.parametrize(
    "action",
    ['finish("done")', 'fail("blocked")', 'navigate("https://x.test")', "submit(3)", "deleteRow(2)", "RemoveItem(1)"],
)
def test_high_risk_actions(action: str) -> None:
    assert is_high_risk_action(action)


def test_high_risk_matches_action_name_not_arguments() -> None:
    assert not is_high_risk_action('setValue(1, "delete me")')


def test_extract_element_id() -> None:
    assert extract_element_id("click(123)") == 123
    assert extract_element_id('setValue(7, "x")') == 7
    assert extract_element_id("goBack()") is None
    assert extract_element_id('press("Enter")') is None


def test_action_helpers_ignore_surrounding_whitespace() -> None:
    assert is_high_risk_action(' finish("x")')
    assert is_high_risk_action('\tnavigate("https://x.test")')
    assert is_chainable_action('  setValue(1, "x") ')
    assert extract_action_type(" check(4)") == "check"
    assert extract_element_id('setValue( 42, "x")') == 42
    assert extract_element_id(' click(12, 10, 20)') == 12


def test_extract_element_id_for_unbalanced_action() -> None:
    assert extract_element_id('setValue( 9, "unterminated') == 9


def test_finish_message_round_trip_preserves_quotes() -> None:
    action = build_finish_action('He said "hi"')

    assert action == 'finish("He said \\"hi\\"")'
    assert parse_finish_message(action) == 'He said "hi"'


def test_fail_message_round_trip_preserves_newlines_and_backslashes() -> None:
    reason = "Login required\nC:\\path"
    assert parse_fail_message(build_fail_action(reason)) == reason


def test_terminal_actions_without_message() -> None:
    assert build_finish_action() == "finish()"
    assert build_fail_action("") == "fail()"
    assert parse_finish_message("finish()") is None
    assert is_terminal_action("fail()")
    assert not is_terminal_action("click(1)")


def test_string_parsers() -> None:
    assert extract_action_name("click(123)") == "click"
    assert extract_action_name("invalid") is None
    assert extract_click_element_id("click(123, 10, 20)") == "123"
    assert extract_click_element_id("hover(3)") is None
    assert extract_set_value_params('setValue(5, "a, b")') == {"element_id": "5", "text": "a, b"}
    assert extract_set_value_params("setValue(5, unquoted)") is None


def test_classify_action_type() -> None:
    dom = '<button id="3" aria-haspopup="true">Menu</button><a id="4" href="/docs">Docs</a><div id="5">x</div>'

    assert classify_action_type("click(3)", dom) == "dropdown"
    assert classify_action_type("click(4)", dom) == "navigation"
    assert classify_action_type("click(5)", dom) == "generic"
    assert classify_action_type('navigate("https://x.test")', dom) == "navigation"
    assert classify_action_type('setValue(5, "x")', dom) == "generic"
