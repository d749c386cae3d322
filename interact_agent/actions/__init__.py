"""
Action grammar, deterministic action parsers and action-type classification
"""
from .grammar import (
    CHAINABLE_ACTION_TYPES,
    DEFAULT_GRAMMAR,
    ActionDefinition,
    ActionGrammar,
    ActionValidation,
    ChainableActionType,
    ParsedAction,
    extract_action_type,
    extract_element_id,
    is_chainable_action,
    is_high_risk_action,
    parse_action,
)
from .parser import (
    build_fail_action,
    build_finish_action,
    extract_action_name,
    extract_click_element_id,
    extract_set_value_params,
    is_terminal_action,
    parse_fail_message,
    parse_finish_message,
)
from .action_type import ActionType, classify_action_type

__all__ = [
    "CHAINABLE_ACTION_TYPES",
    "DEFAULT_GRAMMAR",
    "ActionDefinition",
    "ActionGrammar",
    "ActionValidation",
    "ChainableActionType",
    "ParsedAction",
    "extract_action_type",
    "extract_element_id",
    "is_chainable_action",
    "is_high_risk_action",
    "parse_action",
    "build_fail_action",
    "build_finish_action",
    "extract_action_name",
    "extract_click_element_id",
    "extract_set_value_params",
    "is_terminal_action",
    "parse_fail_message",
    "parse_finish_message",
    "ActionType",
    "classify_action_type",
]
