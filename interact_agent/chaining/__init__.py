"""
Action chaining: safety analysis, chain generation, partial-failure recovery
"""
from .analyzer import (
    CHAIN_CONFIDENCE_THRESHOLD,
    MAX_CHAIN_SIZE,
    MIN_CHAIN_SIZE,
    analyze_chain_safety,
    build_chain_metadata,
    identify_chainable_groups,
)
from .generator import (
    build_chain_prompt_instructions,
    determine_chain_reason,
    enhance_prompt_for_chaining,
    generate_action_description,
    generate_chain_from_actions,
    generate_form_fill_chain,
    parse_chain_from_llm_response,
)
from .recovery import (
    MAX_RETRY_ATTEMPTS,
    MIN_REMAINING_FOR_CHAIN,
    determine_recovery_strategy,
    handle_chain_partial_failure,
    require_valid_partial_state,
    validate_chain_partial_state,
)
from .verification_levels import (
    apply_verification_levels,
    build_client_verification_checks,
    can_use_client_verification,
    determine_verification_level,
)

__all__ = [
    "CHAIN_CONFIDENCE_THRESHOLD",
    "MAX_CHAIN_SIZE",
    "MIN_CHAIN_SIZE",
    "analyze_chain_safety",
    "build_chain_metadata",
    "identify_chainable_groups",
    "build_chain_prompt_instructions",
    "determine_chain_reason",
    "enhance_prompt_for_chaining",
    "generate_action_description",
    "generate_chain_from_actions",
    "generate_form_fill_chain",
    "parse_chain_from_llm_response",
    "MAX_RETRY_ATTEMPTS",
    "MIN_REMAINING_FOR_CHAIN",
    "determine_recovery_strategy",
    "handle_chain_partial_failure",
    "require_valid_partial_state",
    "validate_chain_partial_state",
    "apply_verification_levels",
    "build_client_verification_checks",
    "can_use_client_verification",
    "determine_verification_level",
]
