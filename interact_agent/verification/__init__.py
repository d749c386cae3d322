"""
Tiered verification: deterministic heuristics, lightweight model check, full semantic check
"""
from .confidence import calculate_confidence, check_next_goal_availability
from .dom_checks import extract_actual_state, is_popup_expectation, perform_dom_checks
from .observations import build_observation_list
from .response_parser import VERIFICATION_RESPONSE_SCHEMA, ParseFailure, ParseSuccess, parse_structured_response
from .semantic import (
    perform_semantic_verification,
    perform_semantic_verification_on_observations,
    verify_action,
)
from .tiered import (
    compute_is_last_step,
    estimate_tokens_saved,
    evaluate_tiers,
    perform_lightweight_verification,
    run_tiered_verification,
    try_deterministic_verification,
)
from .types import (
    ActualState,
    BeforeState,
    ClientObservations,
    ClientVerification,
    FullVerificationResult,
    HeuristicResult,
    LightweightResult,
    NeedsEscalation,
    NextGoalCheckResult,
    TieredVerificationOptions,
    Verdict,
    VerificationContext,
    VerificationFailure,
)

__all__ = [
    "calculate_confidence",
    "check_next_goal_availability",
    "extract_actual_state",
    "is_popup_expectation",
    "perform_dom_checks",
    "build_observation_list",
    "VERIFICATION_RESPONSE_SCHEMA",
    "ParseFailure",
    "ParseSuccess",
    "parse_structured_response",
    "perform_semantic_verification",
    "perform_semantic_verification_on_observations",
    "verify_action",
    "compute_is_last_step",
    "estimate_tokens_saved",
    "evaluate_tiers",
    "perform_lightweight_verification",
    "run_tiered_verification",
    "try_deterministic_verification",
    "ActualState",
    "BeforeState",
    "ClientObservations",
    "ClientVerification",
    "FullVerificationResult",
    "HeuristicResult",
    "LightweightResult",
    "NeedsEscalation",
    "NextGoalCheckResult",
    "TieredVerificationOptions",
    "Verdict",
    "VerificationContext",
    "VerificationFailure",
]
