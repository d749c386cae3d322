"""
Chain Generator

Builds action chains from three sources:
- structured form data ({field: value}) resolved against the DOM
- a list of action strings proposed by the planner
- free-form planner text declaring a batch (CHAIN: a | b, numbered lists, one call per line)

Every path goes through the same filters and, when a DOM is available, the
safety analyzer before a chain is returned.
"""
import logging
import re
from typing import Dict, List, Optional

from interact_agent.actions.grammar import (
    encode_quoted,
    extract_action_type,
    extract_element_id,
    is_chainable_action,
    is_high_risk_action,
    parse_action,
)
from interact_agent.chaining.analyzer import (
    MAX_CHAIN_SIZE,
    MIN_CHAIN_SIZE,
    analyze_chain_safety,
    build_chain_metadata,
)
from interact_agent.chaining.verification_levels import apply_verification_levels
from interact_agent.dom.resolver import ResolverFactory, default_resolver
from interact_agent.telemetry import capture_exception
from interact_agent.views import ActionChain, ChainedAction, ChainReason

logger = logging.getLogger(__name__)

_CHAIN_MARKER_RE = re.compile(r"CHAIN:\s*(.+?)(?:\n|$)", re.IGNORECASE)
_NUMBERED_ACTION_RE = re.compile(r"^\d+\.\s*(\w+\([^)]+\))", re.MULTILINE)
_ACTION_LINE_RE = re.compile(r"^\w+\(\d+")
_PROMPT_FILL_INTENT_RE = re.compile(r"fill|enter|input|complete|form|data", re.IGNORECASE)

_FIELD_TAGS = r"(?:input|select|textarea)"


# =============================================================================
# Form data
# =============================================================================

def find_element_id_by_label(dom: str, label_text: str) -> Optional[int]:
    """
    Resolve a field name to an element handle.

    Match order: exact name attribute, placeholder substring, label text
    before the field, label text after the field.
    """
    label = re.escape(label_text.lower().strip())
    patterns = [
        rf'\[(\d+)\]\s*{_FIELD_TAGS}[^\[]*name="{label}"',
        rf'\[(\d+)\]\s*{_FIELD_TAGS}[^\[]*placeholder="[^"]*{label}[^"]*"',
        rf"{label}[^\[]*\[(\d+)\]\s*{_FIELD_TAGS}",
        rf"\[(\d+)\]\s*{_FIELD_TAGS}[^\[]*{label}",
    ]
    for pattern in patterns:
        match = re.search(pattern, dom, re.IGNORECASE)
        if match:
            return int(match.group(1))
    return None


def generate_form_fill_chain(
    field_data: Dict[str, str],
    dom: str,
    container_selector: Optional[str] = None,
    resolver_factory: ResolverFactory = default_resolver,
) -> Optional[ActionChain]:
    """
    Generate a setValue chain for a {field name: value} mapping.

    Unresolved fields are dropped; fewer than two resolved fields means no chain.
    The resolved actions must pass the safety analyzer, whose container is used
    when the caller names none.
    """
    if len(field_data) < MIN_CHAIN_SIZE:
        return None

    actions: List[ChainedAction] = []
    for field_name, value in field_data.items():
        element_id = find_element_id_by_label(dom, field_name)
        if element_id is None:
            logger.debug(f"Form fill: no element found for field '{field_name}'")
            continue
        actions.append(ChainedAction(
            action=f"setValue({element_id}, {encode_quoted(value)})",
            description=f"Enter {field_name}",
            index=len(actions),
            target_element_id=element_id,
            action_type="setValue",
        ))

    if len(actions) < MIN_CHAIN_SIZE:
        return None

    actions = actions[:MAX_CHAIN_SIZE]
    safety = analyze_chain_safety([a.action for a in actions], dom, resolver_factory)
    if not safety.can_chain:
        logger.info(f"Form fill chain rejected by safety check: {safety.reason}")
        return None

    chain = ActionChain(
        actions=actions,
        metadata=build_chain_metadata(actions, "FORM_FILL", container_selector or safety.container_selector),
    )
    logger.info(f"✅ Form fill chain generated: {len(actions)}/{len(field_data)} fields resolved")
    return apply_verification_levels(chain)


# =============================================================================
# Action lists
# =============================================================================

def generate_chain_from_actions(
    actions: List[str],
    descriptions: Optional[List[str]] = None,
    dom: Optional[str] = None,
    resolver_factory: ResolverFactory = default_resolver,
) -> Optional[ActionChain]:
    """
    Package planner-proposed actions as a chain when it is safe to do so.

    High-risk and non-chainable actions are filtered out first. When a DOM is
    given the remaining actions must pass the safety analyzer.
    """
    described = list(zip(actions, descriptions or [None] * len(actions)))
    if len(described) < len(actions):
        described += [(a, None) for a in actions[len(described):]]

    candidates = [
        (action, description)
        for action, description in described
        if not is_high_risk_action(action) and is_chainable_action(action)
    ]
    if len(candidates) < MIN_CHAIN_SIZE:
        return None

    if dom:
        safety = analyze_chain_safety([a for a, _ in candidates], dom, resolver_factory)
        if not safety.can_chain:
            logger.info(f"Chain safety check failed: {safety.reason}")
            return None

    chained = [
        ChainedAction(
            action=action,
            description=description or generate_action_description(action),
            index=index,
            target_element_id=extract_element_id(action),
            action_type=extract_action_type(action),
        )
        for index, (action, description) in enumerate(candidates[:MAX_CHAIN_SIZE])
    ]

    chain = ActionChain(actions=chained, metadata=build_chain_metadata(chained, determine_chain_reason(chained)))
    return apply_verification_levels(chain)


def parse_chain_from_llm_response(
    llm_response: str,
    dom: Optional[str] = None,
    resolver_factory: ResolverFactory = default_resolver,
) -> Optional[ActionChain]:
    """
    Recognise a batch declared in planner text.

    Conventions, first match wins:
        CHAIN: action1 | action2 | action3
        1. action1
        2. action2
        one action call per line, each starting name(<digits>
    """
    try:
        marker = _CHAIN_MARKER_RE.search(llm_response)
        if marker:
            actions = [a.strip() for a in marker.group(1).split("|") if a.strip()]
            if len(actions) >= MIN_CHAIN_SIZE:
                return generate_chain_from_actions(actions, dom=dom, resolver_factory=resolver_factory)

        numbered = _NUMBERED_ACTION_RE.findall(llm_response)
        if len(numbered) >= MIN_CHAIN_SIZE:
            return generate_chain_from_actions(numbered, dom=dom, resolver_factory=resolver_factory)

        lines = [line.strip() for line in llm_response.split("\n")]
        action_lines = [line for line in lines if _ACTION_LINE_RE.match(line)]
        if len(action_lines) >= MIN_CHAIN_SIZE:
            return generate_chain_from_actions(action_lines, dom=dom, resolver_factory=resolver_factory)

        return None
    except Exception as e:
        logger.error(f"Failed to parse chain from LLM response: {e}", exc_info=True)
        capture_exception(e, tags={"component": "chain-generator"}, extra={"llm_response_length": len(llm_response or "")})
        return None


# =============================================================================
# Prompt enhancement
# =============================================================================

def build_chain_prompt_instructions(plan_step: Optional[str] = None) -> str:
    """Chaining instructions for the planner prompt, only for form-like steps"""
    if not plan_step or not _PROMPT_FILL_INTENT_RE.search(plan_step):
        return ""

    return f"""
ACTION CHAINING INSTRUCTIONS:
If you need to fill multiple form fields, you can return multiple actions as a chain.
Format: CHAIN: action1 | action2 | action3

Example for form filling:
CHAIN: setValue(101, "John") | setValue(102, "Doe") | setValue(103, "john@email.com")

Chain rules:
- Only chain setValue, select, check, uncheck actions
- Do NOT chain click actions (may cause navigation)
- Maximum {MAX_CHAIN_SIZE} actions per chain
- All actions must target the same form/container
- Do NOT include submit/finish actions in chains

If unsure, return a single action instead of a chain.
"""


def enhance_prompt_for_chaining(base_prompt: str, plan_step: Optional[str] = None) -> str:
    """Insert chaining instructions before the ACTION: section, or append them"""
    instructions = build_chain_prompt_instructions(plan_step)
    if not instructions:
        return base_prompt

    insert_point = base_prompt.find("ACTION:")
    if insert_point != -1:
        return base_prompt[:insert_point] + instructions + "\n" + base_prompt[insert_point:]
    return base_prompt + "\n" + instructions


# =============================================================================
# Helpers
# =============================================================================

def generate_action_description(action: str) -> str:
    """Human-readable description of a chainable action"""
    action_type = extract_action_type(action)
    element_id = extract_element_id(action)
    parsed = parse_action(action)
    text_args = parsed.string_args if parsed else []

    if action_type == "setValue":
        value = text_args[0] if text_args else ""
        return f'Enter "{value[:20]}{"..." if len(value) > 20 else ""}"'
    if action_type == "click":
        return f"Click element {element_id}"
    if action_type == "select":
        return f'Select "{text_args[0] if text_args else ""}"'
    if action_type == "check":
        return "Check checkbox"
    if action_type == "uncheck":
        return "Uncheck checkbox"
    if action_type == "focus":
        return f"Focus element {element_id}"
    if action_type == "blur":
        return f"Remove focus from element {element_id}"
    if action_type == "hover":
        return f"Hover over element {element_id}"
    if action_type == "scroll":
        return "Scroll page"
    if action_type == "wait":
        return f"Wait {element_id if element_id is not None else '?'}ms"
    return f"Execute {action[:30]}"


def determine_chain_reason(actions: List[ChainedAction]) -> ChainReason:
    types = [a.action_type for a in actions if a.action_type is not None]

    if all(t == "setValue" for t in types):
        return "FORM_FILL"
    if all(t in ("setValue", "select") for t in types):
        return "FORM_FILL"
    if all(t in ("check", "uncheck") for t in types):
        return "BULK_SELECTION"
    if all(t in ("setValue", "select", "check", "uncheck") for t in types):
        return "RELATED_INPUTS"
    return "SEQUENTIAL_STEPS"
