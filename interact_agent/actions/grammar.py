"""
Action Grammar - the versioned table of actions the agent may emit

The grammar is an immutable value built once at import time. Anything that
validates against it takes the grammar as a parameter (defaulting to
DEFAULT_GRAMMAR) so a different table can be injected per deployment or test.

Action strings such as setValue(42, "Jane") remain the wire format; inside the
engine they are parsed once into a ParsedAction and re-serialized only when a
corrected action has to go back to the client.
"""
import logging
import re
from typing import Any, Dict, List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

ChainableActionType = Literal[
    "click", "setValue", "check", "uncheck", "select",
    "focus", "blur", "hover", "scroll", "wait",
]

CHAINABLE_ACTION_TYPES: Tuple[str, ...] = get_args(ChainableActionType)

# Input-type actions are mutually compatible inside one chain
INPUT_ACTION_TYPES = frozenset({"setValue", "select", "check", "uncheck"})
PASSIVE_ACTION_TYPES = frozenset({"focus", "blur", "hover", "scroll", "wait"})

# Never chainable: terminal, navigating or destructive
HIGH_RISK_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"^finish\("),
    re.compile(r"^fail\("),
    re.compile(r"^navigate\("),
    re.compile(r"^googleSearch\("),
    re.compile(r"^submit\("),
    re.compile(r"^delete", re.IGNORECASE),
    re.compile(r"^remove", re.IGNORECASE),
)

_ACTION_NAME_RE = re.compile(r"^(\w+)\(")
_ELEMENT_ID_RE = re.compile(r"^\w+\(\s*(\d+)")


class ActionParameter(BaseModel):
    """One positional parameter of an action"""
    model_config = ConfigDict(frozen=True)

    name: str
    type: Literal["string", "number", "boolean"]
    required: bool = True


class ActionDefinition(BaseModel):
    """Definition of a single action in the grammar"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    category: str
    parameters: Tuple[ActionParameter, ...] = ()
    example: str

    @property
    def required_count(self) -> int:
        return sum(1 for p in self.parameters if p.required)


class ActionValidation(BaseModel):
    """Result of validating an action string against a grammar"""
    valid: bool
    action_name: Optional[str] = None
    error: Optional[str] = None


class ParsedAction(BaseModel):
    """
    Typed form of an action string.

    args holds decoded values (int, float, bool or str); arg_sources keeps the
    source text of each argument so untouched arguments re-serialize verbatim.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    args: Tuple[Any, ...] = ()
    arg_sources: Tuple[str, ...] = ()
    raw: str

    @property
    def element_id(self) -> Optional[int]:
        """First positional argument when it is an element index"""
        if self.args and isinstance(self.args[0], int) and not isinstance(self.args[0], bool):
            return self.args[0]
        return None

    @property
    def string_args(self) -> List[str]:
        return [a for a in self.args if isinstance(a, str)]

    def to_action_string(self) -> str:
        return f"{self.name}({', '.join(self.arg_sources)})"

    def with_element_id(self, element_id: int) -> "ParsedAction":
        """Return a copy targeting a different element"""
        if self.element_id is None:
            raise ValueError(f"Action has no element id argument: {self.raw}")
        args = (element_id,) + self.args[1:]
        sources = (str(element_id),) + self.arg_sources[1:]
        replaced = self.model_copy(update={"args": args, "arg_sources": sources})
        return replaced.model_copy(update={"raw": replaced.to_action_string()})


class ActionGrammar(BaseModel):
    """Immutable, versioned action table"""
    model_config = ConfigDict(frozen=True)

    version: str
    actions: Tuple[ActionDefinition, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.actions)

    def get_definition(self, name: str) -> Optional[ActionDefinition]:
        for definition in self.actions:
            if definition.name == name:
                return definition
        return None

    def is_valid_action_name(self, name: str) -> bool:
        return self.get_definition(name) is not None

    def validate_action(self, action: str) -> ActionValidation:
        """
        Validate an action string: known name and an argument count the
        definition accepts.
        """
        trimmed = action.strip()
        match = _ACTION_NAME_RE.match(trimmed)
        if not match:
            return ActionValidation(valid=False, error=f"Invalid action format: {action!r}")

        name = match.group(1)
        definition = self.get_definition(name)
        if definition is None:
            return ActionValidation(
                valid=False,
                action_name=name,
                error=f'Invalid action name: "{name}". Valid actions are: {", ".join(self.names)}',
            )

        parsed = parse_action(trimmed)
        if parsed is None:
            return ActionValidation(
                valid=False,
                action_name=name,
                error=f"Action format does not match expected pattern. Expected format: {definition.example}",
            )

        if not definition.required_count <= len(parsed.args) <= len(definition.parameters):
            return ActionValidation(
                valid=False,
                action_name=name,
                error=(
                    f"Action {name} takes {definition.required_count}-{len(definition.parameters)} "
                    f"arguments, got {len(parsed.args)}. Expected format: {definition.example}"
                ),
            )

        return ActionValidation(valid=True, action_name=name)

    def build_prompt(self) -> str:
        """Prompt text listing every available action, grouped by category"""
        categories: Dict[str, List[ActionDefinition]] = {}
        for definition in self.actions:
            categories.setdefault(definition.category, []).append(definition)

        lines: List[str] = []
        for category, definitions in categories.items():
            lines.append(f"\n{category}:")
            for definition in definitions:
                params = ", ".join(
                    f"{p.name} ({p.type})" if p.required else f"{p.name} ({p.type}, optional)"
                    for p in definition.parameters
                )
                lines.append(f"  - {definition.name}({params}) - {definition.description}")

        examples = "\n".join(f"- {d.example}" for d in self.actions[:10])

        return f"""Available Actions (YOU MUST ONLY USE THESE ACTIONS - NO OTHER ACTIONS ARE ALLOWED):
{chr(10).join(lines)}

RULES:
1. Only generate actions from the list above
2. Use element indices (numbers) from the DOM, never CSS selectors
3. String parameters must be quoted with double quotes
4. Boolean parameters: true or false (no quotes)
5. Number parameters: numeric values (no quotes)

Examples:
{examples}

Grammar version: {self.version} ({len(self.actions)} actions)"""


def _p(name: str, type_: str, required: bool = True) -> ActionParameter:
    return ActionParameter(name=name, type=type_, required=required)


DEFAULT_GRAMMAR = ActionGrammar(
    version="2025.1",
    actions=(
        # Navigation & Browser Control
        ActionDefinition(name="search", category="Navigation & Browser Control",
                         description="Search queries on a search engine",
                         parameters=(_p("query", "string"), _p("engine", "string", False)),
                         example='search("React hooks")'),
        ActionDefinition(name="googleSearch", category="Navigation & Browser Control",
                         description="Search Google for a query",
                         parameters=(_p("query", "string"),),
                         example='googleSearch("weather today")'),
        ActionDefinition(name="navigate", category="Navigation & Browser Control",
                         description="Navigate to a specific URL",
                         parameters=(_p("url", "string"), _p("newTab", "boolean", False)),
                         example='navigate("https://example.com")'),
        ActionDefinition(name="goBack", category="Navigation & Browser Control",
                         description="Navigate back in browser history",
                         example="goBack()"),
        ActionDefinition(name="wait", category="Navigation & Browser Control",
                         description="Wait for the given number of milliseconds",
                         parameters=(_p("ms", "number", False),),
                         example="wait(500)"),
        # Page Interaction
        ActionDefinition(name="click", category="Page Interaction",
                         description="Click an element by index",
                         parameters=(_p("index", "number"), _p("coordinate_x", "number", False),
                                     _p("coordinate_y", "number", False)),
                         example="click(123)"),
        ActionDefinition(name="setValue", category="Page Interaction",
                         description="Set the value of an input or textarea",
                         parameters=(_p("index", "number"), _p("text", "string"), _p("clear", "boolean", False)),
                         example='setValue(42, "Jane")'),
        ActionDefinition(name="scroll", category="Page Interaction",
                         description="Scroll the page or an element",
                         parameters=(_p("down", "boolean", False), _p("pages", "number", False),
                                     _p("index", "number", False)),
                         example="scroll(true, 1)"),
        ActionDefinition(name="findText", category="Page Interaction",
                         description="Scroll to the first occurrence of text",
                         parameters=(_p("text", "string"),),
                         example='findText("Pricing")'),
        ActionDefinition(name="submit", category="Page Interaction",
                         description="Submit the form containing an element",
                         parameters=(_p("index", "number"),),
                         example="submit(12)"),
        # Mouse & Keyboard
        ActionDefinition(name="hover", category="Mouse & Keyboard",
                         description="Hover over an element",
                         parameters=(_p("index", "number"),), example="hover(7)"),
        ActionDefinition(name="doubleClick", category="Mouse & Keyboard",
                         description="Double-click an element",
                         parameters=(_p("index", "number"),), example="doubleClick(7)"),
        ActionDefinition(name="rightClick", category="Mouse & Keyboard",
                         description="Right-click an element",
                         parameters=(_p("index", "number"),), example="rightClick(7)"),
        ActionDefinition(name="press", category="Mouse & Keyboard",
                         description="Press a keyboard key",
                         parameters=(_p("key", "string"), _p("modifiers", "string", False)),
                         example='press("Enter")'),
        ActionDefinition(name="type", category="Mouse & Keyboard",
                         description="Type text into the focused element",
                         parameters=(_p("text", "string"), _p("delay", "number", False)),
                         example='type("hello")'),
        ActionDefinition(name="focus", category="Mouse & Keyboard",
                         description="Focus an element",
                         parameters=(_p("index", "number"),), example="focus(9)"),
        ActionDefinition(name="blur", category="Mouse & Keyboard",
                         description="Remove focus from an element",
                         parameters=(_p("index", "number"),), example="blur(9)"),
        # Form Controls
        ActionDefinition(name="check", category="Form Controls",
                         description="Check a checkbox",
                         parameters=(_p("index", "number"),), example="check(31)"),
        ActionDefinition(name="uncheck", category="Form Controls",
                         description="Uncheck a checkbox",
                         parameters=(_p("index", "number"),), example="uncheck(31)"),
        ActionDefinition(name="select", category="Form Controls",
                         description="Select an option of a select element",
                         parameters=(_p("index", "number"), _p("value", "string")),
                         example='select(18, "Canada")'),
        ActionDefinition(name="dropdownOptions", category="Form Controls",
                         description="List the options of a dropdown",
                         parameters=(_p("index", "number"),), example="dropdownOptions(18)"),
        # Element Queries
        ActionDefinition(name="getText", category="Element Queries",
                         description="Read the text of an element",
                         parameters=(_p("index", "number"),), example="getText(5)"),
        ActionDefinition(name="isVisible", category="Element Queries",
                         description="Check element visibility",
                         parameters=(_p("index", "number"),), example="isVisible(5)"),
        # Dialog Handling
        ActionDefinition(name="acceptDialog", category="Dialog Handling",
                         description="Accept the open dialog",
                         parameters=(_p("text", "string", False),), example="acceptDialog()"),
        ActionDefinition(name="dismissDialog", category="Dialog Handling",
                         description="Dismiss the open dialog", example="dismissDialog()"),
        # Task Completion
        ActionDefinition(name="finish", category="Task Completion",
                         description="Finish the task with a message for the user",
                         parameters=(_p("message", "string", False),),
                         example='finish("Done")'),
        ActionDefinition(name="fail", category="Task Completion",
                         description="Stop the task and explain why it cannot be completed",
                         parameters=(_p("reason", "string", False),),
                         example='fail("Login required")'),
    ),
)


# =============================================================================
# Parsing
# =============================================================================

def _split_arguments(inner: str) -> Optional[List[str]]:
    """Split an argument list on top-level commas, honouring quotes"""
    parts: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    depth = 0
    i = 0
    while i < len(inner):
        char = inner[i]
        if quote:
            current.append(char)
            if char == "\\" and i + 1 < len(inner):
                current.append(inner[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
            current.append(char)
        elif char in "([{":
            depth += 1
            current.append(char)
        elif char in ")]}":
            depth -= 1
            current.append(char)
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    if quote or depth != 0:
        return None

    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def decode_quoted(source: str) -> Optional[str]:
    """Decode a single- or double-quoted literal; None when unterminated"""
    if len(source) < 2 or source[0] not in ("'", '"'):
        return None
    quote = source[0]
    out: List[str] = []
    i = 1
    while i < len(source):
        char = source[i]
        if char == "\\" and i + 1 < len(source):
            nxt = source[i + 1]
            out.append({"n": "\n", "t": "\t", "r": "\r"}.get(nxt, nxt))
            i += 2
            continue
        if char == quote:
            return "".join(out) if i == len(source) - 1 else None
        out.append(char)
        i += 1
    return None


def encode_quoted(value: str) -> str:
    """Double-quote a string literal for an action argument"""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _decode_argument(source: str) -> Any:
    if source[:1] in ("'", '"'):
        return decode_quoted(source)
    if re.fullmatch(r"-?\d+", source):
        return int(source)
    if re.fullmatch(r"-?\d+\.\d+", source):
        return float(source)
    if source in ("true", "false"):
        return source == "true"
    return source


def parse_action(action: str) -> Optional[ParsedAction]:
    """
    Parse an action string into its typed form.

    Returns None for anything that is not name(args...) with balanced
    quotes and brackets.
    """
    trimmed = action.strip()
    match = _ACTION_NAME_RE.match(trimmed)
    if not match or not trimmed.endswith(")"):
        return None

    sources = _split_arguments(trimmed[match.end():-1])
    if sources is None:
        return None

    args = []
    for source in sources:
        if not source:
            return None
        value = _decode_argument(source)
        if value is None:
            return None
        args.append(value)

    return ParsedAction(name=match.group(1), args=tuple(args), arg_sources=tuple(sources), raw=trimmed)


# =============================================================================
# Chainability
# =============================================================================

def _action_name(action: str) -> Optional[str]:
    parsed = parse_action(action)
    if parsed is not None:
        return parsed.name
    match = _ACTION_NAME_RE.match(action.strip())
    return match.group(1) if match else None


def is_chainable_action(action: str) -> bool:
    """True when the action name is one of the chainable types (case-sensitive)"""
    return _action_name(action) in CHAINABLE_ACTION_TYPES


def is_high_risk_action(action: str) -> bool:
    trimmed = action.strip()
    return any(pattern.search(trimmed) for pattern in HIGH_RISK_PATTERNS)


def extract_element_id(action: str) -> Optional[int]:
    """First positional numeric argument, e.g. 42 for setValue(42, "x")"""
    parsed = parse_action(action)
    if parsed is not None:
        return parsed.element_id
    match = _ELEMENT_ID_RE.match(action.strip())
    return int(match.group(1)) if match else None


_ACTION_TYPE_LOOKUP: Dict[str, str] = {name.lower(): name for name in CHAINABLE_ACTION_TYPES}


def extract_action_type(action: str) -> Optional[str]:
    """Chainable action type of an action string, matched case-insensitively"""
    name = _action_name(action)
    if name is None:
        return None
    return _ACTION_TYPE_LOOKUP.get(name.lower())
