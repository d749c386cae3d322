"""
Structured Response Parser

Model output that should be JSON still arrives with BOMs, zero-width
characters, markdown fences or cut off at the token limit. parse_structured_response
cleans those up, tries a best-effort repair of truncated objects and, when it
still fails, reports what went wrong in ParseFailure.diagnostics.
"""
import json
import logging
import re
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel

from interact_agent.telemetry import capture_exception

logger = logging.getLogger(__name__)

ParseIssueType = Literal[
    "empty_content",
    "markdown_wrapped",
    "invisible_chars",
    "truncated_json",
    "invalid_json",
    "schema_mismatch",
    "unknown",
]

VERIFICATION_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "action_succeeded": {
            "type": "boolean",
            "description": "Whether this specific action did something useful",
        },
        "task_completed": {
            "type": "boolean",
            "description": "Whether the user's entire goal is finished",
        },
        "sub_task_completed": {
            "type": "boolean",
            "description": "Whether the current sub-task objective is finished",
        },
        "confidence": {
            "type": "number",
            "minimum": 0,
            "maximum": 1,
        },
        "reason": {
            "type": "string",
            "description": "Short user-friendly explanation",
        },
    },
    "required": ["action_succeeded", "task_completed", "confidence", "reason"],
}

# BOM, zero-width space, zero-width non-joiner, zero-width joiner, soft hyphen
_INVISIBLE_RE = re.compile("[\ufeff\u200b\u200c\u200d\u00ad]")
_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*\n?([\s\S]*?)\n?```$")


class ParseDiagnostics(BaseModel):
    content_length: int
    sanitized_length: int
    had_markdown_fences: bool
    had_invisible_chars: bool
    content_preview: str
    issue_type: ParseIssueType


class ParseSuccess(BaseModel):
    success: Literal[True] = True
    data: Dict[str, Any]


class ParseFailure(BaseModel):
    success: Literal[False] = False
    error: str
    raw_content: str
    diagnostics: ParseDiagnostics


ParseResult = Union[ParseSuccess, ParseFailure]


def _strip_invisible_chars(content: str) -> Tuple[str, bool]:
    cleaned = _INVISIBLE_RE.sub("", content)
    return cleaned, len(cleaned) != len(content)


def _strip_markdown_fences(content: str) -> Tuple[str, bool]:
    trimmed = content.strip()
    match = _FENCE_RE.match(trimmed)
    if match and match.group(1):
        return match.group(1).strip(), True
    return trimmed, False


def _scan_structure(content: str) -> Tuple[list, bool, int, int]:
    """Walk the JSON text outside strings: (closer stack, in_string, brace balance, bracket balance)"""
    stack = []
    braces = brackets = 0
    in_string = escape_next = False

    for char in content:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            braces += 1
            stack.append("}")
        elif char == "[":
            brackets += 1
            stack.append("]")
        elif char in "}]":
            if char == "}":
                braces -= 1
            else:
                brackets -= 1
            if stack and stack[-1] == char:
                stack.pop()

    return stack, in_string, braces, brackets


def is_truncated(content: str) -> bool:
    """Unbalanced braces or brackets outside string literals"""
    _, _, braces, brackets = _scan_structure(content)
    return braces != 0 or brackets != 0


def repair_truncated_json(content: str) -> Optional[str]:
    """Close an open string and any open objects/arrays; None if it is not JSON-like"""
    trimmed = content.strip()
    if not trimmed.startswith(("{", "[")):
        return None

    stack, in_string, _, _ = _scan_structure(trimmed)
    if not stack:
        return trimmed

    repaired = trimmed + ('"' if in_string else "")
    while stack:
        repaired += stack.pop()
    return repaired


def parse_structured_response(
    content: Optional[str],
    schema_name: Optional[str] = None,
    generation_name: Optional[str] = None,
) -> ParseResult:
    """
    Parse model output expected to be a JSON object.

    Args:
        content: Raw model output
        schema_name: Schema the output should follow (diagnostics only)
        generation_name: Call site name (diagnostics only)

    Returns:
        ParseSuccess with the decoded object, or ParseFailure with diagnostics
    """
    if not content:
        return ParseFailure(
            error="Empty content received from model",
            raw_content="",
            diagnostics=ParseDiagnostics(
                content_length=0,
                sanitized_length=0,
                had_markdown_fences=False,
                had_invisible_chars=False,
                content_preview="",
                issue_type="empty_content",
            ),
        )

    original_length = len(content)
    without_invisible, had_invisible = _strip_invisible_chars(content)
    sanitized, had_fences = _strip_markdown_fences(without_invisible)
    truncated = is_truncated(sanitized)

    issue_type: ParseIssueType = "unknown"
    try:
        to_parse = sanitized
        if truncated:
            repaired = repair_truncated_json(sanitized)
            if repaired:
                to_parse = repaired
                logger.warning(f"Structured output appears truncated, attempting repair ({generation_name or 'unknown'})")

        parsed = json.loads(to_parse)

        if had_invisible or had_fences or truncated:
            logger.warning(
                f"Structured output required sanitization: invisible={had_invisible}, "
                f"fences={had_fences}, truncated={truncated} ({original_length} → {len(sanitized)} chars)"
            )

        if not isinstance(parsed, dict):
            issue_type = "schema_mismatch"
            raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")

        return ParseSuccess(data=parsed)

    except ValueError as e:
        if issue_type != "schema_mismatch":
            if had_fences:
                issue_type = "markdown_wrapped"
            elif had_invisible:
                issue_type = "invisible_chars"
            elif truncated:
                issue_type = "truncated_json"
            else:
                issue_type = "invalid_json"

        diagnostics = ParseDiagnostics(
            content_length=original_length,
            sanitized_length=len(sanitized),
            had_markdown_fences=had_fences,
            had_invisible_chars=had_invisible,
            content_preview=content[:200],
            issue_type=issue_type,
        )
        logger.error(f"Structured output parse failed: {e} (issue={issue_type}, schema={schema_name})")
        capture_exception(
            ValueError(f"Structured output parse failed: {issue_type}"),
            tags={
                "component": "structured-response-parser",
                "issue_type": issue_type,
                "generation_name": generation_name or "unknown",
            },
            extra={"diagnostics": diagnostics.model_dump(), "parse_error": str(e), "schema_name": schema_name},
        )
        return ParseFailure(error=str(e), raw_content=content, diagnostics=diagnostics)


def get_field(data: Optional[Dict[str, Any]], key: str, default: Any) -> Any:
    """Field value, or default when missing or null"""
    if data is None:
        return default
    value = data.get(key)
    return default if value is None else value
