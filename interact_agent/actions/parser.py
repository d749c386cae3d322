"""
Action Parser Utilities

Deterministic string parsing for action strings and HTML opening tags.
Only plain string operations (find, slicing, startswith) are used here so the
behaviour is predictable and easy to debug.
"""
from typing import Dict, List, Optional


def _read_quoted_prefix(text: str) -> Optional[str]:
    """
    Decode the double-quoted string at the start of text.

    Escapes \\n, \\t and \\r become control characters; any other escaped
    character is taken literally. Returns None when the closing quote is missing.
    """
    if not text.startswith('"'):
        return None

    out: List[str] = []
    i = 1
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "n":
                out.append("\n")
            elif nxt == "t":
                out.append("\t")
            elif nxt == "r":
                out.append("\r")
            else:
                out.append(nxt)
            i += 2
            continue
        if char == '"':
            return "".join(out)
        out.append(char)
        i += 1
    return None


def _escape_message(message: str) -> str:
    # Backslashes first so later escapes are not doubled
    return (
        message.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def extract_action_name(action: str) -> Optional[str]:
    """
    Extract the action name from an action string.

    Examples:
        extract_action_name('click(123)') -> "click"
        extract_action_name('invalid') -> None
    """
    trimmed = action.strip()
    paren_index = trimmed.find("(")
    if paren_index <= 0:
        return None

    name = trimmed[:paren_index]
    if not all(("a" <= c <= "z") or ("A" <= c <= "Z") for c in name):
        return None
    return name


def extract_click_element_id(action: str) -> Optional[str]:
    """
    Extract the element id from a click action.

    Handles coordinate clicks such as click(123, 10, 20) by returning the
    first argument.
    """
    trimmed = action.strip()
    if not trimmed.startswith("click(") or not trimmed.endswith(")"):
        return None

    inner = trimmed[6:-1].strip()
    if not inner:
        return None

    comma_index = inner.find(",")
    if comma_index > 0:
        return inner[:comma_index].strip()
    return inner


def extract_set_value_params(action: str) -> Optional[Dict[str, str]]:
    """
    Extract element id and text from a setValue action.

    Returns:
        {"element_id": ..., "text": ...} or None when the action is not a
        setValue with a double-quoted text argument
    """
    trimmed = action.strip()
    if not trimmed.startswith("setValue(") or not trimmed.endswith(")"):
        return None

    inner = trimmed[9:-1].strip()
    comma_index = inner.find(",")
    if comma_index <= 0:
        return None

    element_id = inner[:comma_index].strip()
    text = _read_quoted_prefix(inner[comma_index + 1:].strip())
    if text is None:
        return None
    return {"element_id": element_id, "text": text}


def _parse_terminal_message(action: str, prefix: str) -> Optional[str]:
    if not action.startswith(prefix) or not action.endswith(")"):
        return None
    inner = action[len(prefix):-1].strip()
    if not inner:
        return None
    return _read_quoted_prefix(inner)


def parse_finish_message(action: str) -> Optional[str]:
    """
    Parse a finish action and extract its message.

    Examples:
        parse_finish_message('finish("Hello")') -> "Hello"
        parse_finish_message('finish()') -> None
    """
    return _parse_terminal_message(action, "finish(")


def parse_fail_message(action: str) -> Optional[str]:
    """Parse a fail action and extract its reason"""
    return _parse_terminal_message(action, "fail(")


def is_terminal_action(action: str) -> bool:
    return action.startswith("finish(") or action.startswith("fail(")


def build_finish_action(message: Optional[str] = None) -> str:
    """Build a finish action string, escaping the message"""
    if not message:
        return "finish()"
    return f'finish("{_escape_message(message)}")'


def build_fail_action(reason: Optional[str] = None) -> str:
    """Build a fail action string, escaping the reason"""
    if not reason:
        return "fail()"
    return f'fail("{_escape_message(reason)}")'


# ============================================================================
# DOM Parsing Utilities (Deterministic)
# ============================================================================

def find_element_by_id(dom: str, element_id: str) -> Optional[str]:
    """
    Find an HTML element by its id attribute and return its opening tag.

    Example:
        find_element_by_id('<div id="123" class="btn">Click</div>', '123')
        -> '<div id="123" class="btn">'
    """
    patterns = [f'id="{element_id}"', f"id='{element_id}'", f"id={element_id} ", f"id={element_id}>"]

    for pattern in patterns:
        id_index = dom.find(pattern)
        if id_index == -1:
            continue

        tag_start = dom.rfind("<", 0, id_index)
        if tag_start == -1:
            continue

        tag_end = dom.find(">", id_index + len(pattern) - 1)
        if tag_end == -1:
            continue

        return dom[tag_start:tag_end + 1]

    return None


def extract_tag_name(tag: str) -> Optional[str]:
    """Lowercased tag name of an opening tag, e.g. "div" for '<div id="1">'"""
    if not tag.startswith("<"):
        return None

    i = 1
    while i < len(tag) and tag[i] in " \t\n":
        i += 1

    name: List[str] = []
    while i < len(tag) and (tag[i].isascii() and (tag[i].isalnum() or tag[i] == "-")):
        name.append(tag[i])
        i += 1

    return "".join(name).lower() if name else None


def has_attribute(tag: str, attr_name: str) -> bool:
    lower_tag = tag.lower()
    lower_attr = attr_name.lower()
    return (
        f" {lower_attr}=" in lower_tag
        or f" {lower_attr} " in lower_tag
        or f" {lower_attr}>" in lower_tag
    )


def get_attribute_value(tag: str, attr_name: str) -> Optional[str]:
    """Attribute value from an opening tag, quoted or unquoted"""
    lower_tag = tag.lower()
    lower_attr = attr_name.lower()

    for quote in ('"', "'"):
        search = f" {lower_attr}={quote}"
        idx = lower_tag.find(search)
        if idx != -1:
            value_start = idx + len(search)
            value_end = tag.find(quote, value_start)
            if value_end != -1:
                return tag[value_start:value_end]

    search = f" {lower_attr}="
    idx = lower_tag.find(search)
    if idx != -1:
        value_start = idx + len(search)
        value_end = value_start
        while value_end < len(tag) and tag[value_end] not in " >":
            value_end += 1
        if value_end > value_start:
            return tag[value_start:value_end]

    return None


def has_popup_indicator(tag: str) -> bool:
    return has_attribute(tag, "aria-haspopup") or has_attribute(tag, "data-has-popup")


def has_navigation_indicator(tag: str) -> bool:
    """Links, href targets and tab-like controls"""
    if extract_tag_name(tag) == "a":
        return True

    if has_attribute(tag, "href"):
        return True

    role = get_attribute_value(tag, "role")
    if role and role.lower() in ("link", "tab"):
        return True

    if has_attribute(tag, "data-tab") or has_attribute(tag, "data-tab-value"):
        return True

    data_state = get_attribute_value(tag, "data-state")
    if data_state and data_state.lower() in ("active", "inactive"):
        return True

    return has_attribute(tag, "aria-selected")
