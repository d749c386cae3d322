"""
DOM Helper Utilities

Cleaning, hashing, windowing and existence checks over the textual DOM
snapshots the client sends, plus URL comparison helpers used by verification.
"""
import hashlib
import html
import re
from typing import List, Optional
from urllib.parse import SplitResult, urlsplit

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_SVG_RE = re.compile(r"<svg\b[^<]*(?:(?!</svg>)<[^<]*)*</svg>", re.IGNORECASE)
_BASE64_RE = re.compile(r"data:[^;]+;base64,[A-Za-z0-9+/=]+")
_STYLE_ATTR_RE = re.compile(r"""\sstyle=("[^"]*"|'[^']*')""", re.IGNORECASE)
# data-has-popup, data-state and data-expanded carry meaning for verification
_DATA_ATTR_RE = re.compile(r"""\sdata-(?!has-popup|state|expanded)[a-z-]+=("[^"]*"|'[^']*')""", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_dom_for_verification(dom: str) -> str:
    """Strip scripts, styles, SVGs, base64 payloads and noisy attributes"""
    cleaned = _SCRIPT_RE.sub("", dom)
    cleaned = _STYLE_RE.sub("", cleaned)
    cleaned = _SVG_RE.sub("[SVG]", cleaned)
    cleaned = _BASE64_RE.sub("[BASE64]", cleaned)
    cleaned = _STYLE_ATTR_RE.sub("", cleaned)
    cleaned = _DATA_ATTR_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()


def compute_dom_hash(dom: str, max_chars: int = 50_000) -> str:
    """
    Stable sha256 of the cleaned DOM, bounded so the hash tracks meaningful
    content rather than page size.
    """
    cleaned = clean_dom_for_verification(dom)[:max_chars]
    return hashlib.sha256(cleaned.encode("utf-8")).hexdigest()


def extract_text_content(dom: str, max_length: int = 2000) -> str:
    """Plain text of a DOM string with tags removed and whitespace collapsed"""
    text = _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", dom)).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def sanitize_selector_for_regex(selector: str) -> str:
    """Decode HTML entities and escape the result for use inside a regex"""
    if not selector:
        return ""
    return re.escape(html.unescape(selector))


def check_element_exists(dom: str, selector: str) -> bool:
    """
    Check whether an element matching selector appears in the DOM.

    Tries, in order: id, class word, data-testid, name, aria-label, free text
    (for selectors that look like natural language) and tag name.
    """
    if not selector or not dom:
        return False

    safe = sanitize_selector_for_regex(selector)
    patterns = [
        rf"""id=["']{safe}["']""",
        rf"""class=["'][^"']*\b{safe}\b[^"']*["']""",
        rf"""data-testid=["']{safe}["']""",
        rf"""name=["']{safe}["']""",
        rf"""aria-label=["'][^"']*{safe}[^"']*["']""",
    ]
    for pattern in patterns:
        if re.search(pattern, dom, re.IGNORECASE):
            return True

    looks_like_text = " " in selector or not re.search(r"[_-]", selector)
    if looks_like_text and selector.lower() in dom.lower():
        return True

    return bool(re.search(rf"<{safe}\b", dom, re.IGNORECASE))


def check_element_not_exists(dom: str, selector: str) -> bool:
    return not check_element_exists(dom, selector)


def check_element_has_text(dom: str, selector: str, text: str) -> bool:
    """Text near the selected element, falling back to anywhere in the DOM"""
    if not selector or not text or not dom:
        return False

    safe = re.escape(selector)
    patterns = [
        rf"""id=["']{safe}["'][^>]*>([\s\S]*?)</""",
        rf"""class=["'][^"']*\b{safe}\b[^"']*["'][^>]*>([\s\S]*?)</""",
    ]
    for pattern in patterns:
        match = re.search(pattern, dom, re.IGNORECASE)
        if match and text in match.group(1):
            return True

    return text in dom


def check_aria_expanded(dom: str, expected_value: str) -> bool:
    return bool(re.search(rf"""aria-expanded=["']{re.escape(expected_value)}["']""", dom, re.IGNORECASE))


def check_roles_exist(dom: str, roles: List[str]) -> bool:
    """True when any of the ARIA roles is present"""
    for role in roles:
        if re.search(rf"""role=["']{re.escape(role)}["']""", dom, re.IGNORECASE):
            return True
        # menus are often rendered as lists
        if role == "menuitem" and re.search(r"""role=["'](list|listitem)["']""", dom, re.IGNORECASE):
            return True
    return False


def get_smart_dom_context(dom: str, expected_content: Optional[str] = None, window_size: int = 8000) -> str:
    """
    Window of the cleaned DOM, centred on expected_content when it is found.
    """
    cleaned = clean_dom_for_verification(dom)
    if len(cleaned) <= window_size:
        return cleaned

    if expected_content:
        index = cleaned.lower().find(expected_content.lower())
        if index != -1:
            start = max(0, index - window_size // 2)
            end = min(len(cleaned), start + window_size)
            context = cleaned[start:end]
            if start > 0:
                context = "..." + context
            if end < len(cleaned):
                context = context + "..."
            return context

    return cleaned[:window_size] + "..."


# =============================================================================
# URL helpers
# =============================================================================

def _parse_url(url: str) -> Optional[SplitResult]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts


def has_significant_url_change(previous_url: str, current_url: str) -> bool:
    """
    Host, path or query changed. Hash-only changes are same-page anchors and
    do not count; query changes do because SPAs route through them.
    """
    if previous_url == current_url:
        return False

    prev = _parse_url(previous_url)
    curr = _parse_url(current_url)
    if prev is None or curr is None:
        return previous_url != current_url

    if prev.hostname != curr.hostname:
        return True
    if (prev.path or "/") != (curr.path or "/"):
        return True
    return prev.query != curr.query


def is_cross_domain_navigation(before_url: str, after_url: str) -> bool:
    before = _parse_url(before_url)
    after = _parse_url(after_url)
    if before is None or after is None:
        return False
    return (before.hostname or "").lower() != (after.hostname or "").lower()


def get_hostname(url: str) -> str:
    """Lowercased hostname, or the input itself when it does not parse"""
    parts = _parse_url(url)
    if parts is None or not parts.hostname:
        return url
    return parts.hostname.lower()
