"""
Element Resolver

Chaining and recovery only need to know a few facts about an element handle:
its tag, input type, name and enclosing form. ElementResolver is that seam.
RegexElementResolver reads them from the simplified textual DOM the client
sends, where each interactive element is serialized as

    [42] input type="text" name="first" placeholder="First name"

A resolver backed by a parsed accessibility tree can replace it without
touching the chaining code.
"""
import logging
import re
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel
from typing_extensions import Protocol

logger = logging.getLogger(__name__)

_FORM_RE = re.compile(r'\[(\d+)\]\s*form\b(?:\s+id="([^"]*)")?', re.IGNORECASE)
_FORM_ELEMENT_RE = re.compile(
    r'\[(\d+)\]\s*(input|select|textarea)\b(?:\s+type="([^"]*)")?(?:\s+name="([^"]*)")?',
    re.IGNORECASE,
)

# Tag patterns for elements an action of each type can target
ACTION_ELEMENT_PATTERNS: Dict[str, str] = {
    "setValue": r"(?:input|textarea)\b",
    "select": r"select\b",
    "check": r'input[^\[]*type="checkbox"',
    "uncheck": r'input[^\[]*type="checkbox"',
    "click": r"(?:button\b|a\b|\[role=button\])",
}


class ElementInfo(BaseModel):
    """Facts about one DOM element handle"""
    id: int
    tag_name: str
    type: Optional[str] = None
    name: Optional[str] = None
    form_id: Optional[str] = None

    @property
    def is_input(self) -> bool:
        return self.tag_name in ("input", "textarea")

    @property
    def is_select(self) -> bool:
        return self.tag_name == "select"

    @property
    def is_button(self) -> bool:
        return self.tag_name == "button" or (
            self.tag_name == "input" and self.type in ("submit", "button")
        )


class ElementResolver(Protocol):
    """Looks up element facts by numeric handle"""

    def resolve(self, element_id: int) -> Optional[ElementInfo]:
        ...

    def form_elements(self) -> List[ElementInfo]:
        ...

    def candidates_for(self, action_type: str) -> List[int]:
        ...


class RegexElementResolver:
    """ElementResolver over the simplified textual DOM"""

    def __init__(self, dom: str):
        self.dom = dom or ""

    def form_id_for(self, element_id: int) -> Optional[str]:
        """Handle of the nearest form serialized before the element"""
        position = self.dom.find(f"[{element_id}]")
        if position == -1:
            return None
        forms = _FORM_RE.findall(self.dom[:position])
        if not forms:
            return None
        return forms[-1][0]

    def resolve(self, element_id: int) -> Optional[ElementInfo]:
        pattern = re.compile(
            rf'\[({element_id})\]\s*(\w+)(?:\s+type="([^"]*)")?(?:\s+name="([^"]*)")?',
            re.IGNORECASE,
        )
        match = pattern.search(self.dom)
        if not match:
            return None
        return ElementInfo(
            id=element_id,
            tag_name=match.group(2).lower(),
            type=match.group(3),
            name=match.group(4),
            form_id=self.form_id_for(element_id),
        )

    def form_elements(self) -> List[ElementInfo]:
        """Every input, select and textarea in document order"""
        elements = []
        for match in _FORM_ELEMENT_RE.finditer(self.dom):
            element_id = int(match.group(1))
            elements.append(ElementInfo(
                id=element_id,
                tag_name=match.group(2).lower(),
                type=match.group(3),
                name=match.group(4),
                form_id=self.form_id_for(element_id),
            ))
        return elements

    def candidates_for(self, action_type: str) -> List[int]:
        """Handles of elements an action of this type could target"""
        element_pattern = ACTION_ELEMENT_PATTERNS.get(action_type)
        if not element_pattern:
            return []
        pattern = re.compile(rf"\[(\d+)\]\s*{element_pattern}", re.IGNORECASE)
        return [int(m.group(1)) for m in pattern.finditer(self.dom)]


ResolverFactory = Callable[[str], ElementResolver]


def default_resolver(dom: str) -> ElementResolver:
    return RegexElementResolver(dom)
