from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from interact_agent.llm import GenerateOptions, GenerationResult
from interact_agent.telemetry import Telemetry, set_telemetry

FORM_DOM = """[1] form id="signup"
[2] input type="text" name="first" placeholder="First name"
[3] input type="text" name="last" placeholder="Last name"
[4] select name="country"
[5] button type="submit" Sign up"""


class FakeGenerator:
    """Scripted TextGenerator: returns the queued contents in order, repeating the last"""

    def __init__(
        self,
        *contents: Optional[str],
        error: Optional[Exception] = None,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
    ) -> None:
        self.contents = list(contents) or [None]
        self.error = error
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, system_prompt: str, user_prompt: str, options: GenerateOptions) -> GenerationResult:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, "options": options})
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.contents) - 1)
        return GenerationResult(
            content=self.contents[index],
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            model=options.model,
            provider="fake",
        )


@pytest.fixture(autouse=True)
def telemetry() -> Telemetry:
    sink = Telemetry()
    previous = set_telemetry(sink)
    yield sink
    set_telemetry(previous)


@pytest.fixture
def fake_generator():
    return FakeGenerator


@pytest.fixture
def form_dom() -> str:
    return FORM_DOM
