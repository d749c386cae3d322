from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from interact_agent.config import settings
from interact_agent.errors import GenerationError, LLMConfigurationError
from interact_agent.llm import GenerateOptions, LangChainGenerator, get_llm
from interact_agent.llm import _message_text


class FakeChatModel:
    def __init__(self, response: Any = None, delay: float = 0.0, error: Exception = None) -> None:
        self.response = response
        self.delay = delay
        self.error = error
        self.messages: List[Any] = []
        self.bound: Dict[str, Any] = {}

    def bind(self, **kwargs: Any) -> "FakeChatModel":
        self.bound = kwargs
        return self

    async def ainvoke(self, messages: List[Any]) -> Any:
        self.messages = messages
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def factory_for(model: FakeChatModel, calls: List[Dict[str, Any]]):
    def factory(**kwargs: Any) -> FakeChatModel:
        calls.append(kwargs)
        return model
    return factory


def test_get_llm_rejects_unknown_provider() -> None:
    with pytest.raises(LLMConfigurationError, match="Unsupported provider: mistral"):
        get_llm(provider="mistral", api_key="k")


def test_get_llm_requires_api_key(monkeypatch) -> None:
    monkeypatch.setattr(settings, "anthropic_api_key", None)

    with pytest.raises(LLMConfigurationError, match="ANTHROPIC_API_KEY"):
        get_llm(provider="anthropic")


@pytest.mark.asyncio
async def test_generator_sends_messages_and_reads_usage() -> None:
    model = FakeChatModel(AIMessage(
        content='{"ok": true}',
        usage_metadata={"input_tokens": 42, "output_tokens": 7, "total_tokens": 49},
    ))
    calls: List[Dict[str, Any]] = []
    generator = LangChainGenerator(provider="anthropic", api_key="k", llm_factory=factory_for(model, calls))

    result = await generator.generate("system", "user", GenerateOptions(model="claude-x", max_output_tokens=100))

    assert result.content == '{"ok": true}'
    assert (result.prompt_tokens, result.completion_tokens) == (42, 7)
    assert (result.model, result.provider) == ("claude-x", "anthropic")
    assert isinstance(model.messages[0], SystemMessage)
    assert isinstance(model.messages[1], HumanMessage)
    assert calls[0]["max_output_tokens"] == 100
    assert model.bound == {}


@pytest.mark.asyncio
async def test_generator_requests_json_mode_for_openai_schema() -> None:
    model = FakeChatModel(AIMessage(content="{}"))
    generator = LangChainGenerator(provider="openai", api_key="k", llm_factory=factory_for(model, []))

    result = await generator.generate("", "user", GenerateOptions(response_schema={"type": "object"}))

    assert model.bound == {"response_format": {"type": "json_object"}}
    assert len(model.messages) == 1
    assert result.prompt_tokens is None


@pytest.mark.asyncio
async def test_generator_timeout_raises_generation_error() -> None:
    model = FakeChatModel(AIMessage(content="{}"), delay=1.0)
    generator = LangChainGenerator(provider="gemini", api_key="k", llm_factory=factory_for(model, []))

    with pytest.raises(GenerationError, match="timed out"):
        await generator.generate("", "user", GenerateOptions(timeout_seconds=0.01))


@pytest.mark.asyncio
async def test_generator_wraps_model_errors() -> None:
    model = FakeChatModel(error=ConnectionError("reset"))
    generator = LangChainGenerator(provider="gemini", api_key="k", llm_factory=factory_for(model, []))

    with pytest.raises(GenerationError, match="reset"):
        await generator.generate("", "user", GenerateOptions())


def test_message_text_flattens_content_blocks() -> None:
    assert _message_text("plain") == "plain"
    assert _message_text([{"type": "text", "text": "a"}, "b", {"type": "image"}]) == "ab"
    assert _message_text(None) == ""
