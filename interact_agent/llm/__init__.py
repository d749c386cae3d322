"""
LLM Integration for Interact Agent

Supports multiple LLM providers: OpenAI, Anthropic, and Gemini.
Uses LangChain's chat model classes for each provider.

Verification code never talks to a chat model directly. It calls a
TextGenerator: generate(system_prompt, user_prompt, options) returning the raw
content and token counts. LangChainGenerator is the production implementation;
tests pass their own.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel
from typing_extensions import Protocol

from interact_agent.config import settings
from interact_agent.errors import GenerationError, LLMConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini")


def get_api_key(provider: str) -> Optional[str]:
    provider_lower = provider.lower()
    if provider_lower == "openai":
        return settings.openai_api_key
    if provider_lower == "anthropic":
        return settings.anthropic_api_key
    if provider_lower == "gemini":
        return settings.gemini_api_key
    return None


def get_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
    max_output_tokens: Optional[int] = None,
) -> Any:  # ChatOpenAI | ChatAnthropic | ChatGoogleGenerativeAI
    """
    Get an initialized LLM instance based on provider

    Args:
        model: Model name (defaults to config)
        temperature: Temperature setting (defaults to config)
        api_key: API key for the provider (defaults to config)
        provider: LLM provider (openai, anthropic, gemini) (defaults to config)
        max_output_tokens: Cap on completion tokens (provider default if None)

    Returns:
        Initialized LLM instance (ChatOpenAI, ChatAnthropic, or ChatGoogleGenerativeAI)

    Raises:
        LLMConfigurationError: Unknown provider or missing API key
    """
    provider_name = provider or settings.llm_provider
    model_name = model or settings.llm_model
    temp = temperature if temperature is not None else settings.llm_temperature
    provider_lower = provider_name.lower()

    if provider_lower not in SUPPORTED_PROVIDERS:
        raise LLMConfigurationError(
            f"Unsupported provider: {provider_name}. "
            "Supported providers: openai, anthropic, gemini"
        )

    key = api_key or get_api_key(provider_lower)
    if not key:
        raise LLMConfigurationError(
            f"{provider_name.capitalize()} API key not found. "
            f"Set {provider_name.upper()}_API_KEY environment variable."
        )

    if provider_lower == "openai":
        from langchain_openai import ChatOpenAI
        logger.info(f"Initializing ChatOpenAI with model: {model_name}, temperature: {temp}")
        return ChatOpenAI(
            model=model_name,
            temperature=temp,
            api_key=key,
            max_tokens=max_output_tokens,
        )

    if provider_lower == "anthropic":
        from langchain_anthropic import ChatAnthropic
        logger.info(f"Initializing ChatAnthropic with model: {model_name}, temperature: {temp}")
        kwargs: Dict[str, Any] = {"model": model_name, "temperature": temp, "api_key": key}
        if max_output_tokens:
            kwargs["max_tokens"] = max_output_tokens
        return ChatAnthropic(**kwargs)

    from langchain_google_genai import ChatGoogleGenerativeAI
    logger.info(f"Initializing ChatGoogleGenerativeAI with model: {model_name}, temperature: {temp}")
    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temp,
        google_api_key=key,
        max_output_tokens=max_output_tokens,
    )


# =============================================================================
# Generation collaborator
# =============================================================================

class GenerateOptions(BaseModel):
    """Per-call model options"""
    model: Optional[str] = None
    temperature: float = 0.0
    max_output_tokens: Optional[int] = None
    response_schema: Optional[Dict[str, Any]] = None
    timeout_seconds: Optional[float] = None


class GenerationResult(BaseModel):
    content: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    model: Optional[str] = None
    provider: Optional[str] = None


class TextGenerator(Protocol):
    """generate(system_prompt, user_prompt, options) -> GenerationResult"""

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerateOptions,
    ) -> GenerationResult:
        ...


def _message_text(content: Any) -> str:
    """Flatten LangChain message content (str or list of content blocks)"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class LangChainGenerator:
    """TextGenerator backed by a LangChain chat model"""

    def __init__(
        self,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        llm_factory: Callable[..., Any] = get_llm,
    ):
        self.provider = (provider or settings.llm_provider).lower()
        self.api_key = api_key
        self.llm_factory = llm_factory

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerateOptions,
    ) -> GenerationResult:
        """
        Run one chat completion.

        Raises:
            LLMConfigurationError: Provider or credentials missing
            GenerationError: Model call failed or timed out
        """
        llm = self.llm_factory(
            model=options.model,
            temperature=options.temperature,
            api_key=self.api_key,
            provider=self.provider,
            max_output_tokens=options.max_output_tokens,
        )
        if options.response_schema is not None and self.provider == "openai":
            llm = llm.bind(response_format={"type": "json_object"})

        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=user_prompt))

        timeout = options.timeout_seconds or settings.verification_timeout_seconds
        try:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"LLM call timed out after {timeout}s (model={options.model})")
            raise GenerationError(f"LLM call timed out after {timeout}s") from e
        except Exception as e:
            logger.error(f"LLM call failed: {e}", exc_info=True)
            raise GenerationError(f"LLM call failed: {e}") from e

        usage = getattr(response, "usage_metadata", None) or {}
        return GenerationResult(
            content=_message_text(response.content),
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
            model=options.model,
            provider=self.provider,
        )


__all__ = [
    "GenerateOptions",
    "GenerationResult",
    "LangChainGenerator",
    "TextGenerator",
    "get_llm",
]
