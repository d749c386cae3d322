"""
Configuration settings for Interact Agent
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    api_title: str = "Interact Agent API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # LLM Settings
    llm_provider: str = "openai"  # openai, anthropic, gemini
    llm_model: str = "gpt-4.1-mini"
    llm_temperature: float = 0.7

    # OpenAI Settings
    openai_api_key: Optional[str] = None

    # Anthropic Settings
    anthropic_api_key: Optional[str] = None

    # Google/Gemini Settings
    gemini_api_key: Optional[str] = None

    # Verification Settings
    lightweight_verification_model: Optional[str] = None  # Tier 2, falls back to llm_model
    verification_model: str = "gpt-4o-mini"  # Tier 3
    lightweight_max_output_tokens: int = 100
    verification_max_output_tokens: int = 500
    verification_temperature: float = 0.3
    verification_timeout_seconds: float = 30.0
    verification_dom_window: int = 8000  # chars of cleaned DOM sent to Tier 3
    verification_text_window: int = 1500  # chars of visible text sent to Tier 3

    # Chaining Settings
    max_chain_size: int = 10
    min_chain_size: int = 2
    chain_confidence_threshold: float = 0.7

    # Recovery Settings
    max_retry_attempts: int = 2  # corrected retries per failed action
    alternative_element_max_distance: int = 10

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra fields from env vars that aren't defined
    )


settings = Settings()
