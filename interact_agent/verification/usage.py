"""
Token usage recording for verification model calls
"""
from typing import Any, Dict, Optional

from interact_agent.config import settings
from interact_agent.llm import GenerationResult
from interact_agent.telemetry import UsageRecord, record_usage
from interact_agent.verification.types import VerificationContext


def record_verification_usage(
    context: Optional[VerificationContext],
    generation: GenerationResult,
    model: str,
    action_type: str,
    duration_ms: int,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Record token usage; skipped unless the context names a tenant and a user"""
    if not context or not context.tenant_id or not context.user_id:
        return
    if generation.prompt_tokens is None:
        return

    record_usage(UsageRecord(
        tenant_id=context.tenant_id,
        user_id=context.user_id,
        session_id=context.session_id,
        task_id=context.task_id,
        provider=generation.provider or settings.llm_provider,
        model=generation.model or model,
        action_type=action_type,
        input_tokens=generation.prompt_tokens or 0,
        output_tokens=generation.completion_tokens or 0,
        duration_ms=duration_ms,
        metadata=metadata or {},
    ))
