"""
Health Check Routes

Simple health check endpoints for monitoring.
"""
from fastapi import APIRouter
from pydantic import BaseModel
from interact_agent.actions.grammar import DEFAULT_GRAMMAR
from interact_agent.config import settings
from interact_agent.llm import get_api_key

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    version: str
    service: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint

    Returns:
        Health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.api_version,
        service="interact-agent",
    )


@router.get("/ready")
async def readiness_check():
    """
    Readiness check endpoint

    Chaining and Tier 1 work without a model; Tier 2/3 need provider credentials.

    Returns:
        Readiness status
    """
    llm_configured = bool(get_api_key(settings.llm_provider))
    return {
        "ready": True,
        "checks": {
            "api": True,
            "llm": llm_configured,
        },
        "grammar_version": DEFAULT_GRAMMAR.version,
    }
