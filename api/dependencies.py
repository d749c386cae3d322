"""
Shared route dependencies

Overridable with app.dependency_overrides (tests swap in a fake generator).
"""
from typing import Any

from interact_agent.llm import LangChainGenerator, TextGenerator
from interact_agent.workflow import create_interact_workflow

# Create workflow instance (will be initialized once)
_workflow = None


def get_workflow() -> Any:
    """Get or create workflow instance"""
    global _workflow
    if _workflow is None:
        _workflow = create_interact_workflow()
    return _workflow


def get_generator() -> TextGenerator:
    """Model collaborator for Tier 2/3 calls"""
    return LangChainGenerator()
