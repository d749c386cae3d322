"""
Exceptions raised by Interact Agent

Heuristic "no verdict" outcomes are never exceptions; these are reserved for
hard validation failures and collaborator misconfiguration.
"""


class InteractAgentError(Exception):
    """Base class for all Interact Agent errors"""


class ChainValidationError(InteractAgentError):
    """Client-reported chain state does not match the chain the server issued"""


class LLMConfigurationError(InteractAgentError):
    """LLM provider is unknown or its credentials are missing"""


class GenerationError(InteractAgentError):
    """Model call failed or timed out"""
