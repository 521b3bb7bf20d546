"""
Generation backends.

A backend turns a conversation and a list of function definitions into a
stream of generation events for one step.
"""

from skillloop.adapters.base import AgentResponse, GenerationBackend, LLMAdapter

__all__ = ["AgentResponse", "GenerationBackend", "LLMAdapter"]

# Optional imports for specific providers
try:
    from skillloop.adapters.openai import OpenAIResponsesBackend  # noqa: F401

    __all__.append("OpenAIResponsesBackend")
except ImportError:
    pass
