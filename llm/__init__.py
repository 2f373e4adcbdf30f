"""LLM provider clients used by the insight engine."""

from llm.base import LLMClient
from llm.openrouter import DEFAULT_INSIGHT_MODEL, OpenRouterClient

__all__ = ["LLMClient", "OpenRouterClient", "DEFAULT_INSIGHT_MODEL"]
