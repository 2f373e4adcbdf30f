"""LLMClient abstract base class.

The insight engine depends only on this interface, never on a concrete
provider. Tests substitute a scripted client; production wires in
OpenRouterClient.
"""

from abc import ABC, abstractmethod


class LLMClient(ABC):
    """Abstract base class for all LLM provider clients.

    The ClaudeInsightEngine receives an LLMClient at construction time and
    calls complete() once per cycle at most. Which provider sits behind it
    is decided by whoever wires the engine together (main.py, cli.py).
    """

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """Send a prompt to the LLM and return the response as plain text.

        Args:
            system: The system prompt describing the insight format.
            user: The user turn: learned patterns, recent signal counts
                and a summary of the current context.

        Returns:
            The model's response as a plain string. Callers never see
            the raw SDK response object.
        """
        ...
