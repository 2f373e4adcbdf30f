"""OpenRouter LLM client.

OpenRouter proxies models from several vendors behind one OpenAI-compatible
API, so the insight model is just a string (INSIGHT_MODEL in the environment).

Required environment variable:
    OPENROUTER_API_KEY: Your OpenRouter API key. Add to .env and never commit.
"""

import os

import openai
from dotenv import load_dotenv

from llm.base import LLMClient

load_dotenv()

DEFAULT_INSIGHT_MODEL = "anthropic/claude-sonnet-4-6"


class OpenRouterClient(LLMClient):
    """LLMClient implementation backed by OpenRouter.

    Example usage:
        engine = ClaudeInsightEngine(llm=OpenRouterClient("anthropic/claude-sonnet-4-6"))

    Attributes:
        model: The OpenRouter model identifier passed to the API.
        client: The underlying async OpenAI client configured for OpenRouter.
    """

    def __init__(self, model: str = DEFAULT_INSIGHT_MODEL):
        """Initialize the client for a specific model.

        Raises:
            KeyError: If OPENROUTER_API_KEY is not set in the environment
                or .env file. Fails at construction rather than at the
                first API call.
        """
        self.model = model
        self.client = openai.AsyncOpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )

    async def complete(self, system: str, user: str) -> str:
        """Send a prompt to the configured model via OpenRouter.

        Raises:
            openai.APIError: If the OpenRouter API returns an error response.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return response.choices[0].message.content or ""
