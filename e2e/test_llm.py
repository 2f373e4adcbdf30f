"""LLM client and response-parsing tests.

TestLLMClientAbstract  — no API key needed, runs in CI
TestOpenRouterClient   — the live calls are skipped if OPENROUTER_API_KEY
                         is not set in the environment or .env file
TestExtractLLMJson     — recovering JSON from chatty model output
"""

import os

import pytest

from detectors.insight import ClaudeInsightEngine
from llm.base import LLMClient
from llm.openrouter import DEFAULT_INSIGHT_MODEL, OpenRouterClient
from schemas.context import AnticipationContext
from schemas.signal import SignalType
from utils.parse import LLMParseError, extract_llm_json

requires_key = pytest.mark.skipif(
    not os.getenv("OPENROUTER_API_KEY"),
    reason="OPENROUTER_API_KEY not set — skipping live API call",
)


# ── LLMClient (abstract) ──────────────────────────────────────────────────────

class TestLLMClientAbstract:
    def test_cannot_instantiate_directly(self):
        with pytest.raises(TypeError, match="abstract"):
            LLMClient()

    def test_subclass_without_complete_raises(self):
        class IncompleteClient(LLMClient):
            pass

        with pytest.raises(TypeError, match="abstract"):
            IncompleteClient()

    def test_subclass_with_complete_is_instantiable(self):
        class ConcreteClient(LLMClient):
            async def complete(self, system: str, user: str) -> str:
                return "[]"

        assert isinstance(ConcreteClient(), LLMClient)


# ── OpenRouterClient ──────────────────────────────────────────────────────────

class TestOpenRouterClient:
    def test_raises_immediately_if_api_key_missing(self, monkeypatch):
        """Missing key must raise KeyError at construction, not at first call."""
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(KeyError):
            OpenRouterClient()

    def test_default_model(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
        assert OpenRouterClient().model == DEFAULT_INSIGHT_MODEL

    def test_is_subclass_of_llm_client(self):
        assert issubclass(OpenRouterClient, LLMClient)

    @requires_key
    @pytest.mark.live
    async def test_real_api_call_returns_string(self):
        client = OpenRouterClient()
        response = await client.complete(
            system="You are a test assistant. Reply with one word only, no punctuation.",
            user="Say the word pong.",
        )
        assert isinstance(response, str)
        assert len(response.strip()) > 0

    @requires_key
    @pytest.mark.live
    async def test_live_insight_generation(self):
        """A real model reply must survive parsing and normalization."""
        context = AnticipationContext.snapshot(historical_patterns=[
            {"pattern_type": "peak_hours", "description": "Most tasks finish 8-11am.", "confidence": 0.85},
            {"pattern_type": "streak_health", "description": "Health streak breaks on Sundays.", "confidence": 0.7},
        ])
        signals = await ClaudeInsightEngine(llm=OpenRouterClient()).run(context)
        assert len(signals) <= 3
        assert all(s.type is SignalType.LEARNED_SUGGESTION for s in signals)


# ── extract_llm_json ──────────────────────────────────────────────────────────

class TestExtractLLMJson:
    def test_plain_array(self):
        assert extract_llm_json('[{"title": "a"}]') == [{"title": "a"}]

    def test_fenced_json(self):
        raw = '```json\n[{"title": "a"}]\n```'
        assert extract_llm_json(raw) == [{"title": "a"}]

    def test_bare_fence(self):
        assert extract_llm_json('```\n{"insights": []}\n```') == {"insights": []}

    def test_commentary_around_array(self):
        raw = 'Sure! Here are your insights:\n[{"title": "a"}]\nLet me know.'
        assert extract_llm_json(raw) == [{"title": "a"}]

    def test_commentary_around_object(self):
        raw = 'Result: {"title": "a", "context": "b"} done'
        assert extract_llm_json(raw) == {"title": "a", "context": "b"}

    @pytest.mark.parametrize("raw", ["", "no json here", '"just a string"', "42"])
    def test_unrecoverable_raises_with_raw(self, raw):
        with pytest.raises(LLMParseError) as exc_info:
            extract_llm_json(raw)
        assert exc_info.value.raw == raw
