"""Claude insight engine — learned suggestions from an external model.

Two ways in:
- A pre-fetched payload in mcp_data["insights"] (the dashboard already
  asked the model). detect() lowers it through the normalizer.
- No payload, an LLMClient and at least one learned pattern: run() asks
  the model itself, then lowers the reply the same way.

Whatever the model returns goes through parse_claude_insights(), so this
detector emits at most MAX_INSIGHTS learned_suggestion signals per cycle.
"""

import logging
import pathlib

from detectors.base import BaseDetector
from insights.normalizer import INSIGHT_SOURCE, insights_to_signals, parse_claude_insights
from insights.prompt import build_insight_prompt
from llm.base import LLMClient
from schemas.context import AnticipationContext
from schemas.signal import SIGNAL_REPERTOIRE, Signal
from utils.parse import LLMParseError, extract_llm_json

logger = logging.getLogger(__name__)

_PROMPT_FILE = pathlib.Path(__file__).parent.parent / "prompts" / "insight_engine.txt"
_PAYLOAD_KEY = "insights"


class ClaudeInsightEngine(BaseDetector):
    """Turn model-generated insights into learned_suggestion signals.

    Attributes:
        llm: Client used when no pre-fetched payload is present. None
            disables live generation.
    """

    name = "claude-insight-engine"
    source = INSIGHT_SOURCE
    repertoire = SIGNAL_REPERTOIRE[INSIGHT_SOURCE]

    def __init__(self, llm: LLMClient | None = None) -> None:
        self.llm = llm
        self._system_prompt = _PROMPT_FILE.read_text()

    def detect(self, context: AnticipationContext) -> list[Signal]:
        if _PAYLOAD_KEY not in context.mcp_data:
            return []
        insights = parse_claude_insights(context.mcp_data[_PAYLOAD_KEY])
        return insights_to_signals(insights, now=context.now)

    async def run(self, context: AnticipationContext) -> list[Signal]:
        """Lower a pre-fetched payload, or ask the model for fresh insights.

        Raises:
            Exception: Transport errors from the LLM client propagate to the
                executor, which marks this detector as failed for the cycle.
        """
        if _PAYLOAD_KEY in context.mcp_data:
            return self.detect(context)
        if self.llm is None or not context.historical_patterns:
            return []

        user_message = build_insight_prompt(
            context.historical_patterns, context.signals, context
        )
        raw = await self.llm.complete(system=self._system_prompt, user=user_message)

        try:
            payload = extract_llm_json(raw)
        except LLMParseError as exc:
            logger.error("%s: failed to parse LLM response: %s\nRaw: %s", self.name, exc, exc.raw)
            return []

        insights = parse_claude_insights(payload)
        logger.debug("%s: %d insights accepted", self.name, len(insights))
        return insights_to_signals(insights, now=context.now)
