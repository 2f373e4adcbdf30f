"""Signal detectors."""

from detectors.aging import AgingConfig, AgingDetector
from detectors.base import BaseDetector
from detectors.deadline import DeadlineRadar
from detectors.financial import DealPipelineDetector, PortfolioDetector
from detectors.insight import ClaudeInsightEngine
from detectors.pattern import PatternRecognizer
from detectors.streak import StreakGuardian
from llm.base import LLMClient


def default_detectors(llm: LLMClient | None = None) -> list[BaseDetector]:
    """The standard detector line-up, in registration order."""
    return [
        PortfolioDetector(),
        DealPipelineDetector(),
        AgingDetector(),
        DeadlineRadar(),
        StreakGuardian(),
        PatternRecognizer(),
        ClaudeInsightEngine(llm=llm),
    ]


__all__ = [
    "AgingConfig",
    "AgingDetector",
    "BaseDetector",
    "ClaudeInsightEngine",
    "DealPipelineDetector",
    "DeadlineRadar",
    "PatternRecognizer",
    "PortfolioDetector",
    "StreakGuardian",
    "default_detectors",
]
