"""Feedback loop — learn per-(type, domain) weights from how signals were handled.

Signals the user acts on get boosted in later cycles; signals the user keeps
dismissing get suppressed (never silenced). Weights are derived from the
is_acted_on / is_dismissed flags of historical signals:

    effectiveness   = acted / (acted + dismissed)    (0.5 below 5 interactions)
    weight_modifier = 0.3 + 1.7 * effectiveness      (0.3x .. 2.0x)
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from schemas.context import SignalWeight
from schemas.signal import LifeDomain, Signal, SignalType
from utils.timefmt import to_iso, utcnow

logger = logging.getLogger(__name__)

MIN_TRUSTED_INTERACTIONS = 5
NEUTRAL_EFFECTIVENESS = 0.5
MIN_WEIGHT_MODIFIER = 0.3
WEIGHT_MODIFIER_RANGE = 1.7


@dataclass
class FeedbackStats:
    """Running counts for one (signal type, domain) pair."""

    signal_type: SignalType
    domain: LifeDomain
    total_generated: int = 0
    total_dismissed: int = 0
    total_acted_on: int = 0


def aggregate_signal_feedback(signals: list[Signal]) -> dict[tuple[SignalType, LifeDomain], FeedbackStats]:
    """Group historical signals by (type, domain) and count interactions."""
    stats: dict[tuple[SignalType, LifeDomain], FeedbackStats] = {}
    for signal in signals:
        key = (signal.type, signal.domain)
        entry = stats.setdefault(key, FeedbackStats(signal.type, signal.domain))
        entry.total_generated += 1
        if signal.is_dismissed:
            entry.total_dismissed += 1
        if signal.is_acted_on:
            entry.total_acted_on += 1
    return stats


def compute_effectiveness_score(stats: FeedbackStats) -> float:
    """Share of interactions that were actions, 0.0 to 1.0.

    Returns NEUTRAL_EFFECTIVENESS until there are enough interactions to
    trust the ratio.
    """
    interacted = stats.total_acted_on + stats.total_dismissed
    if interacted < MIN_TRUSTED_INTERACTIONS:
        return NEUTRAL_EFFECTIVENESS
    return stats.total_acted_on / interacted


def compute_weight_modifier(effectiveness: float) -> float:
    """Map effectiveness 0.0..1.0 onto a score multiplier 0.3..2.0."""
    return MIN_WEIGHT_MODIFIER + effectiveness * WEIGHT_MODIFIER_RANGE


def compute_signal_weights(history: list[Signal], now: datetime | None = None) -> list[SignalWeight]:
    """Derive one SignalWeight per (type, domain) seen in history."""
    stamp = to_iso(now or utcnow())
    weights = []
    for stats in aggregate_signal_feedback(history).values():
        effectiveness = compute_effectiveness_score(stats)
        weights.append(SignalWeight(
            signal_type=stats.signal_type,
            domain=stats.domain,
            total_generated=stats.total_generated,
            total_dismissed=stats.total_dismissed,
            total_acted_on=stats.total_acted_on,
            effectiveness_score=effectiveness,
            weight_modifier=compute_weight_modifier(effectiveness),
            last_updated=stamp,
        ))
    logger.debug("Computed %d signal weights from %d historical signals.", len(weights), len(history))
    return weights


def apply_feedback_weights(score: float, signal: Signal, weights: list[SignalWeight]) -> float:
    """Multiply score by the modifier matching the signal's (type, domain), if any."""
    for weight in weights:
        if weight.signal_type == signal.type and weight.domain == signal.domain:
            return score * weight.weight_modifier
    return score
