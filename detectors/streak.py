"""Streak guardian — activity streaks about to break or already broken.

Detects, per category with a live streak:
- Last active yesterday: urgent for streaks of 7+ days, attention otherwise
- Last active two or more days ago: critical (streak broken)
"""

from datetime import date

from detectors.base import BaseDetector
from schemas.context import AnticipationContext, Category
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType

_SOURCE = "streak-guardian"
LONG_STREAK_DAYS = 7

# First matching keyword group wins.
_DOMAIN_KEYWORDS: list[tuple[tuple[str, ...], LifeDomain]] = [
    (("health", "fitness"), LifeDomain.HEALTH_FITNESS),
    (("wealth", "finance", "money"), LifeDomain.FINANCE),
    (("family", "relationship"), LifeDomain.FAMILY),
    (("business", "work", "career"), LifeDomain.BUSINESS_TECH),
    (("creative", "art"), LifeDomain.CREATIVE),
    (("spiritual", "mindfulness"), LifeDomain.SPIRITUAL),
    (("social", "friends"), LifeDomain.SOCIAL),
]


def map_category_to_domain(category_name: str) -> LifeDomain:
    """Map a free-text category name onto a LifeDomain (default personal_growth)."""
    lower = category_name.lower()
    for keywords, domain in _DOMAIN_KEYWORDS:
        if any(k in lower for k in keywords):
            return domain
    return LifeDomain.PERSONAL_GROWTH


class StreakGuardian(BaseDetector):
    """Extract streak_at_risk signals from category activity."""

    name = "streak-guardian"
    source = _SOURCE
    repertoire = SIGNAL_REPERTOIRE[_SOURCE]

    def detect(self, context: AnticipationContext) -> list[Signal]:
        today = date.fromisoformat(context.today)
        signals: list[Signal] = []
        for category in context.categories:
            signal = self._check_category(category, today, context)
            if signal is not None:
                signals.append(signal)
        return signals

    def _check_category(
        self, category: Category, today: date, context: AnticipationContext
    ) -> Signal | None:
        if category.streak_count <= 0 or category.last_active_date is None:
            return None

        days_since = (today - category.last_active_date).days
        streak = category.streak_count

        if days_since == 1:
            if streak >= LONG_STREAK_DAYS:
                severity = Severity.URGENT
                message = (
                    f"Your {category.name} streak of {streak} days is still alive "
                    "but needs action today to continue."
                )
            else:
                severity = Severity.ATTENTION
                message = (
                    f"Your {category.name} streak of {streak} days was last active "
                    "yesterday. Complete a task today to keep it going."
                )
        elif days_since >= 2:
            severity = Severity.CRITICAL
            message = (
                f"Your {category.name} streak of {streak} days has been broken. "
                f"Last activity was {days_since} days ago."
            )
        else:
            return None

        return self.new_signal(
            type=SignalType.STREAK_AT_RISK,
            severity=severity,
            domain=map_category_to_domain(category.name),
            title=f"{category.name} streak at risk ({streak} days)",
            context=message,
            suggested_action=f"Complete a {category.name} task today to maintain your streak",
            related_entity_ids=[category.id],
            created_at=context.now,
        )
