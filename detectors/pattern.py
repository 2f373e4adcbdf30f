"""Pattern recognizer — compares today against learned productivity patterns.

Detects:
- Completion rate over the last 7 days below 80% of the learned rate (info)
- Current hour inside the learned peak-hours window (info)
- A learned profile for today's weekday (info)
- Categories with some history but no activity for 7+ days (attention)

Every check reads the context's clock, never the wall clock.
"""

from datetime import date, datetime, timedelta
from numbers import Real
from typing import Any

from detectors.base import BaseDetector
from detectors.streak import map_category_to_domain
from schemas.context import AnticipationContext, Category, PatternType, ProductivityPattern, Task
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType

_SOURCE = "pattern-recognizer"
COMPLETION_WINDOW_DAYS = 7
COMPLETION_DROP_RATIO = 0.8
NEGLECT_DAYS = 7


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


def completion_rate(tasks: list[Task], now: datetime, days: int = COMPLETION_WINDOW_DAYS) -> float:
    """Tasks completed per day over the trailing window ending at now."""
    cutoff = now - timedelta(days=days)
    done = sum(1 for t in tasks if t.completed_date is not None and t.completed_date >= cutoff)
    return done / days


def find_neglected_categories(categories: list[Category], today: date) -> list[Category]:
    """Categories that once had activity but none in the last NEGLECT_DAYS days.

    A category with neither a streak nor any progress was never started and
    is not considered neglected.
    """
    cutoff = today - timedelta(days=NEGLECT_DAYS)
    neglected = []
    for category in categories:
        if category.streak_count == 0 and category.current_progress == 0:
            continue
        if category.last_active_date is None or category.last_active_date < cutoff:
            neglected.append(category)
    return neglected


class PatternRecognizer(BaseDetector):
    """Extract pattern_insight signals from historical patterns and categories."""

    name = "pattern-recognizer"
    source = _SOURCE
    repertoire = SIGNAL_REPERTOIRE[_SOURCE]

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []
        for check in (self._check_completion_rate, self._check_peak_hours, self._check_day_of_week):
            signal = check(context)
            if signal is not None:
                signals.append(signal)
        signals.extend(self._check_neglect(context))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    @staticmethod
    def _find(context: AnticipationContext, pattern_type: PatternType) -> ProductivityPattern | None:
        return next((p for p in context.historical_patterns if p.pattern_type is pattern_type), None)

    def _info(self, context: AnticipationContext, title: str, message: str, action: str | None = None) -> Signal:
        return self.new_signal(
            type=SignalType.PATTERN_INSIGHT,
            severity=Severity.INFO,
            domain=LifeDomain.PERSONAL_GROWTH,
            title=title,
            context=message,
            suggested_action=action,
            created_at=context.now,
        )

    def _check_completion_rate(self, context: AnticipationContext) -> Signal | None:
        pattern = self._find(context, PatternType.COMPLETION_RATE)
        if pattern is None:
            return None

        historical = _number(pattern.data.get("rate")) or 0.0
        current = completion_rate(context.tasks, context.now)
        if current >= historical * COMPLETION_DROP_RATIO:
            return None

        return self._info(
            context,
            "Completion rate declining",
            f"Your task completion rate has dropped to {current:.1f} tasks/day "
            f"from {historical:.1f} tasks/day",
        )

    def _check_peak_hours(self, context: AnticipationContext) -> Signal | None:
        pattern = self._find(context, PatternType.PEAK_HOURS)
        if pattern is None:
            return None

        hours = pattern.data.get("hours")
        if not isinstance(hours, list):
            return None
        current_hour = int(context.current_time.split(":")[0])
        if current_hour not in hours:
            return None

        return self._info(
            context,
            "Peak productivity window",
            f"You're in your peak productivity window ({context.current_time}). "
            "Consider scheduling deep work now.",
            "Block time for your most demanding tasks",
        )

    def _check_day_of_week(self, context: AnticipationContext) -> Signal | None:
        pattern = self._find(context, PatternType.DAY_OF_WEEK)
        if pattern is None:
            return None

        day = context.day_of_week
        profile = pattern.data.get(day.lower())
        if not isinstance(profile, dict):
            return None
        avg_tasks = _number(profile.get("avgTasks"))
        avg_rate = _number(profile.get("avgCompletionRate"))
        if avg_tasks is None or avg_rate is None:
            return None

        return self._info(
            context,
            f"{day} productivity pattern",
            f"Typically on {day}s you complete {avg_tasks:.1f} tasks at {avg_rate * 100:.0f}% rate",
        )

    def _check_neglect(self, context: AnticipationContext) -> list[Signal]:
        today = date.fromisoformat(context.today)
        return [
            self.new_signal(
                type=SignalType.PATTERN_INSIGHT,
                severity=Severity.ATTENTION,
                domain=map_category_to_domain(category.name),
                title=f"{category.name} category neglected",
                context=(
                    f"No activity in {category.name} for {NEGLECT_DAYS}+ days. "
                    f"Last active: {category.last_active_date or 'never'}"
                ),
                suggested_action=f"Schedule a task in {category.name} to maintain balance",
                related_entity_ids=[category.id],
                created_at=context.now,
            )
            for category in find_neglected_categories(context.categories, today)
        ]
