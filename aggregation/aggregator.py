"""Priority synthesizer.

PrioritySynthesizer takes every accepted signal from a cycle and produces
the ranked list the UI surfaces. It handles three concerns the detectors
and the judge do not:

1. Deduplication: signals sharing a dedup_key ("<type>:<first entity>")
   collapse to the most severe one (first seen wins ties).

2. Scoring:
       score = severity weight
             + due-date boost   max(0, 100 - 10 * days_until_due)
             + 20 if the signal touches an active project
   then multiplied by the feedback weight for its (type, domain).

3. Capping: only the top MAX_PRIORITIZED_SIGNALS survive.
"""

from datetime import date

from aggregation.feedback import apply_feedback_weights, compute_signal_weights
from schemas.context import AnticipationContext, ProjectStatus, SignalWeight
from schemas.signal import Severity, Signal

MAX_PRIORITIZED_SIGNALS = 20
ACTIVE_PROJECT_BOOST = 20

SEVERITY_WEIGHTS: dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.URGENT: 75,
    Severity.ATTENTION: 50,
    Severity.INFO: 25,
}


def score_severity(severity: Severity) -> int:
    return SEVERITY_WEIGHTS[severity]


class PrioritySynthesizer:
    """Dedups, scores and ranks a cycle's signals.

    Attributes:
        max_signals: Cap on the returned list.
    """

    def __init__(self, max_signals: int = MAX_PRIORITIZED_SIGNALS) -> None:
        self.max_signals = max_signals

    def prioritize(
        self,
        signals: list[Signal],
        context: AnticipationContext,
        weights: list[SignalWeight] | None = None,
    ) -> list[Signal]:
        """Return signals deduplicated and sorted by score, highest first.

        Args:
            signals: All accepted signals of the cycle, in detector order.
            context: The cycle's snapshot. Supplies task due dates, project
                status and (when weights is None) the feedback history.
            weights: Feedback weights to apply. Defaults to
                context.signal_weights, or weights derived from
                context.signals when the context carries none.

        Returns:
            At most max_signals signals. Equal scores keep input order.
        """
        if not signals:
            return []

        if weights is None:
            weights = context.signal_weights or compute_signal_weights(context.signals, context.now)

        deduplicated = self._deduplicate(signals)
        scored = [
            (apply_feedback_weights(self._score(s, context), s, weights), s)
            for s in deduplicated
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [signal for _, signal in scored[: self.max_signals]]

    # ── Private helpers ───────────────────────────────────────────────────────

    def _deduplicate(self, signals: list[Signal]) -> list[Signal]:
        """Keep the most severe signal per dedup_key, in first-seen key order."""
        best: dict[str, Signal] = {}
        for signal in signals:
            current = best.get(signal.dedup_key)
            if current is None or signal.severity > current.severity:
                best[signal.dedup_key] = signal
        return list(best.values())

    def _score(self, signal: Signal, context: AnticipationContext) -> float:
        score = float(score_severity(signal.severity))
        score += self._due_date_boost(signal, context)
        if self._touches_active_project(signal, context):
            score += ACTIVE_PROJECT_BOOST
        return score

    def _due_date_boost(self, signal: Signal, context: AnticipationContext) -> float:
        if not signal.related_entity_ids:
            return 0.0
        task_id = signal.related_entity_ids[0]
        task = next((t for t in context.tasks if t.id == task_id), None)
        if task is None or task.due_date is None:
            return 0.0
        days_until_due = (task.due_date - date.fromisoformat(context.today)).days
        return float(max(0, 100 - days_until_due * 10))

    def _touches_active_project(self, signal: Signal, context: AnticipationContext) -> bool:
        """True if a related id is an active project or an active project's category."""
        related = set(signal.related_entity_ids)
        if not related:
            return False
        return any(
            p.status == ProjectStatus.ACTIVE
            and (p.id in related or (p.category_id is not None and p.category_id in related))
            for p in context.projects
        )
