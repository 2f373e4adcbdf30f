"""Signal store.

SignalStore holds the live signal set between detection cycles. It is the
only place where signals change after creation, and it changes them by
copying (Signal is frozen).

Lifecycle:
    1. A cycle finishes; record_cycle() replaces the live set with the
       cycle's prioritized signals. Dismiss/act flags carry over from the
       previous signal with the same dedup_key, so a dismissed warning does
       not come back just because it was re-detected.
    2. A cycle cannot run at all (bad context); record_failure() remembers
       the error and leaves the previous live set untouched.
    3. The UI dismisses or acts on a signal; dismiss() / act_on() swap in
       an updated copy.

It is not a database. Nothing persists across process restarts.
"""

import logging
from collections import Counter
from datetime import datetime

from schemas.result import CycleResult
from schemas.signal import LifeDomain, Severity, Signal, SignalType
from utils.timefmt import utcnow

logger = logging.getLogger(__name__)


class SignalStore:
    """In-process store of the current signal set.

    Attributes:
        last_cycle_id: cycle_id of the last successful cycle, if any.
        last_error: Message from the most recent failed refresh. Cleared
            by the next successful cycle.
    """

    def __init__(self) -> None:
        self._signals: dict[str, Signal] = {}
        self.last_cycle_id: str | None = None
        self.last_error: str | None = None

    def record_cycle(self, result: CycleResult) -> list[Signal]:
        """Replace the live set with a cycle's prioritized signals.

        Returns:
            The stored signals, with carried-over flags applied, in
            priority order.
        """
        previous = {s.dedup_key: s for s in self._signals.values()}
        stored: dict[str, Signal] = {}
        for signal in result.prioritized_signals:
            prior = previous.get(signal.dedup_key)
            if prior is not None and (prior.is_dismissed or prior.is_acted_on):
                signal = signal.model_copy(update={
                    "is_dismissed": prior.is_dismissed,
                    "is_acted_on": prior.is_acted_on,
                })
            stored[signal.id] = signal

        self._signals = stored
        self.last_cycle_id = result.cycle_id
        self.last_error = None
        logger.debug("Stored %d signals from cycle %s.", len(stored), result.cycle_id)
        return list(stored.values())

    def record_failure(self, error: str) -> None:
        """Remember a failed refresh. Prior signals stay listed."""
        self.last_error = error
        logger.warning("Signal refresh failed, keeping %d prior signals: %s", len(self._signals), error)

    def get(self, signal_id: str) -> Signal | None:
        return self._signals.get(signal_id)

    def all_signals(self) -> list[Signal]:
        return list(self._signals.values())

    def active_signals(self, now: datetime | None = None) -> list[Signal]:
        """Signals that are neither dismissed nor expired, in priority order."""
        now = now or utcnow()
        return [
            s for s in self._signals.values()
            if not s.is_dismissed and not s.is_expired(now)
        ]

    def urgent_signals(self, now: datetime | None = None) -> list[Signal]:
        return [s for s in self.active_signals(now) if s.severity >= Severity.URGENT]

    def by_domain(self, domain: LifeDomain, now: datetime | None = None) -> list[Signal]:
        return [s for s in self.active_signals(now) if s.domain == domain]

    def by_type(self, signal_type: SignalType, now: datetime | None = None) -> list[Signal]:
        return [s for s in self.active_signals(now) if s.type == signal_type]

    def counts(self, now: datetime | None = None) -> dict[str, int]:
        """Active signal counts: total, per severity, and urgent (urgent + critical)."""
        active = self.active_signals(now)
        by_severity = Counter(s.severity for s in active)
        counts = {"total": len(active)}
        for severity in Severity:
            counts[severity.value] = by_severity.get(severity, 0)
        counts["urgent_total"] = counts[Severity.URGENT.value] + counts[Severity.CRITICAL.value]
        return counts

    def dismiss(self, signal_id: str) -> Signal | None:
        """Mark a signal dismissed. Returns the updated copy, or None if unknown."""
        return self._update(signal_id, is_dismissed=True)

    def act_on(self, signal_id: str) -> Signal | None:
        """Mark a signal acted on. Returns the updated copy, or None if unknown."""
        return self._update(signal_id, is_acted_on=True)

    def clear_expired(self, now: datetime | None = None) -> int:
        """Drop expired signals. Returns how many were removed."""
        now = now or utcnow()
        expired = [sid for sid, s in self._signals.items() if s.is_expired(now)]
        for sid in expired:
            del self._signals[sid]
        if expired:
            logger.debug("Cleared %d expired signals.", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._signals)

    def _update(self, signal_id: str, **flags: bool) -> Signal | None:
        signal = self._signals.get(signal_id)
        if signal is None:
            return None
        updated = signal.model_copy(update=flags)
        self._signals[signal_id] = updated
        return updated
