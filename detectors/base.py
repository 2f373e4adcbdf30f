"""Base detector definition.

Defines the contract every detector must satisfy. Detectors are the
sensing units of the anticipation engine: each receives the same
read-only AnticipationContext and returns the signals for its one concern.

Detectors are deliberately "dumb" workers:
- They do not call other detectors or read another detector's output
- They do not store state between cycles
- They do not write to the context
- They do not dedup, rank or persist signals

All scheduling, validation and ranking lives in the executor, judge and
synthesizer.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Severity, Signal, SignalType
from utils.timefmt import to_iso


class BaseDetector(ABC):
    """Abstract base class for all detectors.

    A concrete detector declares its registry name, the source string it
    stamps on signals, and the repertoire of signal types it may emit, then
    implements detect(). The engine only ever talks to detectors through
    run(), which by default just calls detect().

    Example:
        class StreakGuardian(BaseDetector):
            name = "streak-guardian"
            source = "streak-guardian"
            repertoire = SIGNAL_REPERTOIRE["streak-guardian"]

            def detect(self, context):
                ...

    Attributes:
        source: Provenance string written into every emitted signal.
        repertoire: The signal types this detector may emit. Must match
            SIGNAL_REPERTOIRE[source]; the judge enforces it at runtime.
    """

    source: str
    repertoire: frozenset[SignalType]

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique registry key for this detector.

        Used by the registry, the executor's events and the cycle's
        services_run / services_failed lists.
        """
        ...

    @abstractmethod
    def detect(self, context: AnticipationContext) -> list[Signal]:
        """Return the signals this detector sees in the context.

        Must be total and side-effect free for a well-formed context.
        Missing optional data (no portfolio, no deals) yields an empty list,
        never an exception.
        """
        ...

    async def run(self, context: AnticipationContext) -> list[Signal]:
        """Entry point used by the executor.

        Raises:
            Exception: Anything detect() raises is caught by the
                ParallelExecutor, which logs it and skips this detector.
        """
        return self.detect(context)

    def new_signal(
        self,
        *,
        type: SignalType,
        severity: Severity,
        domain: LifeDomain,
        title: str,
        context: str,
        created_at: datetime,
        suggested_action: str | None = None,
        related_entity_ids: list[str] | None = None,
        expires_at: datetime | None = None,
    ) -> Signal:
        """Build a Signal stamped with this detector's source.

        Raises:
            ValueError: If type is outside this detector's repertoire.
                Always a programming error.
        """
        if type not in self.repertoire:
            raise ValueError(
                f"Detector '{self.name}' may not emit '{type.value}' signals. "
                f"Repertoire: {sorted(t.value for t in self.repertoire)}"
            )
        return Signal(
            type=type,
            severity=severity,
            domain=domain,
            source=self.source,
            title=title,
            context=context,
            suggested_action=suggested_action,
            auto_actionable=False,
            related_entity_ids=list(related_entity_ids or []),
            created_at=to_iso(created_at),
            expires_at=to_iso(expires_at) if expires_at is not None else None,
        )
