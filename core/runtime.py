"""Anticipation engine — the top-level detection-cycle orchestrator.

AnticipationEngine is the single entry point for the engine. Callers
register detectors once, then call run_cycle() with a fresh
AnticipationContext as often as they like. Each cycle is independent:
detectors keep no state, and a new cycle simply supersedes the last one.

Pipeline order inside run_cycle():
    1. Run every detector in parallel via ParallelExecutor
    2. Validate each result via SignalJudge
    3. Concatenate accepted signals in registration order
    4. Dedup, score and cap via PrioritySynthesizer
    5. Return CycleResult

Persisting the outcome across cycles is the SignalStore's job, not the
engine's.
"""

import asyncio
import logging
import time

from aggregation.aggregator import PrioritySynthesizer
from core.executor import DEFAULT_TIMEOUT_SECONDS, ParallelExecutor
from core.registry import DetectorRegistry
from detectors.base import BaseDetector
from judge.judge import SignalJudge
from schemas.context import AnticipationContext
from schemas.result import CycleResult
from schemas.signal import Signal
from utils.timefmt import to_iso

logger = logging.getLogger(__name__)


class AnticipationEngine:
    """Runs one detection cycle over a context snapshot.

    Attributes:
        _registry: Tracks all registered detectors.
        _executor: Runs detectors concurrently via asyncio.TaskGroup.
        _judge: Validates each DetectorResult.
        _synthesizer: Dedups and ranks the accepted signals.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._registry = DetectorRegistry()
        self._executor = ParallelExecutor(timeout_seconds=timeout_seconds)
        self._judge = SignalJudge()
        self._synthesizer = PrioritySynthesizer()

    @property
    def detectors(self) -> list[BaseDetector]:
        return self._registry.get_all()

    def register(self, detector: BaseDetector) -> None:
        """Register a detector to take part in every cycle.

        Raises:
            ValueError: If a detector with the same name is already registered.
        """
        self._registry.register(detector)
        logger.debug(
            "Registered detector '%s'. Total detectors: %d.", detector.name, len(self._registry)
        )

    async def run_cycle(
        self,
        context: AnticipationContext,
        event_queue: asyncio.Queue | None = None,
    ) -> CycleResult:
        """Run every detector against context and return the ranked outcome.

        Args:
            context: The frozen snapshot for this cycle. Its now field is
                the cycle timestamp.
            event_queue: Optional queue receiving DetectorEvents as the
                detectors run.

        Returns:
            A CycleResult. Detectors that raised, timed out or were
            rejected by the judge appear in services_failed and contribute
            no signals.
        """
        cycle_start = time.perf_counter()
        detectors = self._registry.get_all()
        logger.info(
            "Starting detection cycle at %s with %d registered detectors.",
            to_iso(context.now),
            len(detectors),
        )

        # Step 1 — parallel detector execution.
        # Only detectors that completed come back; the rest were logged by
        # the executor.
        raw_results = await self._executor.execute(detectors, context, event_queue)
        logger.info("%d/%d detectors returned results.", len(raw_results), len(detectors))

        # Step 2 — judge validation.
        accepted: dict[str, list[Signal]] = {}
        for result in raw_results:
            detector = self._registry.get_by_name(result.detector_name)
            if detector is None:
                logger.warning("Dropping result from unregistered detector '%s'.", result.detector_name)
                continue
            judged = self._judge.validate(result, detector)
            if not judged.valid:
                logger.warning(
                    "Detector '%s' result rejected: %s",
                    result.detector_name,
                    judged.rejection_reason,
                )
                continue
            accepted[result.detector_name] = result.signals

        # Step 3 — concatenate in registration order.
        services_run = [d.name for d in detectors if d.name in accepted]
        services_failed = [d.name for d in detectors if d.name not in accepted]
        signals = [s for name in services_run for s in accepted[name]]

        # Step 4 — dedup, score, cap.
        prioritized = self._synthesizer.prioritize(signals, context)

        duration_ms = (time.perf_counter() - cycle_start) * 1000
        logger.info(
            "Cycle complete in %.0fms: %d signals, %d prioritized, %d detectors failed.",
            duration_ms,
            len(signals),
            len(prioritized),
            len(services_failed),
        )

        return CycleResult(
            timestamp=to_iso(context.now),
            signals=signals,
            prioritized_signals=prioritized,
            services_run=services_run,
            services_failed=services_failed,
            run_duration_ms=duration_ms,
        )
