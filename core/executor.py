"""Parallel detector executor.

ParallelExecutor runs every registered detector concurrently against the
same context snapshot and collects their results. It owns timeouts and
fault isolation so the engine does not have to.

The key guarantee: one detector failing never causes other detectors to be
skipped. Each detector runs in its own task with its own exception boundary.
"""

import asyncio
import logging
import time

from detectors.base import BaseDetector
from schemas.context import AnticipationContext
from schemas.events import DetectorEvent, EventType
from schemas.result import DetectorResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class ParallelExecutor:
    """Runs a list of detectors concurrently and returns their results.

    Uses asyncio.TaskGroup to schedule all detectors at once. Each runs in
    an isolated task: if one raises or times out, the others continue
    unaffected and the failed one simply contributes nothing.

    The executor also owns timing. It measures wall-clock time for each
    detector and writes it into the DetectorResult.

    Attributes:
        timeout_seconds: Maximum time to wait for a single detector before
            cancelling it and moving on.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        detectors: list[BaseDetector],
        context: AnticipationContext,
        event_queue: asyncio.Queue | None = None,
    ) -> list[DetectorResult]:
        """Run all detectors concurrently and return their results.

        Args:
            detectors: Detectors to run, typically DetectorRegistry.get_all().
            context: The frozen snapshot every detector reads.
            event_queue: Optional asyncio.Queue to emit DetectorEvents into.
                The display layer reads from this queue to update live
                panels. If None, events are skipped.

        Returns:
            DetectorResults from the detectors that completed, in the order
            the detectors were given. Detectors that timed out or raised
            are excluded. May be empty.
        """
        if not detectors:
            return []

        exec_start = time.perf_counter()

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(
                    self._run_detector_safely(detector, context, event_queue, exec_start),
                    name=detector.name,
                )
                for detector in detectors
            ]

        return [result for t in tasks if (result := t.result()) is not None]

    async def _run_detector_safely(
        self,
        detector: BaseDetector,
        context: AnticipationContext,
        event_queue: asyncio.Queue | None,
        exec_start: float,
    ) -> DetectorResult | None:
        """Run a single detector with timeout and exception handling.

        Never raises. Failures are logged and returned as None, which the
        caller filters out. This keeps a failing detector from propagating
        into the TaskGroup and cancelling its siblings.

        Emits STARTED, one SIGNAL_DETECTED per signal, then COMPLETE, or
        ERROR on failure.
        """
        detector_start = time.perf_counter()

        async def emit(event_type: EventType, message: str) -> None:
            if event_queue is not None:
                ts_ms = (time.perf_counter() - exec_start) * 1000
                await event_queue.put(DetectorEvent(
                    detector_name=detector.name,
                    event_type=event_type,
                    message=message,
                    timestamp_ms=ts_ms,
                ))

        await emit(EventType.STARTED, "scanning...")

        try:
            signals = await asyncio.wait_for(
                detector.run(context),
                timeout=self.timeout_seconds,
            )
            elapsed_ms = (time.perf_counter() - detector_start) * 1000

            for signal in signals:
                await emit(EventType.SIGNAL_DETECTED, f"{signal.severity.value}: {signal.title}")

            noun = "signal" if len(signals) == 1 else "signals"
            await emit(EventType.COMPLETE, f"{len(signals)} {noun} detected")
            logger.debug(
                "Detector '%s' produced %d signals in %.0fms.",
                detector.name,
                len(signals),
                elapsed_ms,
            )
            return DetectorResult(
                detector_name=detector.name,
                signals=list(signals),
                execution_time_ms=elapsed_ms,
            )

        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - detector_start) * 1000
            await emit(EventType.ERROR, f"timed out after {elapsed_ms / 1000:.1f}s")
            logger.error(
                "Detector '%s' timed out after %.1fs (limit: %ss), skipping.",
                detector.name,
                elapsed_ms / 1000,
                self.timeout_seconds,
            )
            return None

        except Exception as exc:
            elapsed_ms = (time.perf_counter() - detector_start) * 1000
            await emit(EventType.ERROR, str(exc) or type(exc).__name__)
            logger.error(
                "Detector '%s' raised after %.0fms, skipping. Error: %s",
                detector.name,
                elapsed_ms,
                exc,
            )
            return None
