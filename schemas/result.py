"""Result schemas.

Defines the output of a single detector run (DetectorResult) and of a full
detection cycle (CycleResult). These are the types that flow through the
judge and synthesizer before reaching the store and the caller.
"""

import uuid

from pydantic import BaseModel, Field

from schemas.signal import Signal


class DetectorResult(BaseModel):
    """Output produced by one detector in one cycle.

    The ParallelExecutor collects one DetectorResult per detector that
    finished. Each is passed to the SignalJudge before its signals are
    allowed into the cycle.

    Attributes:
        detector_name: Registry name of the detector that produced this
            result. The judge rejects blank names.
        signals: Signals in the order the detector emitted them. May be
            empty; "nothing to report" is the common case.
        execution_time_ms: Wall-clock time of the run, measured by the
            executor rather than reported by the detector.
    """

    detector_name: str
    signals: list[Signal]
    execution_time_ms: float


class CycleResult(BaseModel):
    """Final output of one AnticipationEngine.run_cycle() call.

    Attributes:
        cycle_id: Auto-generated UUID for this cycle.
        timestamp: ISO-8601 time the cycle started (the context's now).
        signals: Every accepted signal, concatenated in detector
            registration order, before dedup.
        prioritized_signals: signals after dedup, scoring and capping,
            highest priority first. This is what the UI should surface.
        services_run: Detectors whose output was accepted.
        services_failed: Detectors that raised, timed out, or were
            rejected by the judge. They contributed zero signals.
        run_duration_ms: Wall-clock duration of the cycle.
    """

    cycle_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str
    signals: list[Signal]
    prioritized_signals: list[Signal]
    services_run: list[str]
    services_failed: list[str] = Field(default_factory=list)
    run_duration_ms: float
