"""Detector event schema.

Events are emitted by the executor during a cycle so the display layer can
update its live panels in real time. The engine and display layer are
decoupled: the engine works the same whether or not anything is listening.
"""

from enum import Enum

from pydantic import BaseModel


class EventType(str, Enum):
    """The lifecycle stages a detector can emit events for.

    Values:
        STARTED: Detector has begun its run.
        SIGNAL_DETECTED: Detector emitted a signal (one event per signal).
        COMPLETE: Detector finished and returned its signals.
        ERROR: Detector raised or timed out and was skipped.
    """

    STARTED = "started"
    SIGNAL_DETECTED = "signal_detected"
    COMPLETE = "complete"
    ERROR = "error"


class DetectorEvent(BaseModel):
    """A single event emitted during one detector run.

    Attributes:
        detector_name: Name of the detector the event is about. Maps to the
            panel heading in the Rich display.
        event_type: Lifecycle stage this event represents.
        message: Human-readable description (e.g. "2 signals detected",
            "urgent: Portfolio Loss: $250.00").
        timestamp_ms: Milliseconds since the start of the cycle.
    """

    detector_name: str
    event_type: EventType
    message: str
    timestamp_ms: float
