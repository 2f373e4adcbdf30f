"""Detector registry.

DetectorRegistry is the engine's roster of detectors. AnticipationEngine
delegates registration and lookup to it.

The registry enforces one invariant: detector names must be unique. Two
detectors with the same name would be indistinguishable in the cycle's
services_run / services_failed lists and in the live display, so duplicate
registration is rejected immediately.
"""

from detectors.base import BaseDetector


class DetectorRegistry:
    """Tracks registered detectors in registration order.

    Registration order matters: the executor returns results in this order
    and the cycle's signal list is concatenated in it.

    Attributes:
        _detectors: Internal dict mapping detector name to instance.
    """

    def __init__(self) -> None:
        self._detectors: dict[str, BaseDetector] = {}

    def register(self, detector: BaseDetector) -> None:
        """Register a detector.

        Raises:
            ValueError: If a detector with the same name is already
                registered. Always a programming error.
        """
        if detector.name in self._detectors:
            raise ValueError(
                f"Detector '{detector.name}' is already registered. "
                "Each detector must have a unique name."
            )
        self._detectors[detector.name] = detector

    def get_all(self) -> list[BaseDetector]:
        """Return all registered detectors as a new list, in registration order."""
        return list(self._detectors.values())

    def get_by_name(self, name: str) -> BaseDetector | None:
        """Look up a detector by name. Returns None when it is not registered."""
        return self._detectors.get(name)

    def __len__(self) -> int:
        return len(self._detectors)
