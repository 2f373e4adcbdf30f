"""Signal judge.

SignalJudge validates each DetectorResult before its signals may enter the
cycle. All checks are deterministic and involve no LLM. A detector whose
output breaks an invariant is treated exactly like a detector that crashed:
it contributes zero signals and is listed in services_failed.

The judge reports verdicts. It does not decide what to do with them; that
is the engine's responsibility.
"""

from dataclasses import dataclass

from detectors.base import BaseDetector
from schemas.result import DetectorResult
from schemas.signal import SIGNAL_REPERTOIRE
from utils.timefmt import parse_iso


@dataclass
class JudgedResult:
    """The verdict produced by the SignalJudge for a single DetectorResult.

    Attributes:
        valid: True if the result passed all checks and its signals may
            enter the cycle.
        result: The original DetectorResult. Always present so the caller
            can log context.
        rejection_reason: Description of the first check that failed.
            None if valid is True.
    """

    valid: bool
    result: DetectorResult
    rejection_reason: str | None = None


class SignalJudge:
    """Validates DetectorResult objects. Fails fast on the first broken check."""

    def validate(self, result: DetectorResult, detector: BaseDetector) -> JudgedResult:
        """Validate a single DetectorResult against the detector that produced it.

        A result with zero signals is valid; "nothing to report" is the
        common case.

        Args:
            result: The DetectorResult returned by the executor.
            detector: The registered detector the result claims to come from.

        Returns:
            A JudgedResult with valid=True if all checks passed, or
            valid=False with a rejection_reason for the first failure.
        """

        # Check 1 — detector_name must be a non-empty string.
        if not result.detector_name or not result.detector_name.strip():
            return self._reject(result, "detector_name is empty or whitespace.")

        # Check 2 — every signal carries the detector's source.
        for signal in result.signals:
            if signal.source != detector.source:
                return self._reject(
                    result,
                    f"Signal '{signal.title}' from detector '{result.detector_name}' "
                    f"has source '{signal.source}', expected '{detector.source}'.",
                )

        # Check 3 — every (source, type) pair is in the repertoire.
        allowed = SIGNAL_REPERTOIRE.get(detector.source, frozenset())
        for signal in result.signals:
            if signal.type not in allowed:
                return self._reject(
                    result,
                    f"Source '{signal.source}' may not emit '{signal.type.value}' "
                    f"signals (signal '{signal.title}').",
                )

        # Check 4 — user-interaction flags start false.
        for signal in result.signals:
            if signal.auto_actionable or signal.is_dismissed or signal.is_acted_on:
                return self._reject(
                    result,
                    f"Signal '{signal.title}' from detector '{result.detector_name}' "
                    "was created with auto_actionable, is_dismissed or is_acted_on set.",
                )

        # Check 5 — expiry, when set, is after creation.
        for signal in result.signals:
            if signal.expires_at is None:
                continue
            if parse_iso(signal.expires_at) <= parse_iso(signal.created_at):
                return self._reject(
                    result,
                    f"Signal '{signal.title}' from detector '{result.detector_name}' "
                    f"expires ({signal.expires_at}) no later than it was created "
                    f"({signal.created_at}).",
                )

        return JudgedResult(valid=True, result=result)

    def _reject(self, result: DetectorResult, reason: str) -> JudgedResult:
        return JudgedResult(valid=False, result=result, rejection_reason=reason)
