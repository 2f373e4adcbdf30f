"""Insight schemas.

ParsedInsight is the validated form of one item from an externally
generated insight payload. It exists only between normalization and
lowering to a Signal, so it is a plain frozen dataclass rather than a
Pydantic model: it never crosses a system boundary on its own.

InsightRejection is the other half of the per-item parse result. The
normalizer returns one or the other for every item it inspects.
"""

from dataclasses import dataclass

from schemas.signal import LifeDomain, Severity


@dataclass(frozen=True)
class ParsedInsight:
    """One accepted insight with every field normalized.

    Attributes:
        title: Non-blank headline, at most 60 characters.
        context: Non-blank explanation.
        suggested_action: Recommended next step, or None when the payload
            carried none.
        severity: One of the four known severities (default INFO).
        domain: One of the known life domains (default PERSONAL_GROWTH).
    """

    title: str
    context: str
    suggested_action: str | None
    severity: Severity
    domain: LifeDomain


@dataclass(frozen=True)
class InsightRejection:
    """Why the item at index was dropped from the payload."""

    index: int
    reason: str
