"""Insight normalizer — the boundary between model output and Signals.

Whatever the insight model returns arrives here as parsed-but-unverified
JSON. Each item is validated on its own and becomes either a ParsedInsight
or an InsightRejection; rejected items are dropped without raising.

Guarantees:
- parse_claude_insights() never raises, whatever the input shape
- It never returns more than MAX_INSIGHTS items
- Every default (severity, domain, suggested_action) is an explicit branch
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from schemas.insight import InsightRejection, ParsedInsight
from schemas.signal import LifeDomain, Severity, Signal, SignalType
from utils.timefmt import to_iso, utcnow

logger = logging.getLogger(__name__)

INSIGHT_SOURCE = "claude-insight-engine"
MAX_INSIGHTS = 3                    # valid items kept per payload
TITLE_MAX_LENGTH = 60
INSIGHT_TTL = timedelta(hours=24)

DEFAULT_SEVERITY = Severity.INFO
DEFAULT_DOMAIN = LifeDomain.PERSONAL_GROWTH

_SEVERITIES = {s.value: s for s in Severity}
_DOMAINS = {d.value: d for d in LifeDomain}


def normalize_insight(item: Any, index: int) -> ParsedInsight | InsightRejection:
    """Validate one raw item from the model's insight array.

    Args:
        item:  One element of the raw payload. Any JSON value.
        index: Position in the payload, reported back on rejection.

    Returns:
        ParsedInsight when the item has a non-blank string title and
        context, otherwise an InsightRejection naming the first problem.
    """
    if not isinstance(item, dict):
        return InsightRejection(index, f"expected an object, got {type(item).__name__}")

    title = item.get("title")
    if title is None:
        return InsightRejection(index, "missing title")
    if not isinstance(title, str):
        return InsightRejection(index, "title is not a string")
    if not title.strip():
        return InsightRejection(index, "title is blank")

    context = item.get("context")
    if context is None:
        return InsightRejection(index, "missing context")
    if not isinstance(context, str):
        return InsightRejection(index, "context is not a string")
    if not context.strip():
        return InsightRejection(index, "context is blank")

    return ParsedInsight(
        title=title[:TITLE_MAX_LENGTH],
        context=context,
        suggested_action=_suggested_action(item.get("suggested_action")),
        severity=_severity(item.get("severity")),
        domain=_domain(item.get("domain")),
    )


def parse_claude_insights(raw: Any) -> list[ParsedInsight]:
    """Turn an untrusted insight payload into at most MAX_INSIGHTS insights.

    Non-list input (None, objects, scalars) yields an empty list. Items are
    taken in order; invalid ones are skipped and do not count toward the cap.
    """
    if not isinstance(raw, list):
        if raw is not None:
            logger.debug("Insight payload is %s, not a list; ignoring", type(raw).__name__)
        return []

    insights: list[ParsedInsight] = []
    for index, item in enumerate(raw):
        outcome = normalize_insight(item, index)
        if isinstance(outcome, InsightRejection):
            logger.debug("Dropped insight #%d: %s", outcome.index, outcome.reason)
            continue
        insights.append(outcome)
        if len(insights) == MAX_INSIGHTS:
            break
    return insights


def insights_to_signals(
    insights: list[ParsedInsight],
    now: datetime | None = None,
) -> list[Signal]:
    """Lower parsed insights to learned_suggestion signals.

    All signals share one created_at, and expire INSIGHT_TTL later. No dedup
    against earlier insights happens here.
    """
    created = now or utcnow()
    created_at = to_iso(created)
    expires_at = to_iso(created + INSIGHT_TTL)

    return [
        Signal(
            type=SignalType.LEARNED_SUGGESTION,
            severity=insight.severity,
            domain=insight.domain,
            source=INSIGHT_SOURCE,
            title=insight.title,
            context=insight.context,
            suggested_action=insight.suggested_action,
            auto_actionable=False,
            is_dismissed=False,
            is_acted_on=False,
            related_entity_ids=[],
            created_at=created_at,
            expires_at=expires_at,
        )
        for insight in insights
    ]


# Names used by the dashboard code that consumes this boundary.
parseClaudeInsights = parse_claude_insights
insightsToSignals = insights_to_signals


# ── Private helpers ────────────────────────────────────────────────────────────

def _severity(value: Any) -> Severity:
    if value is None:
        return DEFAULT_SEVERITY
    if not isinstance(value, str):
        return DEFAULT_SEVERITY
    if value not in _SEVERITIES:
        return DEFAULT_SEVERITY
    return _SEVERITIES[value]


def _domain(value: Any) -> LifeDomain:
    if value is None:
        return DEFAULT_DOMAIN
    if not isinstance(value, str):
        return DEFAULT_DOMAIN
    if value not in _DOMAINS:
        return DEFAULT_DOMAIN
    return _DOMAINS[value]


def _suggested_action(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None
