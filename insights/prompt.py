"""User-message builder for the insight model."""

from collections import Counter
from datetime import timedelta

from schemas.context import AnticipationContext, ProductivityPattern, ProjectStatus
from schemas.signal import Signal
from utils.timefmt import parse_iso

RECENT_WINDOW = timedelta(hours=24)


def build_insight_prompt(
    patterns: list[ProductivityPattern],
    recent_signals: list[Signal],
    context: AnticipationContext,
) -> str:
    """Summarise patterns, the last day's signals and the live context.

    Signals count as recent when created within RECENT_WINDOW of context.now.
    """
    pattern_summary = "\n".join(
        f"- {p.pattern_type.value}: {p.description} (confidence: {p.confidence * 100:.0f}%)"
        for p in patterns
    )

    cutoff = context.now - RECENT_WINDOW
    recent = [s for s in recent_signals if parse_iso(s.created_at) > cutoff]
    by_type = Counter(s.type.value for s in recent)
    by_domain = Counter(s.domain.value for s in recent)

    type_summary = "\n".join(f"  {t}: {n}" for t, n in by_type.items())
    domain_summary = "\n".join(f"  {d}: {n}" for d, n in by_domain.items())
    active_projects = sum(1 for p in context.projects if p.status == ProjectStatus.ACTIVE)

    return (
        "## Current Date & Time\n"
        f"{context.day_of_week}, {context.today} at {context.current_time}\n\n"
        "## Detected Productivity Patterns\n"
        f"{pattern_summary or 'No patterns detected yet.'}\n\n"
        f"## Recent Signals (last 24h): {len(recent)} total\n"
        "By type:\n"
        f"{type_summary or '  None'}\n"
        "By domain:\n"
        f"{domain_summary or '  None'}\n\n"
        "## Active Context\n"
        f"- Tasks: {len(context.tasks)} total\n"
        f"- Calendar events today: {len(context.calendar_events)}\n"
        f"- Active projects: {active_projects}\n\n"
        "Generate 1-3 proactive insights based on these patterns."
    )
