"""Aging detector — deterministic signals for things left waiting too long.

Detects:
- Unanswered email: severity climbs with hours since receipt
  (attention > 24h, urgent > 48h, critical > 72h by default)
- Stale active task: still active more than 3 days after creation

Replied or archived email and promotional/unsubscribe tiers are ignored.
"""

import math

from pydantic import BaseModel

from detectors.base import BaseDetector
from schemas.context import AnticipationContext, Email, EmailStatus, Task, TaskStatus
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType

_SOURCE = "aging-detector"
_CLOSED_EMAIL_STATUSES = {EmailStatus.REPLIED, EmailStatus.ARCHIVED}
_IGNORED_TIERS = {"promotions", "unsubscribe"}


class AgingConfig(BaseModel):
    """Thresholds for the aging detector. All comparisons are strict (>)."""

    email_attention_hours: float = 24
    email_urgent_hours: float = 48
    email_critical_hours: float = 72
    task_stale_days: float = 3


class AgingDetector(BaseDetector):
    """Extract aging_email and follow_up_due signals from emails and tasks."""

    name = "aging-detector"
    source = _SOURCE
    repertoire = SIGNAL_REPERTOIRE[_SOURCE]

    def __init__(self, config: AgingConfig | None = None) -> None:
        self.config = config or AgingConfig()

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []

        for email in context.emails:
            signal = self._check_email(email, context)
            if signal is not None:
                signals.append(signal)

        for task in context.tasks:
            signal = self._check_task(task, context)
            if signal is not None:
                signals.append(signal)

        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _email_severity(self, hours: float) -> Severity | None:
        cfg = self.config
        if hours > cfg.email_critical_hours:
            return Severity.CRITICAL
        if hours > cfg.email_urgent_hours:
            return Severity.URGENT
        if hours > cfg.email_attention_hours:
            return Severity.ATTENTION
        return None

    def _check_email(self, email: Email, context: AnticipationContext) -> Signal | None:
        if email.status in _CLOSED_EMAIL_STATUSES or email.tier in _IGNORED_TIERS:
            return None

        hours = (context.now - email.received_at).total_seconds() / 3600
        severity = self._email_severity(hours)
        if severity is None:
            return None

        whole_hours = math.floor(hours)
        return self.new_signal(
            type=SignalType.AGING_EMAIL,
            severity=severity,
            domain=LifeDomain.BUSINESS_TECH,
            title=f"Email from {email.sender} aging ({whole_hours}h)",
            context=f'Subject: "{email.subject}", received {whole_hours} hours ago',
            suggested_action=f"Review and respond to email from {email.sender}",
            related_entity_ids=[email.id],
            created_at=context.now,
        )

    def _check_task(self, task: Task, context: AnticipationContext) -> Signal | None:
        if task.status != TaskStatus.ACTIVE:
            return None

        days = (context.now.date() - task.created_date).days
        if days <= self.config.task_stale_days:
            return None

        return self.new_signal(
            type=SignalType.FOLLOW_UP_DUE,
            severity=Severity.ATTENTION,
            domain=LifeDomain.BUSINESS_TECH,
            title=f'Task "{task.title}" has been active for {days} days',
            context=f"Created {days} days ago with priority {task.priority.value}",
            suggested_action=f'Review progress or complete task "{task.title}"',
            related_entity_ids=[task.id],
            created_at=context.now,
        )
