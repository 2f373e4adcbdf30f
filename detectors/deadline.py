"""Deadline radar — due dates and imminent calendar events.

Detects:
- Task due dates: overdue (critical), today (urgent), tomorrow (attention),
  within 3 days (info)
- Project due dates: overdue (critical), within 3 days (urgent),
  within 7 days (attention)
- Timed calendar events starting in the next 30 minutes (attention)

Day arithmetic uses the context's today, so the same snapshot always gives
the same answer.
"""

from datetime import date, timedelta

from detectors.base import BaseDetector
from schemas.context import AnticipationContext, CalendarEvent, Project, ProjectStatus, Task, TaskStatus
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType

_SOURCE = "deadline-radar"
_CLOSED_TASK_STATUSES = {TaskStatus.COMPLETED, TaskStatus.DISMISSED}
EVENT_LOOKAHEAD = timedelta(minutes=30)


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


class DeadlineRadar(BaseDetector):
    """Extract deadline_approaching and calendar_conflict signals."""

    name = "deadline-radar"
    source = _SOURCE
    repertoire = SIGNAL_REPERTOIRE[_SOURCE]

    def detect(self, context: AnticipationContext) -> list[Signal]:
        today = date.fromisoformat(context.today)
        signals: list[Signal] = []

        for task in context.tasks:
            if task.status in _CLOSED_TASK_STATUSES or task.due_date is None:
                continue
            signal = self._check_task(task, (task.due_date - today).days, context)
            if signal is not None:
                signals.append(signal)

        for project in context.projects:
            if project.status == ProjectStatus.COMPLETED or project.due_date is None:
                continue
            signal = self._check_project(project, (project.due_date - today).days, context)
            if signal is not None:
                signals.append(signal)

        for event in context.calendar_events:
            signal = self._check_event(event, context)
            if signal is not None:
                signals.append(signal)

        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _check_task(self, task: Task, days_until: int, context: AnticipationContext) -> Signal | None:
        if days_until < 0:
            overdue = -days_until
            severity, prefix = Severity.CRITICAL, "OVERDUE"
            message = f'Task "{task.title}" was due {overdue} day{_plural(overdue)} ago.'
        elif days_until == 0:
            severity, prefix = Severity.URGENT, "Due today"
            message = f'Task "{task.title}" is due today.'
        elif days_until == 1:
            severity, prefix = Severity.ATTENTION, "Due tomorrow"
            message = f'Task "{task.title}" is due tomorrow.'
        elif days_until <= 3:
            severity, prefix = Severity.INFO, f"Due in {days_until} days"
            message = f'Task "{task.title}" is due in {days_until} days.'
        else:
            return None

        return self.new_signal(
            type=SignalType.DEADLINE_APPROACHING,
            severity=severity,
            domain=LifeDomain.PERSONAL_GROWTH,
            title=f"{prefix}: {task.title}",
            context=message,
            suggested_action=(
                "Address this overdue task immediately"
                if days_until < 0
                else "Schedule time to complete this task"
            ),
            related_entity_ids=[task.id],
            created_at=context.now,
        )

    def _check_project(
        self, project: Project, days_until: int, context: AnticipationContext
    ) -> Signal | None:
        if days_until < 0:
            overdue = -days_until
            severity, prefix = Severity.CRITICAL, "OVERDUE"
            message = f'Project "{project.title}" was due {overdue} day{_plural(overdue)} ago.'
        elif days_until <= 3:
            severity = Severity.URGENT
            prefix = f"Due in {days_until} day{_plural(days_until)}"
            message = f'Project "{project.title}" is due in {days_until} day{_plural(days_until)}.'
        elif days_until <= 7:
            severity, prefix = Severity.ATTENTION, f"Due in {days_until} days"
            message = f'Project "{project.title}" is due in {days_until} days.'
        else:
            return None

        return self.new_signal(
            type=SignalType.DEADLINE_APPROACHING,
            severity=severity,
            domain=LifeDomain.PERSONAL_GROWTH,
            title=f"{prefix}: {project.title}",
            context=message,
            suggested_action=(
                "Review and reschedule this overdue project"
                if days_until < 0
                else "Review project progress and plan next actions"
            ),
            related_entity_ids=[project.id],
            created_at=context.now,
        )

    def _check_event(self, event: CalendarEvent, context: AnticipationContext) -> Signal | None:
        if event.all_day:
            return None

        until = event.start_time - context.now
        if until < timedelta(0) or until > EVENT_LOOKAHEAD:
            return None

        minutes = int(until.total_seconds() // 60)
        return self.new_signal(
            type=SignalType.CALENDAR_CONFLICT,
            severity=Severity.ATTENTION,
            domain=LifeDomain.PERSONAL_GROWTH,
            title=f"Upcoming event in {minutes} min: {event.summary}",
            context=f'Calendar event "{event.summary}" starts at {event.start_time:%H:%M} UTC.',
            suggested_action="Wrap up current work and prepare for this event",
            related_entity_ids=[event.id],
            created_at=context.now,
        )
