"""Anticipation context schema.

Defines the read-only snapshot every detector receives. The orchestrator
assembles one AnticipationContext per detection cycle from live query
results; detectors read it and never write back into it. All models here
are frozen, so an attempted mutation raises instead of silently leaking
into a sibling detector.

Field names are snake_case. The camelCase keys the dashboard sends
("mcpData", "calendarEvents", "dayPnl", ...) are accepted as aliases.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from schemas.signal import LifeDomain, Signal, SignalType
from utils.timefmt import ensure_utc, parse_iso, utcnow


def _to_date(value: Any) -> Any:
    """Accept either a bare date or a full ISO timestamp for date fields."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, str) and len(value) > 10:
        return parse_iso(value).date()
    return value


def _to_day_string(value: Any) -> str:
    """Normalise a calendar day to "YYYY-MM-DD". Timestamps keep only their UTC date."""
    value = _to_date(value)
    if isinstance(value, str):
        value = date.fromisoformat(value)
    if not isinstance(value, date):
        raise ValueError("today must be a YYYY-MM-DD date")
    return value.isoformat()


LooseDate = Annotated[date, BeforeValidator(_to_date)]
DayString = Annotated[str, BeforeValidator(_to_day_string)]
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ── Tasks, projects, categories ───────────────────────────────────────────────

class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DISMISSED = "dismissed"
    DEFERRED = "deferred"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Task(_Snapshot):
    id: str
    title: str
    description: str | None = None
    category_id: str | None = None
    goal_id: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.ACTIVE
    created_date: LooseDate
    due_date: LooseDate | None = None
    completed_date: UtcDatetime | None = None
    tags: list[str] = Field(default_factory=list)


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class Project(_Snapshot):
    id: str
    title: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    category_id: str | None = None
    due_date: LooseDate | None = None


class Category(_Snapshot):
    """A life bucket ("Health", "Wealth", ...) with its activity streak."""

    id: str
    name: str
    streak_count: int = 0
    last_active_date: LooseDate | None = None
    current_progress: float = 0.0


# ── Email and calendar ────────────────────────────────────────────────────────

class EmailStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    DRAFTED = "drafted"
    REPLIED = "replied"
    ARCHIVED = "archived"
    SNOOZED = "snoozed"


class Email(_Snapshot):
    """An inbox message. tier is the classifier's label and left open."""

    id: str
    sender: str = Field(alias="from")
    subject: str
    snippet: str = ""
    tier: str = "important"
    status: EmailStatus = EmailStatus.UNREAD
    received_at: UtcDatetime


class CalendarEvent(_Snapshot):
    id: str
    summary: str
    description: str | None = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    all_day: bool = False


# ── Real-estate pipeline ──────────────────────────────────────────────────────

class DealStrategy(str, Enum):
    FLIP = "flip"
    BRRRR = "brrrr"
    RENTAL = "rental"
    WHOLESALE = "wholesale"


class DealStatus(str, Enum):
    PROSPECT = "prospect"
    ANALYZING = "analyzing"
    OFFER = "offer"
    UNDER_CONTRACT = "under_contract"
    CLOSED = "closed"
    DEAD = "dead"

    @property
    def is_terminal(self) -> bool:
        return self in (DealStatus.CLOSED, DealStatus.DEAD)


class Deal(_Snapshot):
    """A property in the real-estate pipeline.

    Created, advanced and re-analysed outside the engine. last_analysis_at
    is bumped whenever analysis work happens; None means the deal has never
    been analysed.
    """

    id: str
    address: str
    city: str = ""
    state: str = ""
    zip: str = ""
    strategy: DealStrategy = DealStrategy.FLIP
    status: DealStatus
    last_analysis_at: UtcDatetime | None = None
    linked_email_ids: list[str] = Field(default_factory=list)
    linked_task_ids: list[str] = Field(default_factory=list)
    created_at: UtcDatetime | None = None


# ── Portfolio (mcpData["alpaca"]) ─────────────────────────────────────────────

class PortfolioPosition(_Snapshot):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    symbol: str = ""
    qty: float | None = None
    avg_price: float | None = None
    current_price: float | None = None
    pnl: float | None = None

    @property
    def is_active(self) -> bool:
        """A position counts as exposure unless it explicitly holds zero shares."""
        return self.qty is None or self.qty != 0


class PortfolioSnapshot(_Snapshot):
    """Broker snapshot as delivered in mcpData["alpaca"].

    Attributes:
        day_pnl: Signed day profit/loss in currency units (alias "dayPnl").
        equity: Account equity, when the integration provides it.
        positions: Open positions. Only their count matters to detectors.
    """

    day_pnl: float = Field(alias="dayPnl")
    equity: float | None = None
    positions: list[PortfolioPosition] = Field(default_factory=list)

    @property
    def active_positions(self) -> int:
        return sum(1 for p in self.positions if p.is_active)


# ── Learned behaviour ─────────────────────────────────────────────────────────

class PatternType(str, Enum):
    PEAK_HOURS = "peak_hours"
    CATEGORY_TREND = "category_trend"
    COMPLETION_RATE = "completion_rate"
    STREAK_HEALTH = "streak_health"
    DAY_OF_WEEK = "day_of_week"
    DEEP_WORK_RATIO = "deep_work_ratio"


class ProductivityPattern(_Snapshot):
    """A behavioural pattern learned outside the engine, with its confidence."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pattern_type: PatternType
    description: str
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0)
    week_start: str = ""
    created_at: str = ""


class SignalWeight(_Snapshot):
    """Feedback-derived multiplier for one (signal type, domain) pair."""

    signal_type: SignalType
    domain: LifeDomain
    total_generated: int = 0
    total_dismissed: int = 0
    total_acted_on: int = 0
    effectiveness_score: float = 0.5
    weight_modifier: float = 1.0
    last_updated: str = ""


# ── Context ───────────────────────────────────────────────────────────────────

class AnticipationContext(_Snapshot):
    """Read-only snapshot of all domain state for one detection cycle.

    Attributes:
        tasks, projects, categories, emails, calendar_events, deals:
            Current domain collections.
        signals: Signals already known from earlier cycles. Used for
            feedback weighting and prompt building, never modified.
        mcp_data: Free-form integration data keyed by integration name
            (e.g. "alpaca", "insights"). Untyped on purpose: each detector
            validates the slice it reads.
        now: The instant every detector treats as "now". Fixing it in the
            snapshot makes a cycle deterministic.
        today, current_time, day_of_week: Local-calendar view of now
            (YYYY-MM-DD, HH:MM, weekday name). Filled from now when omitted.
        historical_patterns: Learned ProductivityPatterns.
        signal_weights: Optional precomputed feedback weights. When empty
            the synthesizer derives them from signals.
    """

    tasks: list[Task] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    emails: list[Email] = Field(default_factory=list)
    calendar_events: list[CalendarEvent] = Field(default_factory=list, alias="calendarEvents")
    deals: list[Deal] = Field(default_factory=list)
    signals: list[Signal] = Field(default_factory=list)
    mcp_data: dict[str, Any] = Field(default_factory=dict, alias="mcpData")
    now: UtcDatetime
    today: DayString
    current_time: str = Field(alias="currentTime", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    day_of_week: str = Field(alias="dayOfWeek")
    historical_patterns: list[ProductivityPattern] = Field(
        default_factory=list, alias="historicalPatterns"
    )
    signal_weights: list[SignalWeight] = Field(default_factory=list, alias="signalWeights")

    @model_validator(mode="before")
    @classmethod
    def _fill_clock(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        now = data.get("now")
        if now is None:
            now = utcnow()
        elif isinstance(now, str):
            now = parse_iso(now)
        elif not isinstance(now, datetime):
            raise ValueError("now must be an ISO-8601 string or datetime")
        now = ensure_utc(now)
        data["now"] = now
        if not data.get("today"):
            data["today"] = now.strftime("%Y-%m-%d")
        if not (data.get("current_time") or data.get("currentTime")):
            data["current_time"] = now.strftime("%H:%M")
        if not (data.get("day_of_week") or data.get("dayOfWeek")):
            data["day_of_week"] = now.strftime("%A")
        return data

    @classmethod
    def snapshot(cls, now: datetime | None = None, **collections: Any) -> "AnticipationContext":
        """Build a context for one cycle, stamping the clock fields from now."""
        return cls.model_validate({**collections, "now": now or utcnow()})
