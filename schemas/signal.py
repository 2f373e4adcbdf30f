"""Signal schema.

A Signal is the atomic unit of "something worth surfacing": a typed,
severity-ranked, time-bounded notice produced by a detector from one
AnticipationContext snapshot. Detectors create signals; only the store
(acting for the UI) flips the is_dismissed / is_acted_on flags afterwards,
and it does so by copying, never by mutating.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from utils.timefmt import parse_iso


class SignalType(str, Enum):
    """Closed set of signal tags. Each detector emits a fixed subset."""

    AGING_EMAIL = "aging_email"
    DEADLINE_APPROACHING = "deadline_approaching"
    STREAK_AT_RISK = "streak_at_risk"
    CALENDAR_CONFLICT = "calendar_conflict"
    DEAL_UPDATE = "deal_update"
    PORTFOLIO_ALERT = "portfolio_alert"
    PATTERN_INSIGHT = "pattern_insight"
    FAMILY_AWARENESS = "family_awareness"
    HEALTH_REMINDER = "health_reminder"
    WEEKLY_REVIEW = "weekly_review"
    FINANCIAL_UPDATE = "financial_update"
    DOCUMENT_ACTION = "document_action"
    FOLLOW_UP_DUE = "follow_up_due"
    CONTEXT_SWITCH_PREP = "context_switch_prep"
    LEARNED_SUGGESTION = "learned_suggestion"


class Severity(str, Enum):
    """Ordered urgency tier: info < attention < urgent < critical.

    Extends str so values serialize as plain strings. The comparison
    operators are overridden to follow rank rather than alphabetical order.
    """

    INFO = "info"
    ATTENTION = "attention"
    URGENT = "urgent"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {"info": 0, "attention": 1, "urgent": 2, "critical": 3}


class LifeDomain(str, Enum):
    """Closed set of life domains a signal can belong to."""

    BUSINESS_RE = "business_re"
    BUSINESS_TRADING = "business_trading"
    BUSINESS_TECH = "business_tech"
    PERSONAL_GROWTH = "personal_growth"
    HEALTH_FITNESS = "health_fitness"
    FAMILY = "family"
    FINANCE = "finance"
    SOCIAL = "social"
    CREATIVE = "creative"
    SPIRITUAL = "spiritual"


# Every (source, type) pair a detector is allowed to emit. The judge
# rejects any detector result that strays outside its source's entry.
SIGNAL_REPERTOIRE: dict[str, frozenset[SignalType]] = {
    "financial-sentinel": frozenset({SignalType.PORTFOLIO_ALERT, SignalType.DEAL_UPDATE}),
    "aging-detector": frozenset({SignalType.AGING_EMAIL, SignalType.FOLLOW_UP_DUE}),
    "deadline-radar": frozenset({SignalType.DEADLINE_APPROACHING, SignalType.CALENDAR_CONFLICT}),
    "streak-guardian": frozenset({SignalType.STREAK_AT_RISK}),
    "pattern-recognizer": frozenset({SignalType.PATTERN_INSIGHT}),
    "claude-insight-engine": frozenset({SignalType.LEARNED_SUGGESTION}),
}


def _check_iso(value: str) -> str:
    parse_iso(value)
    return value


IsoTimestamp = Annotated[str, AfterValidator(_check_iso)]


class Signal(BaseModel):
    """A single notice that something in a tracked domain needs attention.

    Frozen: fields are fixed at creation. The store produces updated copies
    (model_copy) when the user dismisses or acts on a signal.

    Attributes:
        id: Unique identifier (uuid4 string).
        type: Tag from SignalType. Must belong to the producing source's
            entry in SIGNAL_REPERTOIRE.
        severity: Urgency tier. Must agree with the numeric condition
            that produced the signal.
        domain: Life domain the signal belongs to.
        source: Stable identifier of the producing detector
            (e.g. "financial-sentinel"). Used for provenance and dedup.
        title: Short headline shown in the UI.
        context: Human-readable explanation.
        suggested_action: Optional recommended next step.
        auto_actionable: Whether the UI may act without confirmation.
            Always False for the detectors in this repo.
        is_dismissed: Set by the UI layer. False at creation.
        is_acted_on: Set by the UI layer. False at creation.
        related_entity_ids: Ids of the deals, emails, tasks, etc. the
            signal is about, most relevant first.
        created_at: ISO-8601 detection timestamp.
        expires_at: Optional ISO-8601 timestamp after which the signal is
            stale and should not be surfaced.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: SignalType
    severity: Severity
    domain: LifeDomain
    source: str
    title: str
    context: str
    suggested_action: str | None = None
    auto_actionable: bool = False
    is_dismissed: bool = False
    is_acted_on: bool = False
    related_entity_ids: list[str] = Field(default_factory=list)
    created_at: IsoTimestamp
    expires_at: IsoTimestamp | None = None

    @property
    def dedup_key(self) -> str:
        """Key shared by signals describing the same thing: "<type>:<entity>"."""
        entity = self.related_entity_ids[0] if self.related_entity_ids else "none"
        return f"{self.type.value}:{entity}"

    def is_expired(self, now: datetime) -> bool:
        """True once now has reached expires_at. Signals without one never expire."""
        if self.expires_at is None:
            return False
        return parse_iso(self.expires_at) <= now
