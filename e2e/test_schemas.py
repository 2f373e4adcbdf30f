"""Schema validation tests.

These tests verify that the Pydantic models accept valid data, reject
invalid data, and enforce field constraints. No API key or external
services required.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from schemas.context import (
    AnticipationContext,
    Deal,
    DealStatus,
    Email,
    PortfolioSnapshot,
    ProductivityPattern,
    Task,
)
from schemas.events import DetectorEvent, EventType
from schemas.result import CycleResult, DetectorResult
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType
from utils.timefmt import parse_iso, to_iso

NOW = datetime(2026, 2, 13, 10, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────────────

def make_signal(**overrides) -> Signal:
    defaults = dict(
        type=SignalType.PORTFOLIO_ALERT,
        severity=Severity.URGENT,
        domain=LifeDomain.FINANCE,
        source="financial-sentinel",
        title="Portfolio Loss: $250.00",
        context="Day P&L is $-250.00 with 2 active positions.",
        created_at="2026-02-13T10:00:00.000Z",
    )
    return Signal(**{**defaults, **overrides})


# ── Signal ────────────────────────────────────────────────────────────────────

class TestSignal:
    def test_creation_defaults(self):
        s = make_signal()
        assert s.auto_actionable is False
        assert s.is_dismissed is False
        assert s.is_acted_on is False
        assert s.related_entity_ids == []
        assert s.expires_at is None
        assert s.suggested_action is None

    def test_ids_are_unique(self):
        assert make_signal().id != make_signal().id

    def test_string_values_coerce_to_enums(self):
        s = make_signal(type="deal_update", severity="attention", domain="business_re")
        assert s.type is SignalType.DEAL_UPDATE
        assert s.severity is Severity.ATTENTION
        assert s.domain is LifeDomain.BUSINESS_RE

    def test_unknown_type_raises(self):
        with pytest.raises(ValidationError):
            make_signal(type="weather_alert")

    def test_unknown_domain_raises(self):
        with pytest.raises(ValidationError):
            make_signal(domain="hobbies")

    @pytest.mark.parametrize("field", ["created_at", "expires_at"])
    def test_non_iso_timestamp_raises(self, field):
        with pytest.raises(ValidationError):
            make_signal(**{field: "last tuesday"})

    def test_missing_required_field_raises(self):
        with pytest.raises(ValidationError):
            Signal(type="deal_update", severity="urgent", domain="business_re", source="x")

    def test_frozen(self):
        s = make_signal()
        with pytest.raises(ValidationError):
            s.title = "changed"

    def test_model_copy_updates_flags(self):
        s = make_signal()
        dismissed = s.model_copy(update={"is_dismissed": True})
        assert dismissed.is_dismissed is True
        assert s.is_dismissed is False
        assert dismissed.id == s.id

    def test_dedup_key_uses_first_related_id(self):
        s = make_signal(type="deal_update", related_entity_ids=["deal-1", "email-9"])
        assert s.dedup_key == "deal_update:deal-1"

    def test_dedup_key_without_related_ids(self):
        assert make_signal().dedup_key == "portfolio_alert:none"

    def test_never_expires_without_expires_at(self):
        assert make_signal().is_expired(NOW + timedelta(days=365)) is False

    def test_expiry_boundary(self):
        s = make_signal(expires_at="2026-02-14T10:00:00.000Z")
        assert s.is_expired(NOW + timedelta(hours=23)) is False
        assert s.is_expired(NOW + timedelta(hours=24)) is True

    def test_json_dump_uses_plain_strings(self):
        dumped = make_signal().model_dump(mode="json")
        assert dumped["type"] == "portfolio_alert"
        assert dumped["severity"] == "urgent"
        assert dumped["domain"] == "finance"


# ── Severity ──────────────────────────────────────────────────────────────────

class TestSeverity:
    def test_ordering_follows_rank_not_alphabet(self):
        assert Severity.INFO < Severity.ATTENTION < Severity.URGENT < Severity.CRITICAL
        # Alphabetically "critical" < "info"; rank must win.
        assert Severity.CRITICAL > Severity.INFO

    def test_sorted(self):
        shuffled = [Severity.URGENT, Severity.INFO, Severity.CRITICAL, Severity.ATTENTION]
        assert sorted(shuffled) == [
            Severity.INFO, Severity.ATTENTION, Severity.URGENT, Severity.CRITICAL,
        ]

    def test_max(self):
        assert max([Severity.ATTENTION, Severity.CRITICAL, Severity.INFO]) is Severity.CRITICAL

    def test_rank(self):
        assert [s.rank for s in Severity] == [0, 1, 2, 3]

    def test_equality_with_plain_string(self):
        assert Severity.URGENT == "urgent"

    def test_usable_as_dict_key(self):
        counts = {Severity.URGENT: 1}
        assert counts[Severity.URGENT] == 1


# ── Repertoire ────────────────────────────────────────────────────────────────

class TestRepertoire:
    def test_financial_sentinel_types(self):
        assert SIGNAL_REPERTOIRE["financial-sentinel"] == {
            SignalType.PORTFOLIO_ALERT, SignalType.DEAL_UPDATE,
        }

    def test_insight_engine_only_emits_learned_suggestions(self):
        assert SIGNAL_REPERTOIRE["claude-insight-engine"] == {SignalType.LEARNED_SUGGESTION}

    def test_pattern_recognizer_only_emits_pattern_insights(self):
        assert SIGNAL_REPERTOIRE["pattern-recognizer"] == {SignalType.PATTERN_INSIGHT}

    def test_no_type_shared_between_sources(self):
        seen: set[SignalType] = set()
        for types in SIGNAL_REPERTOIRE.values():
            assert not (seen & types)
            seen |= types


# ── AnticipationContext ───────────────────────────────────────────────────────

class TestAnticipationContext:
    def test_snapshot_fills_clock_fields(self):
        ctx = AnticipationContext.snapshot(now=NOW)
        assert ctx.today == "2026-02-13"
        assert ctx.current_time == "10:00"
        assert ctx.day_of_week == "Friday"
        assert ctx.now == NOW

    def test_defaults_to_current_time(self):
        ctx = AnticipationContext.model_validate({})
        assert abs((datetime.now(timezone.utc) - ctx.now).total_seconds()) < 5

    def test_camel_case_aliases_accepted(self):
        ctx = AnticipationContext.model_validate({
            "now": "2026-02-13T10:00:00.000Z",
            "mcpData": {"alpaca": {"dayPnl": -10}},
            "calendarEvents": [{
                "id": "ev1", "summary": "Standup",
                "start_time": "2026-02-13T10:15:00Z", "end_time": "2026-02-13T10:30:00Z",
            }],
            "historicalPatterns": [{"pattern_type": "peak_hours", "description": "x", "confidence": 0.5}],
            "currentTime": "03:00",
            "dayOfWeek": "Someday",
        })
        assert ctx.mcp_data["alpaca"]["dayPnl"] == -10
        assert len(ctx.calendar_events) == 1
        assert len(ctx.historical_patterns) == 1
        assert ctx.current_time == "03:00"
        assert ctx.day_of_week == "Someday"

    def test_naive_now_treated_as_utc(self):
        ctx = AnticipationContext.snapshot(now=datetime(2026, 2, 13, 10, 0))
        assert ctx.now == NOW

    def test_frozen(self):
        ctx = AnticipationContext.snapshot(now=NOW)
        with pytest.raises(ValidationError):
            ctx.tasks = []

    def test_unknown_keys_ignored(self):
        ctx = AnticipationContext.model_validate({"now": NOW, "journalEntries": [1, 2]})
        assert ctx.tasks == []

    def test_invalid_deal_status_raises(self):
        with pytest.raises(ValidationError):
            AnticipationContext.snapshot(
                now=NOW, deals=[{"id": "d1", "address": "1 Main", "status": "bogus"}]
            )

    def test_timestamp_today_keeps_its_date(self):
        ctx = AnticipationContext.model_validate({"now": NOW, "today": "2026-02-12T23:30:00Z"})
        assert ctx.today == "2026-02-12"

    @pytest.mark.parametrize("today", ["yesterday", "2026-13-01", 20260213])
    def test_invalid_today_raises(self, today):
        with pytest.raises(ValidationError):
            AnticipationContext.model_validate({"now": NOW, "today": today})

    @pytest.mark.parametrize("now", [12345, ["2026-02-13"], {"iso": "2026-02-13"}])
    def test_now_of_wrong_type_raises(self, now):
        with pytest.raises(ValidationError, match="ISO-8601 string or datetime"):
            AnticipationContext.model_validate({"now": now})

    @pytest.mark.parametrize("current_time", ["10am", "24:00", "9:5"])
    def test_invalid_current_time_raises(self, current_time):
        with pytest.raises(ValidationError):
            AnticipationContext.model_validate({"now": NOW, "currentTime": current_time})


# ── Entities ──────────────────────────────────────────────────────────────────

class TestEntities:
    def test_task_date_accepts_timestamp(self):
        task = Task.model_validate({
            "id": "t1", "title": "x",
            "created_date": "2026-02-10T22:15:00.000Z",
            "due_date": "2026-02-20",
        })
        assert task.created_date == date(2026, 2, 10)
        assert task.due_date == date(2026, 2, 20)

    def test_email_from_alias(self):
        email = Email.model_validate({
            "id": "e1", "from": "a@b.example", "subject": "Hi",
            "received_at": "2026-02-12T09:00:00Z",
        })
        assert email.sender == "a@b.example"
        assert email.tier == "important"

    def test_deal_terminal_statuses(self):
        assert DealStatus.CLOSED.is_terminal
        assert DealStatus.DEAD.is_terminal
        assert not any(
            s.is_terminal for s in
            (DealStatus.PROSPECT, DealStatus.ANALYZING, DealStatus.OFFER, DealStatus.UNDER_CONTRACT)
        )

    def test_deal_never_analyzed(self):
        deal = Deal(id="d1", address="1 Main", status="prospect")
        assert deal.last_analysis_at is None

    def test_portfolio_counts_non_zero_positions(self):
        snapshot = PortfolioSnapshot.model_validate({
            "dayPnl": -120.5,
            "positions": [{"symbol": "SPY", "qty": 3}, {"symbol": "QQQ", "qty": 0}, {"symbol": "X"}],
        })
        assert snapshot.day_pnl == -120.5
        assert snapshot.active_positions == 2

    def test_portfolio_requires_day_pnl(self):
        with pytest.raises(ValidationError):
            PortfolioSnapshot.model_validate({"positions": []})

    def test_pattern_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ProductivityPattern(pattern_type="peak_hours", description="x", confidence=1.2)
        with pytest.raises(ValidationError):
            ProductivityPattern(pattern_type="peak_hours", description="x", confidence=-0.1)


# ── Results and events ────────────────────────────────────────────────────────

class TestResultsAndEvents:
    def test_detector_result(self):
        result = DetectorResult(detector_name="streak-guardian", signals=[], execution_time_ms=1.5)
        assert result.signals == []

    def test_cycle_result_defaults(self):
        result = CycleResult(
            timestamp=to_iso(NOW),
            signals=[],
            prioritized_signals=[],
            services_run=["streak-guardian"],
            run_duration_ms=3.0,
        )
        assert result.services_failed == []
        assert len(result.cycle_id) == 36

    def test_detector_event(self):
        event = DetectorEvent(
            detector_name="deadline-radar",
            event_type=EventType.SIGNAL_DETECTED,
            message="urgent: Due today: Taxes",
            timestamp_ms=12.0,
        )
        assert event.model_dump(mode="json")["event_type"] == "signal_detected"


# ── Time helpers ──────────────────────────────────────────────────────────────

class TestTimeHelpers:
    def test_to_iso_millisecond_z_format(self):
        assert to_iso(NOW) == "2026-02-13T10:00:00.000Z"

    def test_to_iso_converts_offsets(self):
        eastern = timezone(timedelta(hours=-5))
        assert to_iso(datetime(2026, 2, 13, 5, 0, tzinfo=eastern)) == "2026-02-13T10:00:00.000Z"

    def test_parse_iso_round_trip(self):
        assert parse_iso(to_iso(NOW)) == NOW

    def test_parse_iso_bare_date(self):
        assert parse_iso("2026-02-13") == datetime(2026, 2, 13, tzinfo=timezone.utc)
