"""API endpoint tests for the signal engine server."""

import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

import main
from core.store import SignalStore
from insights.digest import NO_DATA_MESSAGE
from utils.timefmt import to_iso, utcnow

client = TestClient(main.app)


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    """Each test starts with an empty signal store and no cycle records."""
    monkeypatch.setattr(main, "signal_store", SignalStore())
    monkeypatch.setattr(main, "_records", {})
    monkeypatch.setattr(main, "_latest_id", None)


def make_payload(**overrides) -> dict:
    now = utcnow()
    payload = {
        "now": to_iso(now),
        "mcpData": {"alpaca": {"dayPnl": -650.75, "positions": [{"symbol": "SPY", "qty": 10}]}},
        "deals": [{
            "id": "deal-oak",
            "address": "412 Oak St",
            "status": "analyzing",
            "last_analysis_at": to_iso(now - timedelta(days=8)),
        }],
    }
    return {**payload, **overrides}


def run_cycle() -> dict:
    res = client.post("/api/cycles", json=make_payload())
    assert res.status_code == 200
    return res.json()


def list_signals(**params) -> list[dict]:
    res = client.get("/api/signals", params=params)
    assert res.status_code == 200
    return res.json()["signals"]


# ── Health ────────────────────────────────────────────────────────────────────

def test_health():
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert "portfolio-sentinel" in body["detectors"]
    assert "claude-insight-engine" in body["detectors"]
    assert body["signals"] == 0
    assert body["last_error"] is None


# ── Cycles ────────────────────────────────────────────────────────────────────

def test_cycle_produces_two_signals():
    record = run_cycle()
    assert record["status"] == "complete"
    assert {(s["type"], s["severity"]) for s in record["signals"]} == {
        ("portfolio_alert", "critical"),
        ("deal_update", "attention"),
    }
    assert record["signals"][0]["type"] == "portfolio_alert"
    assert record["services_failed"] == []
    assert len(record["services_run"]) == 7


def test_cycle_record_lookup():
    record = run_cycle()
    assert client.get(f"/api/cycles/{record['cycle_id']}").json() == record
    assert client.get("/api/cycles/latest").json()["cycle_id"] == record["cycle_id"]


def test_latest_before_any_cycle_is_404():
    assert client.get("/api/cycles/latest").status_code == 404


def test_unknown_cycle_is_404():
    assert client.get("/api/cycles/does-not-exist").status_code == 404


def test_empty_context_is_valid():
    res = client.post("/api/cycles", json={})
    assert res.status_code == 200
    assert res.json()["signals"] == []


# ── Systemic faults ───────────────────────────────────────────────────────────

def test_malformed_context_keeps_prior_signals():
    run_cycle()

    bad = make_payload(deals=[{"id": "d1", "address": "1 Main", "status": "bogus"}])
    res = client.post("/api/cycles", json=bad)

    assert res.status_code == 422
    assert res.json()["detail"].startswith("Unable to refresh signals:")
    assert len(list_signals()) == 2
    assert client.get("/api/signals").json()["last_error"] is not None

    latest = client.get("/api/cycles/latest").json()
    assert latest["status"] == "failed"
    assert latest["error"]


def test_timestamp_today_is_normalized():
    payload = make_payload(
        today="2026-02-13T10:00:00Z",
        tasks=[{"id": "t1", "title": "Rent", "created_date": "2026-02-01", "due_date": "2026-02-20"}],
    )
    res = client.post("/api/cycles", json=payload)
    assert res.status_code == 200
    assert res.json()["status"] == "complete"


@pytest.mark.parametrize(
    "overrides",
    [
        {"today": "Friday the 13th"},
        {"now": 12345},
        {"signals": [{
            "type": "deal_update", "severity": "info", "domain": "business_re",
            "source": "financial-sentinel", "title": "t", "context": "c",
            "created_at": "sometime last week",
        }]},
    ],
    ids=["today", "now", "signal-created-at"],
)
def test_bad_clock_values_are_422(overrides):
    run_cycle()

    res = client.post("/api/cycles", json=make_payload(**overrides))

    assert res.status_code == 422
    assert res.json()["detail"].startswith("Unable to refresh signals:")
    assert len(list_signals()) == 2
    assert client.get("/api/cycles/latest").json()["status"] == "failed"


def test_next_good_cycle_clears_error():
    client.post("/api/cycles", json=[1, 2, 3])
    run_cycle()
    assert client.get("/api/signals").json()["last_error"] is None


def test_non_object_body_is_422():
    res = client.post("/api/cycles", json=["not", "a", "context"])
    assert res.status_code == 422
    assert "JSON object" in res.json()["detail"]


def test_invalid_json_is_422():
    res = client.post(
        "/api/cycles",
        content="{not json",
        headers={"content-type": "application/json"},
    )
    assert res.status_code == 422
    assert "not valid JSON" in res.json()["detail"]


# ── Signals ───────────────────────────────────────────────────────────────────

def test_signal_filters():
    run_cycle()
    assert [s["type"] for s in list_signals(domain="finance")] == ["portfolio_alert"]
    assert [s["type"] for s in list_signals(type="deal_update")] == ["deal_update"]
    assert list_signals(domain="family") == []


def test_unknown_filter_value_is_422():
    assert client.get("/api/signals", params={"domain": "hobbies"}).status_code == 422


def test_counts():
    run_cycle()
    assert client.get("/api/signals/counts").json() == {
        "total": 2,
        "info": 0,
        "attention": 1,
        "urgent": 0,
        "critical": 1,
        "urgent_total": 1,
    }


def test_dismiss_survives_next_cycle():
    run_cycle()
    deal = next(s for s in list_signals() if s["type"] == "deal_update")

    res = client.post(f"/api/signals/{deal['id']}/dismiss")
    assert res.status_code == 200
    assert res.json()["is_dismissed"] is True
    assert [s["type"] for s in list_signals()] == ["portfolio_alert"]

    run_cycle()
    assert [s["type"] for s in list_signals()] == ["portfolio_alert"]


def test_act_on_signal():
    run_cycle()
    [portfolio] = list_signals(type="portfolio_alert")
    res = client.post(f"/api/signals/{portfolio['id']}/act")
    assert res.status_code == 200
    assert res.json()["is_acted_on"] is True
    assert len(list_signals()) == 2


@pytest.mark.parametrize("action", ["dismiss", "act"])
def test_unknown_signal_is_404(action):
    assert client.post(f"/api/signals/nope/{action}").status_code == 404


# ── Digest ────────────────────────────────────────────────────────────────────

def test_digest():
    res = client.post("/api/digest", json={"patterns": [
        {"pattern_type": "peak_hours", "description": "Mornings are productive.", "confidence": 0.82},
        {"pattern_type": "category_trend", "description": "Creative is up.", "confidence": 0.2},
    ]})
    assert res.status_code == 200
    assert res.json()["digest"].splitlines() == [
        "Based on your patterns this week:",
        "• Mornings are productive.",
    ]


def test_digest_without_patterns():
    assert client.post("/api/digest", json={}).json()["digest"] == NO_DATA_MESSAGE


# ── Streaming ─────────────────────────────────────────────────────────────────

def test_stream_emits_events_then_result():
    res = client.post("/api/cycles/stream", json=make_payload())
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("application/x-ndjson")

    lines = [json.loads(line) for line in res.text.splitlines() if line.strip()]
    events, result = lines[:-1], lines[-1]

    assert all(e["type"] == "detector_event" for e in events)
    assert sum(e["event_type"] == "started" for e in events) == 7
    assert sum(e["event_type"] == "signal_detected" for e in events) == 2

    assert result["type"] == "result"
    assert result["status"] == "complete"
    assert len(result["signals"]) == 2
    assert len(list_signals()) == 2


def test_stream_with_bad_context_is_422():
    res = client.post("/api/cycles/stream", json={"now": "yesterday-ish"})
    assert res.status_code == 422
