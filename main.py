"""Signal engine — detection-cycle API.

This file handles two concerns:

1. Refresh: receives an AnticipationContext, runs one detection cycle and
   stores the prioritized signals. A context that fails validation is a
   systemic fault: the cycle is recorded as failed, the caller gets a
   422 "Unable to refresh signals: ...", and the previous signals stay
   listed.

2. Read/feedback API: exposes the live signal set, counts, the weekly
   digest, and the dismiss/act endpoints whose flags feed the next
   cycle's priority weights.

Flow:
    POST /api/cycles            (or /api/cycles/stream for NDJSON events)
        → validate context
        → AnticipationEngine.run_cycle()
        → SignalStore.record_cycle()
        → CycleRecord saved and returned

    dashboard polls:
        GET /api/signals, GET /api/signals/counts, GET /api/cycles/latest

Run locally:
    uvicorn main:app --reload
"""

import asyncio
import json
import logging
import logging.handlers
import os
import pathlib
import uuid
from typing import Any, Literal

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

load_dotenv()

from core.executor import DEFAULT_TIMEOUT_SECONDS
from core.runtime import AnticipationEngine
from core.store import SignalStore
from detectors import default_detectors
from insights.digest import DIGEST_CONFIDENCE_THRESHOLD, build_weekly_digest
from llm.base import LLMClient
from llm.openrouter import DEFAULT_INSIGHT_MODEL, OpenRouterClient
from schemas.context import AnticipationContext, ProductivityPattern
from schemas.result import CycleResult
from schemas.signal import LifeDomain, SignalType
from utils.timefmt import to_iso, utcnow

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FILE = pathlib.Path(
    os.environ.get("SIGNAL_ENGINE_LOG_FILE", pathlib.Path(__file__).parent / "signal_engine.log")
)
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="Signal Engine")

# ALLOWED_ORIGINS env var overrides the default for production deployments.
_origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Engine setup
# ---------------------------------------------------------------------------

def _make_llm() -> LLMClient | None:
    """Live insight generation is enabled only when an API key is configured."""
    if not os.environ.get("OPENROUTER_API_KEY"):
        logger.info("OPENROUTER_API_KEY not set; insight engine uses pre-fetched payloads only.")
        return None
    return OpenRouterClient(os.environ.get("INSIGHT_MODEL", DEFAULT_INSIGHT_MODEL))


engine = AnticipationEngine(
    timeout_seconds=float(os.environ.get("DETECTOR_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
)
for _detector in default_detectors(llm=_make_llm()):
    engine.register(_detector)

signal_store = SignalStore()

# ---------------------------------------------------------------------------
# Cycle record store
# ---------------------------------------------------------------------------

class CycleRecord(BaseModel):
    """One refresh attempt, successful or not.

    status:
        "complete" → cycle ran, signals and detector lists populated
        "failed"   → the context could not be built, error is set
    """
    cycle_id: str
    status: Literal["complete", "failed"]
    timestamp: str | None = None
    signals: list[dict] = []
    services_run: list[str] = []
    services_failed: list[str] = []
    run_duration_ms: float | None = None
    error: str | None = None
    created_at: str = ""


class DigestRequest(BaseModel):
    patterns: list[ProductivityPattern] = Field(default_factory=list)
    min_confidence: float = DIGEST_CONFIDENCE_THRESHOLD


# In-memory store: cycle_id → CycleRecord. Lost on server restart.
_records: dict[str, CycleRecord] = {}
_latest_id: str | None = None


def _save(record: CycleRecord) -> None:
    """Write a record to the store and update the latest pointer."""
    global _latest_id
    _records[record.cycle_id] = record
    _latest_id = record.cycle_id


def _complete_record(result: CycleResult) -> CycleRecord:
    stored = signal_store.record_cycle(result)
    return CycleRecord(
        cycle_id=result.cycle_id,
        status="complete",
        timestamp=result.timestamp,
        signals=[s.model_dump(mode="json") for s in stored],
        services_run=result.services_run,
        services_failed=result.services_failed,
        run_duration_ms=result.run_duration_ms,
        created_at=to_iso(utcnow()),
    )


def _fail_refresh(error: str) -> HTTPException:
    """Record a failed cycle and build the 422 the caller should see."""
    signal_store.record_failure(error)
    _save(CycleRecord(
        cycle_id=str(uuid.uuid4()),
        status="failed",
        error=error,
        created_at=to_iso(utcnow()),
    ))
    return HTTPException(status_code=422, detail=f"Unable to refresh signals: {error}")


async def _read_context(request: Request) -> AnticipationContext:
    """Parse the request body into a context or raise the systemic-fault 422."""
    try:
        body: Any = await request.json()
    except ValueError as exc:
        logger.error("Rejected cycle request: body is not JSON: %s", exc)
        raise _fail_refresh(f"request body is not valid JSON ({exc})")

    if not isinstance(body, dict):
        raise _fail_refresh("context must be a JSON object")

    try:
        return AnticipationContext.model_validate(body)
    except ValidationError as exc:
        logger.error("Rejected cycle request: invalid context: %s", exc)
        raise _fail_refresh(f"{exc.error_count()} invalid context field(s): {exc.errors()[0]['msg']}")


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {
        "status": "ok",
        "detectors": [d.name for d in engine.detectors],
        "signals": len(signal_store),
        "last_error": signal_store.last_error,
    }


# ---------------------------------------------------------------------------
# Detection cycles
# ---------------------------------------------------------------------------

@app.post("/api/cycles", response_model=CycleRecord)
async def run_cycle(request: Request):
    """Run one detection cycle on the posted context and store its signals."""
    context = await _read_context(request)
    result = await engine.run_cycle(context)
    record = _complete_record(result)
    _save(record)
    logger.info(
        "Cycle %s stored %d signals (%d detectors failed).",
        record.cycle_id,
        len(record.signals),
        len(record.services_failed),
    )
    return record


@app.post("/api/cycles/stream")
async def stream_cycle(request: Request):
    """Run one cycle and stream detector events as NDJSON, then the record."""
    context = await _read_context(request)

    async def stream():
        eq: asyncio.Queue = asyncio.Queue()
        outcome: dict[str, CycleRecord] = {}

        async def run():
            try:
                result = await engine.run_cycle(context, event_queue=eq)
                outcome["record"] = _complete_record(result)
                _save(outcome["record"])
            except Exception as exc:
                logger.error("Streamed cycle failed: %s", exc)
                signal_store.record_failure(str(exc))
                outcome["record"] = CycleRecord(
                    cycle_id=str(uuid.uuid4()),
                    status="failed",
                    error=str(exc),
                    created_at=to_iso(utcnow()),
                )
                _save(outcome["record"])
            finally:
                await eq.put(None)

        task = asyncio.create_task(run())
        while True:
            event = await eq.get()
            if event is None:
                break
            yield json.dumps({"type": "detector_event", **event.model_dump(mode="json")}) + "\n"
        await task
        yield json.dumps({"type": "result", **outcome["record"].model_dump(mode="json")}) + "\n"

    return StreamingResponse(stream(), media_type="application/x-ndjson")


@app.get("/api/cycles/latest", response_model=CycleRecord)
def get_latest_cycle():
    """Return the most recent cycle record. 404 if no cycle has run yet."""
    if _latest_id is None or _latest_id not in _records:
        raise HTTPException(status_code=404, detail="No cycles yet.")
    return _records[_latest_id]


@app.get("/api/cycles/{cycle_id}", response_model=CycleRecord)
def get_cycle(cycle_id: str):
    if cycle_id not in _records:
        raise HTTPException(status_code=404, detail=f"Cycle '{cycle_id}' not found.")
    return _records[cycle_id]


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

@app.get("/api/signals")
def list_signals(
    domain: LifeDomain | None = None,
    signal_type: SignalType | None = Query(default=None, alias="type"),
):
    """Active (not dismissed, not expired) signals in priority order."""
    signals = signal_store.active_signals()
    if domain is not None:
        signals = [s for s in signals if s.domain == domain]
    if signal_type is not None:
        signals = [s for s in signals if s.type == signal_type]
    return {
        "signals": [s.model_dump(mode="json") for s in signals],
        "last_error": signal_store.last_error,
    }


@app.get("/api/signals/counts")
def signal_counts():
    return signal_store.counts()


@app.post("/api/signals/{signal_id}/dismiss")
def dismiss_signal(signal_id: str):
    signal = signal_store.dismiss(signal_id)
    if signal is None:
        raise HTTPException(status_code=404, detail=f"Signal '{signal_id}' not found.")
    logger.info("Signal %s (%s) dismissed.", signal_id, signal.type.value)
    return signal.model_dump(mode="json")


@app.post("/api/signals/{signal_id}/act")
def act_on_signal(signal_id: str):
    signal = signal_store.act_on(signal_id)
    if signal is None:
        raise HTTPException(status_code=404, detail=f"Signal '{signal_id}' not found.")
    logger.info("Signal %s (%s) acted on.", signal_id, signal.type.value)
    return signal.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

@app.post("/api/digest")
def weekly_digest(payload: DigestRequest):
    """Render the weekly digest for the posted patterns."""
    return {"digest": build_weekly_digest(payload.patterns, min_confidence=payload.min_confidence)}


if __name__ == "__main__":
    uvicorn.run("main:app", host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8000")))
