"""Rich live display — one panel per detector, updating in real time.

The display layer is decoupled from the engine. It subscribes to an
asyncio.Queue of DetectorEvents and renders them into a live terminal
layout. The engine puts events into the queue and never checks whether
anyone is reading.

Usage:
    event_queue = asyncio.Queue()
    display = LiveDisplay(detector_names)

    with display.make_live() as live:
        cycle = asyncio.create_task(engine.run_cycle(context, event_queue))
        consumer = asyncio.create_task(display.consume(event_queue, live))
        result = await cycle
        await event_queue.put(None)  # sentinel, tells consume() to stop
        await consumer
"""

import asyncio
from dataclasses import dataclass, field

from rich.columns import Columns
from rich.console import Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from schemas.events import DetectorEvent, EventType

MAX_PANEL_LINES = 4

_SEVERITY_STYLES = {
    "critical": "bold red",
    "urgent": "red",
    "attention": "yellow",
    "info": "cyan",
}


# ── Per-detector state ────────────────────────────────────────────────────────

@dataclass
class _DetectorState:
    """Mutable state for one detector's panel."""
    name: str
    status: str = "waiting"    # waiting | running | complete | error
    elapsed_ms: float = 0.0
    signal_count: int = 0
    messages: list[str] = field(default_factory=list)


# ── Display ───────────────────────────────────────────────────────────────────

class LiveDisplay:
    """Manages the Rich live layout and subscribes to the event queue.

    Attributes:
        _states: Detector name → _DetectorState, updated as events arrive.
        _order:  Detector names in registration order, for a stable layout.
    """

    def __init__(self, detector_names: list[str]) -> None:
        self._states = {name: _DetectorState(name=name) for name in detector_names}
        self._order = list(detector_names)

    def make_live(self) -> Live:
        """Return a Rich Live context manager ready to use with `with`."""
        return Live(self._render(), refresh_per_second=12, transient=False)

    async def consume(self, queue: asyncio.Queue, live: Live) -> None:
        """Read events from the queue and update the display until the None sentinel."""
        while True:
            event = await queue.get()
            if event is None:
                break
            self._apply(event)
            live.update(self._render())

    # ── Private ───────────────────────────────────────────────────────────────

    def _apply(self, event: DetectorEvent) -> None:
        state = self._states.get(event.detector_name)
        if state is None:
            return

        state.elapsed_ms = event.timestamp_ms

        match event.event_type:
            case EventType.STARTED:
                state.status = "running"
                state.messages.append(event.message)
            case EventType.SIGNAL_DETECTED:
                state.signal_count += 1
                severity, _, title = event.message.partition(": ")
                style = _SEVERITY_STYLES.get(severity, "dim")
                state.messages.append(f"→ [{style}]{severity}[/{style}] {escape(title)}")
            case EventType.COMPLETE:
                state.status = "complete"
                state.messages.append(f"✓ {event.message}")
            case EventType.ERROR:
                state.status = "error"
                state.messages.append(f"✗ {escape(event.message)}")

        state.messages = state.messages[-MAX_PANEL_LINES:]

    def _render_panel(self, state: _DetectorState) -> Panel:
        icons = {
            "waiting":  "[dim]○[/dim]",
            "running":  "[bold yellow]●[/bold yellow]",
            "complete": "[bold green]✓[/bold green]",
            "error":    "[bold red]✗[/bold red]",
        }
        border_styles = {
            "waiting":  "dim",
            "running":  "yellow",
            "complete": "green",
            "error":    "red",
        }

        icon = icons.get(state.status, "○")
        elapsed = f"[dim][{state.elapsed_ms / 1000:.2f}s][/dim]"
        count = f"[dim]{state.signal_count} signal(s)[/dim]"
        lines: list[Text] = [Text.from_markup(f"{elapsed}  {icon}  {count}")]
        for msg in state.messages:
            lines.append(Text.from_markup(f"  {msg}", overflow="ellipsis"))

        return Panel(
            Group(*lines),
            title=f"[bold]{state.name}[/bold]",
            border_style=border_styles.get(state.status, "dim"),
            width=48,
        )

    def _render(self) -> Group:
        """Panels arranged in rows of two."""
        panels = [self._render_panel(self._states[name]) for name in self._order]
        rows = [Columns(panels[i : i + 2], equal=True) for i in range(0, len(panels), 2)]
        return Group(*rows)
