"""Signal engine — CLI demo runner.

Runs one detection cycle against a fixture context and renders live
detector panels in the terminal using Rich. Shows the ranked signal table
and the weekly digest when every detector has finished.

Usage:
    python cli.py [path/to/context.json]

With OPENROUTER_API_KEY set and no "insights" payload in the fixture, the
insight engine asks the model for fresh suggestions.
"""

import asyncio
import json
import os
import pathlib
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from core.runtime import AnticipationEngine
from detectors import default_detectors
from display.live import LiveDisplay
from insights.digest import build_weekly_digest
from llm.base import LLMClient
from llm.openrouter import DEFAULT_INSIGHT_MODEL, OpenRouterClient
from schemas.context import AnticipationContext
from schemas.result import CycleResult

load_dotenv()

console = Console()

_FIXTURE = pathlib.Path(__file__).parent / "fixtures" / "context_demo.json"

_SEVERITY_COLORS = {
    "critical": "bold red",
    "urgent": "red",
    "attention": "yellow",
    "info": "cyan",
}


# ── Results table ─────────────────────────────────────────────────────────────

def _print_results(result: CycleResult, context: AnticipationContext) -> None:
    """Render the ranked signal table, failures and the weekly digest."""
    if not result.prioritized_signals:
        console.print("\n[green]Nothing needs your attention.[/green]")
    else:
        table = Table(title="Prioritized Signals", show_lines=True, border_style="bright_black")
        table.add_column("#",        style="dim",  width=3,  justify="right")
        table.add_column("Severity", width=10,     justify="center")
        table.add_column("Title",    style="bold", min_width=32)
        table.add_column("Domain",   style="dim",  width=16)
        table.add_column("Source",   style="dim",  min_width=18)

        for i, s in enumerate(result.prioritized_signals, 1):
            color = _SEVERITY_COLORS.get(s.severity.value, "dim")
            table.add_row(
                str(i),
                f"[{color}]{s.severity.value}[/{color}]",
                escape(s.title),
                s.domain.value,
                s.source,
            )

        console.print()
        console.print(table)

    if result.services_failed:
        console.print(f"\n[bold red]✗  Failed detectors:[/bold red] {', '.join(result.services_failed)}")

    console.rule("[bold]Weekly digest[/bold]")
    console.print(build_weekly_digest(context.historical_patterns))
    console.print(
        f"\n[dim]cycle: {result.cycle_id}  "
        f"({len(result.signals)} raw, {len(result.prioritized_signals)} prioritized, "
        f"{result.run_duration_ms:.0f}ms)[/dim]\n"
    )


# ── Entry point ───────────────────────────────────────────────────────────────

def _make_llm() -> LLMClient | None:
    if not os.environ.get("OPENROUTER_API_KEY"):
        return None
    return OpenRouterClient(os.environ.get("INSIGHT_MODEL", DEFAULT_INSIGHT_MODEL))


async def _run(fixture: pathlib.Path) -> None:
    with open(fixture) as f:
        context = AnticipationContext.model_validate(json.load(f))

    engine = AnticipationEngine()
    for detector in default_detectors(llm=_make_llm()):
        engine.register(detector)

    detector_names = [d.name for d in engine.detectors]
    display = LiveDisplay(detector_names)
    event_queue: asyncio.Queue = asyncio.Queue()

    console.rule("[bold]Signal Engine[/bold]")
    console.print(f"  now        [cyan]{context.day_of_week}, {context.today} {context.current_time} UTC[/cyan]")
    console.print(f"  detectors  [cyan]{len(detector_names)} registered[/cyan]")
    console.print()

    with display.make_live() as live:
        cycle = asyncio.create_task(
            engine.run_cycle(context, event_queue=event_queue)
        )
        consumer = asyncio.create_task(
            display.consume(event_queue, live)
        )

        result = await cycle
        await event_queue.put(None)   # sentinel: tell consumer to stop
        await consumer

    _print_results(result, context)


def main() -> None:
    fixture = pathlib.Path(sys.argv[1]) if len(sys.argv) > 1 else _FIXTURE
    asyncio.run(_run(fixture))


if __name__ == "__main__":
    main()
