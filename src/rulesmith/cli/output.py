"""Rich terminal output layer for estimates, live events, and rules.

Provides the estimate table, one-line rendering of stream events,
the generated-rules table, and JSON output for CI consumption.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from pydantic import BaseModel
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from rulesmith.streaming.events import (
    Completed,
    Error,
    LifecycleEvent,
    Status,
    TextDelta,
    Unrecognized,
)

if TYPE_CHECKING:
    from rulesmith.models.result import AnalysisPayload, TokenEstimate
    from rulesmith.streaming.events import StreamEvent


# Event styling map: event kind -> Rich markup style
_EVENT_STYLES: dict[str, str] = {
    "status": "bold blue",
    "completed": "bold green",
    "error": "bold red",
}


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through a Rich handler on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def render_estimate(estimate: TokenEstimate, console: Console) -> None:
    """Render a key-value table for a TokenEstimate.

    Args:
        estimate: The estimate to display.
        console: Rich Console for output.
    """
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row(
        "Records",
        f"{estimate.processed_record_count}/{estimate.original_record_count}",
    )
    table.add_row(
        "Tokens",
        f"{estimate.processed_token_count}/{estimate.original_token_count}",
    )
    sampling = "[yellow]applied[/yellow]" if estimate.sampling_applied else "not needed"
    table.add_row("Sampling", sampling)
    table.add_row("Est. cost", f"${estimate.estimated_cost:.4f}")

    console.print()
    console.print(table)


def format_event(event: StreamEvent) -> str | None:
    """Format a stream event as one line of Rich markup.

    Text deltas return None; they are too chatty for a log line.
    """
    style = _EVENT_STYLES.get(event.kind, "dim")
    if isinstance(event, Status):
        body = f"step {event.step}: {event.text or event.status}"
    elif isinstance(event, TextDelta):
        return None
    elif isinstance(event, Completed):
        body = event.text
    elif isinstance(event, Error):
        body = f"ERROR: {event.text}"
    elif isinstance(event, (LifecycleEvent, Unrecognized)):
        body = event.text
    else:
        body = repr(event)
    return f"[{style}]\\[{event.kind}][/{style}] {escape(body)}"


def render_event(event: StreamEvent, console: Console) -> None:
    """Print one stream event, skipping text deltas."""
    line = format_event(event)
    if line is not None:
        console.print(line)


def render_rules(payload: AnalysisPayload, console: Console) -> None:
    """Render the generated rules as a table.

    Args:
        payload: Analysis payload holding the rules.
        console: Rich Console for output.
    """
    from rulesmith.rules import normalize_decision, severity_for

    if not payload.rules:
        console.print("[dim]No rules returned.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAD, show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Rule", style="bold")
    table.add_column("Risk", justify="right")
    table.add_column("Severity")
    table.add_column("Decision")
    table.add_column("Condition")

    for index, rule in enumerate(payload.rules, 1):
        table.add_row(
            str(index),
            escape(rule.name),
            f"{rule.risk_score:g}",
            severity_for(rule.risk_score),
            normalize_decision(rule.decision),
            escape(rule.condition),
        )

    console.print()
    console.print(table)


def output_json(result: BaseModel) -> None:
    """Write a result model as pure JSON to stdout.

    No Rich markup, no color, no extra text. Suitable for
    CI pipeline consumption and machine parsing.
    """
    sys.stdout.write(result.model_dump_json(indent=2, by_alias=True))
    sys.stdout.write("\n")
