"""rulesmith analyze -- submit a dataset and display the generated rules.

Loads and validates the dataset, resolves the client configuration,
runs either the single-call or the streaming path, renders live events
to stderr, and exits with a code reflecting success.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from rulesmith.cli.output import (
    output_json,
    render_estimate,
    render_event,
    render_rules,
)
from rulesmith.client import AnalysisClient
from rulesmith.models.config import (
    ConfigurationError,
    find_project_root,
    load_project_config,
)
from rulesmith.models.dataset import validate_dataset
from rulesmith.models.result import QuickAnalysisResult, RunResult

console = Console(stderr=True)

# Exit code mapping
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def analyze(
    dataset_path: str = typer.Argument(..., help="Path to the transaction CSV file"),
    deep: bool = typer.Option(False, "--deep", help="Use the streaming deep-analysis path"),
    instructions: str = typer.Option("", "--instructions", "-i", help="Extra guidance for the analysis"),
    format_json: bool = typer.Option(False, "--json", help="Output pure JSON to stdout"),
) -> None:
    """Generate fraud-detection rules for a transaction dataset."""
    filepath = Path(dataset_path)
    if not filepath.is_file():
        console.print(f"[bold red]File not found:[/bold red] {dataset_path}")
        raise typer.Exit(code=EXIT_FAILURE)

    text = filepath.read_text(encoding="utf-8")
    valid, error = validate_dataset(text)
    if not valid:
        console.print(f"[bold red]Invalid dataset:[/bold red] {error}")
        raise typer.Exit(code=EXIT_FAILURE)

    project = load_project_config(find_project_root(filepath))
    try:
        client = AnalysisClient(project.client, project.estimator)
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    result = asyncio.run(
        _analyze_async(
            client,
            text,
            deep=deep,
            instructions=instructions,
            file_name=filepath.name,
            format_json=format_json,
        )
    )

    if format_json:
        output_json(result)
    else:
        _render_result(result)

    if not result.success:
        raise typer.Exit(code=EXIT_FAILURE)


async def _analyze_async(
    client: AnalysisClient,
    text: str,
    *,
    deep: bool,
    instructions: str,
    file_name: str,
    format_json: bool,
) -> QuickAnalysisResult | RunResult:
    """Async implementation of the analyze command."""
    if not deep:
        return await client.analyze(text, instructions, file_name=file_name)

    def on_event(event) -> None:
        if not format_json:
            render_event(event, console)

    return await client.analyze_stream(
        text, instructions, observer=on_event, file_name=file_name
    )


def _render_result(result: QuickAnalysisResult | RunResult) -> None:
    output_console = Console()
    if isinstance(result, QuickAnalysisResult) and result.estimate is not None:
        render_estimate(result.estimate, output_console)

    if not result.success:
        output_console.print(f"[bold red]Analysis failed:[/bold red] {result.error}")
        return

    if result.data is not None:
        render_rules(result.data, output_console)
    else:
        output_console.print("[dim]Analysis completed without structured results.[/dim]")

    if isinstance(result, RunResult) and result.thread_id:
        output_console.print(f"[dim]Thread: {result.thread_id}[/dim]")
