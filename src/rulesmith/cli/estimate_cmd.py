"""rulesmith estimate -- show the pre-flight token estimate for a dataset."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from rulesmith.cli.output import output_json, render_estimate
from rulesmith.estimation.tokens import estimate_with_config
from rulesmith.models.config import find_project_root, load_project_config

console = Console(stderr=True)


def estimate(
    dataset_path: str = typer.Argument(..., help="Path to the transaction CSV file"),
    format_json: bool = typer.Option(False, "--json", help="Output pure JSON to stdout"),
) -> None:
    """Estimate tokens, cost, and sampling for a dataset."""
    filepath = Path(dataset_path)
    if not filepath.is_file():
        console.print(f"[bold red]File not found:[/bold red] {dataset_path}")
        raise typer.Exit(code=1)

    project = load_project_config(find_project_root(filepath))
    result = estimate_with_config(filepath.read_text(encoding="utf-8"), project.estimator)

    if format_json:
        output_json(result)
    else:
        render_estimate(result, Console())
