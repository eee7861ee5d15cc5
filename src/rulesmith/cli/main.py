"""Rulesmith CLI entry point."""

import typer

from rulesmith import __version__
from rulesmith.cli.analyze_cmd import analyze
from rulesmith.cli.estimate_cmd import estimate
from rulesmith.cli.output import configure_logging

app = typer.Typer(
    name="rulesmith",
    help="Generate fraud-detection rules from transaction data",
    no_args_is_help=True,
)

# Register subcommands
app.command()(analyze)
app.command()(estimate)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rulesmith {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate fraud-detection rules from transaction data."""
    configure_logging(verbose)
