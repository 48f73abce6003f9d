"""Main Typer application, the entry point for the ``stampede`` CLI."""

from __future__ import annotations

import typer

from stampede import __version__
from stampede.cli.run import run_cmd

app = typer.Typer(
    name="stampede",
    help="Hammer an HTTP endpoint with concurrent GET requests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Send GET requests to a URL and report the results.")(run_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"stampede {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Stampede: concurrent HTTP GET load generator."""
