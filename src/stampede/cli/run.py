"""``stampede run``: fire GET requests at a URL and print the report."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from stampede._internal.config import RunConfig, load_settings
from stampede._internal.errors import ConfigError, StampedeError
from stampede.cli.report import render_report, write_json_report
from stampede.engine.runner import LoadTestRunner

console = Console(stderr=True)

USAGE = "Usage: stampede run --url <URL> --requests <NUM> --concurrency <NUM>"


def run_cmd(
    url: str = typer.Option(
        ...,
        "--url",
        "-u",
        help="URL of the service under test.",
    ),
    requests: int = typer.Option(
        ...,
        "--requests",
        "-n",
        help="Total number of requests to send.",
    ),
    concurrency: int = typer.Option(
        ...,
        "--concurrency",
        "-c",
        help="Number of simultaneous requests (capped at --requests).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Per-request timeout in seconds (default: $STAMPEDE_TIMEOUT or 30).",
    ),
    progress_interval: int | None = typer.Option(
        None,
        "--progress-interval",
        help="Print progress every N completed requests (default: 100).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Also write the report as JSON to this file.",
    ),
    fail_under: float | None = typer.Option(
        None,
        "--fail-under",
        help="Exit non-zero if the success rate (percent) is below this value.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as JSON lines.",
    ),
) -> None:
    """Send GET requests with a fixed concurrency and report the outcome."""
    try:
        config = RunConfig.create(
            url,
            requests,
            concurrency,
            timeout=timeout,
            progress_interval=progress_interval,
            settings=load_settings(),
        )
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        console.print(USAGE, markup=False)
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]URL:[/bold]         {config.url}\n"
            f"[bold]Requests:[/bold]    {config.requests}\n"
            f"[bold]Concurrency:[/bold] {config.concurrency}\n"
            f"[bold]Timeout:[/bold]     {config.timeout}s",
            title="Stampede",
            border_style="cyan",
        )
    )

    def _on_progress(completed: int, total: int) -> None:
        console.print(f"Progress: {completed}/{total} requests completed", markup=False)

    runner = LoadTestRunner(
        config,
        on_progress=_on_progress,
        log_level=logging.DEBUG if verbose else logging.WARNING,
        json_logs=json_logs,
    )
    try:
        report = runner.run()
    except StampedeError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    # Report on stdout, banner and progress on stderr
    render_report(report, Console())

    if output is not None:
        written = write_json_report(report, output)
        console.print(f"Report written to {written}", markup=False)

    if runner.interrupted:
        console.print("[yellow]Interrupted: report covers completed requests only.[/yellow]")
        raise typer.Exit(code=130)

    if report.aborted:
        console.print("[red]Run aborted before all requests completed.[/red]")
        raise typer.Exit(code=1)

    if fail_under is not None and report.success_rate < fail_under:
        console.print(
            f"[red]FAIL:[/red] Success rate {report.success_rate:.2f}% "
            f"is below threshold {fail_under:.2f}%"
        )
        raise typer.Exit(code=1)
