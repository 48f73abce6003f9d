"""Terminal and JSON rendering of a finished ``Report``."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from stampede.metrics.models import ERROR_STATUS

if TYPE_CHECKING:
    from pathlib import Path

    from stampede.metrics.models import Report


def _status_label(code: int) -> str:
    return "Errors" if code == ERROR_STATUS else str(code)


def build_summary_table(report: Report) -> Table:
    """Build the headline table: timing, counts, success rate, throughput."""
    title = "Load Test Aborted" if report.aborted else "Load Test Report"
    table = Table(
        title=title,
        show_header=True,
        header_style="bold red" if report.aborted else "bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("URL", report.url)
    table.add_row("Concurrency", str(report.concurrency))
    table.add_row("Total Time", f"{report.total_time:.3f}s")
    table.add_row("Total Requests", f"{report.total_requests}/{report.expected_requests}")
    table.add_row("Status 200", str(report.success_requests))
    table.add_row("Success Rate", f"{report.success_rate:.2f}%")
    table.add_row("Requests/sec", f"{report.requests_per_second:.2f}")
    table.add_row("Latency min / avg", f"{report.latency.min:.1f}ms / {report.latency.avg:.1f}ms")
    table.add_row("Latency p50", f"{report.latency.p50:.1f}ms")
    table.add_row("Latency p95", f"{report.latency.p95:.1f}ms")
    table.add_row("Latency p99", f"{report.latency.p99:.1f}ms")
    table.add_row("Latency max", f"{report.latency.max:.1f}ms")
    return table


def build_status_table(report: Report) -> Table:
    """Build the status-code distribution table, errors labelled as such."""
    table = Table(
        title="Status Code Distribution",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("Status")
    table.add_column("Count", justify="right")
    table.add_column("Share", justify="right")

    for code, share in report.status_percentages().items():
        table.add_row(_status_label(code), str(report.status_codes[code]), f"{share:.2f}%")
    return table


def render_report(report: Report, console: Console | None = None) -> None:
    """Print the report tables, plus an error breakdown when there were errors.

    Args:
        report: Finished report.
        console: Console to print to. Defaults to stdout.
    """
    console = console or Console()
    console.print(build_summary_table(report))
    console.print(build_status_table(report))

    if report.errors_by_type:
        errors = Table(title="Errors by Type", show_header=True, header_style="bold red")
        errors.add_column("Type")
        errors.add_column("Count", justify="right")
        for error_type, count in report.errors_by_type.items():
            errors.add_row(error_type, str(count))
        console.print(errors)


def report_to_dict(report: Report) -> dict[str, object]:
    """Return a JSON-ready dict of the report, including derived figures."""
    data = asdict(report)
    # JSON object keys must be strings
    data["status_codes"] = {str(code): count for code, count in report.status_codes.items()}
    data["success_rate"] = report.success_rate
    data["requests_per_second"] = report.requests_per_second
    return data


def write_json_report(report: Report, path: Path) -> Path:
    """Write the report as indented JSON, creating parent directories.

    Returns:
        The path written to.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report_to_dict(report), indent=2) + "\n", encoding="utf-8")
    return path
