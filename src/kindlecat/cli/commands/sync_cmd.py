# ABOUTME: The `kindlecat sync` command: rebuild the catalog and report statistics.
# ABOUTME: Shows per-phase timings, dedup/invalid counts, and record-level diagnostics.

import json as json_lib
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kindlecat.cli.common import build_catalog, fail
from kindlecat.cli.options import json_option, source_options
from kindlecat.core.pipeline import IntegrationResult
from kindlecat.errors import KindlecatError

console = Console()


@click.command("sync")
@source_options
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="Ignore the remembered cache location and search again.",
)
@json_option
def sync(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    refresh: bool,
    json_output: bool,
) -> None:
    """Read the Kindle cache files and report what was cataloged."""
    catalog = build_catalog(xml_path, db_path, cache_dir, state_file, refresh=refresh)
    try:
        result = catalog.result()
    except KindlecatError as exc:
        fail(console, exc)

    if json_output:
        _print_json(result)
        return

    _print_rich(result)


def _print_json(result: IntegrationResult) -> None:
    data = {
        "path_source": result.path_source,
        "statistics": asdict(result.statistics),
        "errors": result.errors,
    }
    click.echo(json_lib.dumps(data, indent=2))


def _print_rich(result: IntegrationResult) -> None:
    stats = result.statistics

    table = Table(title="Sync Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Books read", str(stats.xml_book_count))
    table.add_row("Books cataloged", str(stats.final_book_count))
    table.add_row("Duplicates", str(stats.duplicate_book_count))
    table.add_row("Invalid", str(stats.invalid_book_count))
    table.add_row("Collections", str(stats.final_collection_count))
    table.add_row("Associations", str(stats.association_count))
    console.print(table)

    timings = Table(title="Phase Timings (ms)")
    timings.add_column("Phase", style="bold")
    timings.add_column("ms", justify="right")
    for phase, elapsed in asdict(stats.phase_timings).items():
        timings.add_row(phase, f"{elapsed:.1f}")
    timings.add_row("total", f"{stats.total_processing_ms:.1f}")
    console.print(timings)

    console.print(
        f"\n[bold]{stats.final_book_count} book(s) cataloged[/bold] "
        f"[dim](paths: {result.path_source})[/dim]"
    )

    if result.errors:
        console.print(f"\n[yellow]{len(result.errors)} record(s) skipped:[/yellow]")
        for message in result.errors:
            console.print(f"  [dim]{message}[/dim]")
