# ABOUTME: The `kindlecat health` command: a quick check that the cache files can be found.
# ABOUTME: Runs path resolution only and exits non-zero when it fails.

import json as json_lib
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console

from kindlecat.cli.common import build_resolver
from kindlecat.cli.options import json_option, source_options
from kindlecat.core.query import health_check

console = Console()


@click.command("health")
@source_options
@json_option
def health(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    json_output: bool,
) -> None:
    """Check whether the Kindle cache files can be located."""
    report = health_check(build_resolver(xml_path, db_path, cache_dir, state_file))

    if json_output:
        click.echo(json_lib.dumps(asdict(report), indent=2))
    elif report.is_healthy:
        console.print(
            f"[green]Healthy[/green] [dim](path detection {report.path_detection_ms:.1f} ms)[/dim]"
        )
    else:
        console.print("[red]Unhealthy[/red]")
        for message in report.errors:
            console.print(f"  [red]{message}[/red]")

    if not report.is_healthy:
        raise SystemExit(1)
