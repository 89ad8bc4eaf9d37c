# ABOUTME: The `kindlecat paths` command group for managing the Kindle cache location.
# ABOUTME: Detects, sets, shows, and clears the remembered cache directory.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kindlecat.cli.common import build_resolver
from kindlecat.cli.options import json_option, source_options
from kindlecat.core.paths import PathResolution

console = Console()


def _resolution_dict(resolution: PathResolution) -> dict[str, object]:
    paths = resolution.paths
    return {
        "success": resolution.success,
        "source": resolution.source,
        "xml_path": str(paths.xml_path) if paths else None,
        "db_path": str(paths.db_path) if paths else None,
        "base_dir": str(paths.base_dir) if paths else None,
        "searched_paths": [str(p) for p in resolution.searched_paths],
        "error": resolution.error,
    }


def _report(resolution: PathResolution, json_output: bool) -> None:
    if json_output:
        click.echo(json_lib.dumps(_resolution_dict(resolution), indent=2))
    elif resolution.success and resolution.paths is not None:
        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column("Field", style="bold", width=10)
        table.add_column("Value")
        table.add_row("Source", resolution.source)
        table.add_row("Directory", str(resolution.paths.base_dir))
        table.add_row("XML", str(resolution.paths.xml_path))
        table.add_row("DB", str(resolution.paths.db_path))
        console.print(table)
    else:
        console.print(f"[red]{resolution.error}[/red]")
        if resolution.searched_paths:
            console.print("[dim]Searched:[/dim]")
            for searched in resolution.searched_paths:
                console.print(f"  [dim]{searched}[/dim]")

    if not resolution.success:
        raise SystemExit(1)


@click.group("paths")
def paths() -> None:
    """Locate and remember the Kindle cache directory."""


@paths.command("detect")
@source_options
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="Ignore the remembered location and search again.",
)
@json_option
def detect(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    refresh: bool,
    json_output: bool,
) -> None:
    """Find the Kindle cache files."""
    resolver = build_resolver(xml_path, db_path, cache_dir, state_file)
    _report(resolver.resolve(force_refresh=refresh), json_output)


@paths.command("set")
@click.argument("directory")
@source_options
@json_option
def set_path(
    directory: str,
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    json_output: bool,
) -> None:
    """Validate DIRECTORY as the Kindle cache directory and remember it."""
    resolver = build_resolver(xml_path, db_path, cache_dir, state_file)
    _report(resolver.set_manual_path(directory), json_output)


@paths.command("show")
@source_options
@json_option
def show(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    json_output: bool,
) -> None:
    """Show the remembered cache directory, if any."""
    resolver = build_resolver(xml_path, db_path, cache_dir, state_file)
    config = resolver.current_configuration()

    if json_output:
        data = None
        if config is not None:
            data = {
                "kindle_cache_path": str(config.kindle_cache_path),
                "last_validated": config.last_validated.isoformat(),
                "source": config.source,
            }
        click.echo(json_lib.dumps(data, indent=2))
        return

    if config is None:
        console.print("[yellow]No remembered cache directory.[/yellow]")
        return

    console.print(f"[bold]{config.kindle_cache_path}[/bold]")
    console.print(
        f"[dim]source: {config.source}, validated {config.last_validated.isoformat()}[/dim]"
    )


@paths.command("clear")
@source_options
def clear(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
) -> None:
    """Forget the remembered cache directory."""
    resolver = build_resolver(xml_path, db_path, cache_dir, state_file)
    resolver.clear_configuration()
    console.print("[green]Cleared remembered cache directory.[/green]")
