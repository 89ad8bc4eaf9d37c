# ABOUTME: Helpers shared by kindlecat CLI commands.
# ABOUTME: Builds the catalog from CLI options and turns pipeline errors into clean exits.

from pathlib import Path
from typing import NoReturn

from rich.console import Console

from kindlecat.cli.options import build_settings
from kindlecat.core.catalog import KindleCatalog
from kindlecat.core.paths import PathResolver
from kindlecat.errors import KindlecatError, PathResolutionError, StoreLockedError


def build_resolver(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
) -> PathResolver:
    return PathResolver(build_settings(xml_path, db_path, cache_dir, state_file))


def build_catalog(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    *,
    refresh: bool = False,
) -> KindleCatalog:
    resolver = build_resolver(xml_path, db_path, cache_dir, state_file)
    return KindleCatalog(resolver, force_refresh=refresh)


def fail(console: Console, exc: KindlecatError) -> NoReturn:
    """Print a pipeline error with a hint for the user and exit with status 1."""
    console.print(f"[red]{exc}[/red]")
    if isinstance(exc, PathResolutionError):
        console.print(
            "[dim]Set the cache directory with `kindlecat paths set DIR` "
            "or pass --cache-dir.[/dim]"
        )
    elif isinstance(exc, StoreLockedError):
        console.print("[dim]The Kindle app may be syncing; try again in a moment.[/dim]")
    raise SystemExit(1) from exc
