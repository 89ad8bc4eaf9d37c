# ABOUTME: The `kindlecat collections` command for listing collection names.
# ABOUTME: Shows each collection alongside how many cataloged books belong to it.

import json as json_lib
from collections import Counter
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kindlecat.cli.common import build_catalog, fail
from kindlecat.cli.options import json_option, source_options
from kindlecat.errors import KindlecatError

console = Console()


@click.command("collections")
@source_options
@json_option
def collections(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    json_output: bool,
) -> None:
    """List the collections that contain at least one book."""
    catalog = build_catalog(xml_path, db_path, cache_dir, state_file)
    try:
        result = catalog.result()
    except KindlecatError as exc:
        fail(console, exc)

    counts = Counter(name for book in result.books for name in book.collections)
    names = catalog.collection_names()

    if json_output:
        data = [{"name": name, "book_count": counts[name]} for name in names]
        click.echo(json_lib.dumps(data, indent=2, ensure_ascii=False))
        return

    if not names:
        console.print("[yellow]No collections found.[/yellow]")
        return

    table = Table()
    table.add_column("Collection", style="bold")
    table.add_column("Books", justify="right")
    for name in names:
        table.add_row(name, str(counts[name]))

    console.print(table)
    console.print(f"\n[dim]{len(names)} collection(s)[/dim]")
