# ABOUTME: The `kindlecat info` command for displaying one book's details.
# ABOUTME: Looks the book up by ASIN and shows every field, including collections.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kindlecat.cli.common import build_catalog, fail
from kindlecat.cli.options import json_option, source_options
from kindlecat.errors import KindlecatError
from kindlecat.metadata.asin import is_valid_asin

console = Console()


@click.command("info")
@click.argument("asin")
@source_options
@json_option
def info(
    asin: str,
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    json_output: bool,
) -> None:
    """Show details for the book with the given ASIN."""
    asin = asin.strip().upper()
    if not is_valid_asin(asin):
        console.print(f"[red]'{asin}' is not a valid ASIN (10 letters or digits).[/red]")
        raise SystemExit(1)

    catalog = build_catalog(xml_path, db_path, cache_dir, state_file)
    try:
        book = catalog.book(asin)
    except KindlecatError as exc:
        fail(console, exc)

    if book is None:
        console.print(f"[red]Book {asin} not found.[/red]")
        raise SystemExit(1)

    if json_output:
        click.echo(json_lib.dumps(book.to_dict(), indent=2, ensure_ascii=False))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold", width=14)
    table.add_column("Value")

    table.add_row("ASIN", book.asin)
    table.add_row("Title", book.title)
    table.add_row("Author", book.author)
    if book.publisher:
        table.add_row("Publisher", book.publisher)
    if book.publication_date:
        table.add_row("Published", book.publication_date)
    if book.purchase_date:
        table.add_row("Purchased", book.purchase_date)
    if book.collections:
        table.add_row("Collections", ", ".join(book.collections))
    if book.tags:
        table.add_row("Tags", ", ".join(book.tags))
    if book.cover_url:
        table.add_row("Cover", book.cover_url)

    console.print(table)
