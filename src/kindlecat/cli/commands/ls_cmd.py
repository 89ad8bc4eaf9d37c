# ABOUTME: The `kindlecat ls` command for listing and searching cataloged books.
# ABOUTME: Supports kana-insensitive title search, collection filter, sort order, and paging.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kindlecat.cli.common import build_catalog, fail
from kindlecat.cli.options import json_option, source_options
from kindlecat.core.query import DEFAULT_LIMIT, SORT_CHOICES, SORT_TITLE_ASC, BookQuery
from kindlecat.errors import KindlecatError

console = Console()


@click.command("ls")
@source_options
@click.option("--search", "-s", default=None, help="Match titles containing this text.")
@click.option("--collection", "-c", default=None, help="Only books in this collection.")
@click.option(
    "--sort",
    type=click.Choice(SORT_CHOICES),
    default=SORT_TITLE_ASC,
    show_default=True,
    help="Sort order.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=DEFAULT_LIMIT,
    show_default=True,
    help="Maximum number of books to show.",
)
@click.option(
    "--offset",
    type=click.IntRange(min=0),
    default=0,
    help="Number of matching books to skip.",
)
@json_option
def ls(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
    search: str | None,
    collection: str | None,
    sort: str,
    limit: int,
    offset: int,
    json_output: bool,
) -> None:
    """List books in the Kindle library."""
    catalog = build_catalog(xml_path, db_path, cache_dir, state_file)
    query = BookQuery(
        search=search, collection=collection, sort=sort, limit=limit, offset=offset
    )
    try:
        page = catalog.books(query)
    except KindlecatError as exc:
        fail(console, exc)

    if json_output:
        data = {
            "books": [book.to_dict() for book in page.books],
            "total_count": page.total_count,
            "has_more": page.has_more,
        }
        click.echo(json_lib.dumps(data, indent=2, ensure_ascii=False))
        return

    if not page.books:
        console.print("[yellow]No books found.[/yellow]")
        return

    table = Table()
    table.add_column("ASIN", style="dim", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Collections")

    for book in page.books:
        table.add_row(
            book.asin,
            book.title,
            book.author,
            ", ".join(book.collections) or "[dim]-[/dim]",
        )

    console.print(table)
    shown = f"{offset + 1}-{offset + len(page.books)}"
    console.print(f"\n[dim]{shown} of {page.total_count} book(s)[/dim]")
    if page.has_more:
        console.print(f"[dim]More results: --offset {offset + len(page.books)}[/dim]")
