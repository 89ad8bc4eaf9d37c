# ABOUTME: Shared Click options for kindlecat CLI commands.
# ABOUTME: Source-file overrides (also read from the environment) and settings assembly.

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from kindlecat.config import DEFAULT_STATE_PATH, CatalogSettings

xml_path_option = click.option(
    "--xml-path",
    type=click.Path(path_type=Path),
    envvar="KINDLE_XML_PATH",
    default=None,
    help="Explicit path to KindleSyncMetadataCache.xml (env: KINDLE_XML_PATH).",
)

db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    envvar="KINDLE_DB_PATH",
    default=None,
    help="Explicit path to synced_collections.db (env: KINDLE_DB_PATH).",
)

cache_dir_option = click.option(
    "--cache-dir",
    type=click.Path(path_type=Path),
    envvar="KINDLE_CACHE_PATH",
    default=None,
    help="Kindle cache directory to try first (env: KINDLE_CACHE_PATH).",
)

state_file_option = click.option(
    "--state-file",
    type=click.Path(path_type=Path),
    envvar="KINDLECAT_STATE",
    default=None,
    help=f"Where the last resolved path is remembered (default: {DEFAULT_STATE_PATH}).",
)

json_option = click.option(
    "--json",
    "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)


def source_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Apply all source-location options to a command."""
    for option in (state_file_option, cache_dir_option, db_path_option, xml_path_option):
        func = option(func)
    return func


def build_settings(
    xml_path: Path | None,
    db_path: Path | None,
    cache_dir: Path | None,
    state_file: Path | None,
) -> CatalogSettings:
    """Environment settings with any command-line overrides applied on top."""
    settings = CatalogSettings.from_env()
    overrides: dict[str, Any] = {}
    if xml_path is not None:
        overrides["xml_override"] = xml_path
    if db_path is not None:
        overrides["db_override"] = db_path
    if cache_dir is not None:
        overrides["cache_dir_override"] = cache_dir
    if state_file is not None:
        overrides["state_path"] = state_file
    return replace(settings, **overrides)
