# ABOUTME: CLI package for kindlecat, built on Click.
# ABOUTME: Defines the root command group, logging flags, and registers subcommands.

from pathlib import Path

import click

from kindlecat.cli.commands import (
    collections_cmd,
    health_cmd,
    info_cmd,
    ls_cmd,
    paths_cmd,
    sync_cmd,
)
from kindlecat.logging_config import setup_logging, verbosity_to_level


@click.group()
@click.version_option(package_name="kindlecat")
@click.option("-v", "--verbose", count=True, help="More logging (-v info, -vv debug).")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write log records to this file.",
)
def cli(verbose: int, log_file: Path | None) -> None:
    """kindlecat - browse the Kindle for PC library cache."""
    setup_logging(verbosity_to_level(verbose), log_file)


cli.add_command(sync_cmd.sync)
cli.add_command(ls_cmd.ls)
cli.add_command(info_cmd.info)
cli.add_command(collections_cmd.collections)
cli.add_command(health_cmd.health)
cli.add_command(paths_cmd.paths)
