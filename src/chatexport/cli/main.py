"""CLI entry point for chatexport."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from chatexport import __version__
from chatexport.cli.export_cmd import export_cmd, render_cmd, scan_cmd
from chatexport.core.config import config_path, load_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="chatexport")
@click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config.yaml (default: $CHATEXPORT_HOME/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """chatexport — turn captured AI chat conversations into documents."""
    config = load_config(config_file or config_path())
    level = logging.DEBUG if verbose else getattr(
        logging, str(config.get("log_level", "warning")).upper(), logging.WARNING,
    )
    logging.basicConfig(level=level, format=LOG_FORMAT)
    ctx.obj = {"config": config}


cli.add_command(export_cmd)
cli.add_command(render_cmd)
cli.add_command(scan_cmd)


if __name__ == "__main__":
    cli()
