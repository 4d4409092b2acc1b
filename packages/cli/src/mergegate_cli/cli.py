"""CLI entry point for mergegate.

Commands:
  verify  run the full gate: tests, coverage, static checks, PR, review gate
  check   run only the static checks against a working tree
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml

from mergegate_cli.commands.check import check_cmd
from mergegate_cli.commands.verify import verify_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("mergegate"),
    prog_name="mergegate",
)
@click.option(
    "--config",
    "config_path",
    default=".mergegate.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MERGEGATE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Gate a change on tests, coverage, hygiene and review before merging it."""
    from mergegate_core.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.UsageError(f"Could not load {config_path}: {e}")


main.add_command(verify_cmd)
main.add_command(check_cmd)
