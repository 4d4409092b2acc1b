"""check command: run the static checks on their own."""

from __future__ import annotations

from pathlib import Path

import click

from mergegate_core.errors import MergeGateError
from mergegate_core.settings import resolve_static_check_settings
from mergegate_core.static_checks import verify_static_checks


@click.command("check")
@click.option(
    "--dir",
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Working tree to scan.",
)
@click.pass_context
def check_cmd(ctx: click.Context, directory: Path):
    """Scan for TODO markers, verbose comments and duplicate blocks."""
    try:
        settings = resolve_static_check_settings(ctx.obj["config"])
        verify_static_checks(directory, settings)
    except MergeGateError as e:
        raise click.ClickException(e.message)
