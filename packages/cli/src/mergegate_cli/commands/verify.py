"""verify command: run the full merge-readiness pipeline."""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import click
from rich.console import Console

from mergegate_cli.auth import resolve_github_token
from mergegate_core.errors import MergeGateError
from mergegate_core.pipeline import run_pipeline

console = Console()


def _install_stop_handler(stop_event: threading.Event):
    """Route SIGTERM to stop_event so the review gate exits between polls."""

    def _handle(signum, frame):
        stop_event.set()

    return signal.signal(signal.SIGTERM, _handle)


@click.command("verify")
@click.option(
    "--dir",
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Working tree to verify.",
)
@click.option("--test-command", default=None, help="Test command. Overrides verifier.test_command.")
@click.option("--coverage-command", default=None, help="Coverage command. Overrides verifier.coverage_command.")
@click.option(
    "--coverage-min",
    type=float,
    default=None,
    help="Minimum coverage percentage. Overrides verifier.coverage_min.",
)
@click.pass_context
def verify_cmd(
    ctx: click.Context,
    directory: Path,
    test_command: str | None,
    coverage_command: str | None,
    coverage_min: float | None,
):
    """Run tests, coverage and static checks, open a PR, then wait for review and merge."""
    config = ctx.obj["config"]

    token = None
    host_name = config.get("verifier.host")
    if host_name and host_name.strip().lower() == "api":
        token = resolve_github_token()
        if not token:
            raise click.UsageError(
                "GitHub token not found. Set GITHUB_TOKEN or run `gh auth login` to use verifier.host: api."
            )

    stop_event = threading.Event()
    previous_handler = _install_stop_handler(stop_event)
    try:
        summary = run_pipeline(
            directory,
            config,
            token=token,
            test_command=test_command,
            coverage_command=coverage_command,
            coverage_min=coverage_min,
            stop_event=stop_event,
        )
    except MergeGateError as e:
        raise click.ClickException(e.message)
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    if summary.merged:
        console.print(f"[bold green]✓ Merged[/bold green] {summary.pr_url or ''}".rstrip())
    else:
        console.print("[bold green]✓ Verification passed[/bold green]")
