"""Merge-readiness pipeline orchestration.

Stages run strictly in order and the first hard failure aborts the run:

  tests → coverage → static checks → PR creation → review gate

Each stage raises a MergeGateError subclass on failure; the CLI renders it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from mergegate_core.config import Config
from mergegate_core.coverage import coverage_warn_message, extract_coverage_percent, is_below
from mergegate_core.errors import CoverageBelowThreshold, CoverageUnparseable, InvalidConfigValue
from mergegate_core.gh.git import repo_root_or_dir
from mergegate_core.hosts.base import BaseHost
from mergegate_core.publisher import create_pull_request_stage
from mergegate_core.review_gate import run_review_gate
from mergegate_core.runner import run_stage_command
from mergegate_core.settings import (
    VerifierSettings,
    resolve_review_gate_settings,
    resolve_static_check_settings,
    resolve_verifier_settings,
)
from mergegate_core.static_checks import verify_static_checks

console = Console()
logger = logging.getLogger(__name__)

HOST_CHOICES = ("gh", "api")


@dataclass
class PipelineSummary:
    """What a successful run produced, for the CLI to report."""

    coverage: float
    pr_url: str | None = None
    merged: bool = False


def build_host(config: Config, root: Path, token: str | None = None) -> BaseHost:
    """Instantiate the review host selected by ``verifier.host`` (gh by default)."""
    value = config.get("verifier.host")
    name = value.strip().lower() if value and value.strip() else "gh"
    if name not in HOST_CHOICES:
        raise InvalidConfigValue("verifier.host", name, "expected gh or api")

    if name == "gh":
        from mergegate_core.hosts.gh_cli import GhCliHost

        return GhCliHost(root)

    from mergegate_core.hosts.github_api import GithubApiHost

    return GithubApiHost(root, token=token)


def run_tests_stage(directory: Path, settings: VerifierSettings) -> None:
    run_stage_command("Tests", directory, settings.test_command, "verifier.test_command")
    console.print("[green]Tests OK.[/green]")


def run_coverage_stage(directory: Path, settings: VerifierSettings) -> float:
    output = run_stage_command("Coverage", directory, settings.coverage_command, "verifier.coverage_command")
    coverage = extract_coverage_percent(output)
    if coverage is None:
        raise CoverageUnparseable()
    if is_below(coverage, settings.coverage_min):
        raise CoverageBelowThreshold(coverage, settings.coverage_min)

    warning = coverage_warn_message(coverage, settings.coverage_warn)
    if warning:
        console.print(f"[yellow]{warning}[/yellow]")
    console.print(f"[green]Coverage OK: {coverage:.2f}% (>= {settings.coverage_min:.2f}%)[/green]")
    return coverage


def run_pipeline(
    directory: Path | str,
    config: Config,
    host: BaseHost | None = None,
    token: str | None = None,
    test_command: str | None = None,
    coverage_command: str | None = None,
    coverage_min: float | None = None,
    stop_event: threading.Event | None = None,
) -> PipelineSummary:
    """Run every stage against directory and return the run summary.

    All settings are resolved up front so a bad config value fails before any
    command runs.
    """
    directory = Path(directory)
    root = repo_root_or_dir(directory)

    verifier = resolve_verifier_settings(
        config, root, test_command=test_command, coverage_command=coverage_command, coverage_min=coverage_min
    )
    static = resolve_static_check_settings(config)
    review = resolve_review_gate_settings(config)

    console.print(f"Verifier running in {directory}", markup=False, highlight=False)

    run_tests_stage(directory, verifier)
    coverage = run_coverage_stage(directory, verifier)
    verify_static_checks(directory, static)

    if host is None:
        host = build_host(config, root, token=token)
    pr_url = create_pull_request_stage(directory, config, host)
    merged = run_review_gate(host, review, pr_url=pr_url, stop_event=stop_event)

    logger.debug("Pipeline finished: coverage=%.2f merged=%s", coverage, merged)
    return PipelineSummary(coverage=coverage, pr_url=pr_url, merged=merged)
