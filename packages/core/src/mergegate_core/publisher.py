"""PR creation stage: resolve branch, template, base and title, then open the PR."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

from mergegate_core.config import Config
from mergegate_core.errors import PrTemplateMissing
from mergegate_core.gh.git import current_branch, repo_root
from mergegate_core.hosts.base import BaseHost

console = Console()
logger = logging.getLogger(__name__)

PR_TEMPLATE_CANDIDATES = [
    ".github/pull_request_template.md",
    ".github/PULL_REQUEST_TEMPLATE.md",
    "pull_request_template.md",
    "PULL_REQUEST_TEMPLATE.md",
]
DEFAULT_PR_BASE = "main"
DEFAULT_PR_TITLE = "chore: verifier run"


def resolve_pr_template_path(root: Path) -> Path | None:
    for candidate in PR_TEMPLATE_CANDIDATES:
        path = Path(root) / candidate
        if path.is_file():
            return path
    return None


def resolve_pr_base(config: Config, host: BaseHost) -> str:
    """Configured base, else the host's default branch, else ``main``."""
    configured = config.get("verifier.pr.base")
    if configured and configured.strip():
        return configured.strip()
    detected = host.default_branch()
    if detected and detected.strip():
        return detected.strip()
    logger.warning("Could not detect the default branch; falling back to %s", DEFAULT_PR_BASE)
    return DEFAULT_PR_BASE


def resolve_pr_title(config: Config) -> str:
    configured = config.get("verifier.pr.title")
    if configured and configured.strip():
        return configured.strip()
    return DEFAULT_PR_TITLE


def extract_pr_url(output: str) -> str | None:
    """First http(s) token in the output, with trailing punctuation trimmed."""
    for token in output.split():
        if token.startswith("https://") or token.startswith("http://"):
            return token.strip("),;")
    return None


def create_pull_request_stage(directory: Path, config: Config, host: BaseHost) -> str | None:
    """Open a PR for the current branch and return its URL when one was printed.

    Fails on a detached HEAD, a missing PR template or an unauthenticated host;
    a missing URL in the host output is only logged.
    """
    console.print("\n[bold]==> PR creation[/bold]")

    root = repo_root(directory)
    branch = current_branch(directory)
    template = resolve_pr_template_path(root)
    if template is None:
        raise PrTemplateMissing(PR_TEMPLATE_CANDIDATES)
    base = resolve_pr_base(config, host)
    title = resolve_pr_title(config)

    host.ensure_authenticated()
    output = host.create_pull_request(base=base, head=branch, title=title, body_file=template)

    url = extract_pr_url(output)
    if url:
        console.print(f"PR created: {url}", markup=False, highlight=False)
    else:
        logger.warning("No PR URL found in host output")
        console.print(output.strip() or "PR created.", markup=False, highlight=False)
    return url
