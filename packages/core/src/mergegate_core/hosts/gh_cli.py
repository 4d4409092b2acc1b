from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from mergegate_core.errors import AuthenticationRequired, MergeFailed, PrCreateFailed, PrViewFailed
from mergegate_core.gh.git import remote_default_branch
from mergegate_core.hosts.base import BaseHost
from mergegate_core.runner import CommandResult, capture

if TYPE_CHECKING:
    from mergegate_core.settings import MergeMethod

console = Console()
logger = logging.getLogger(__name__)

PR_VIEW_FIELDS = "url,number,reviews,reviewDecision,statusCheckRollup"


def _failure_message(action: str, result: CommandResult) -> str:
    trimmed = result.combined.strip()
    return f"{action} failed: {trimmed}" if trimmed else f"{action} failed."


class GhCliHost(BaseHost):
    """Review host backed by the GitHub CLI. Every call runs in the repo root."""

    def _gh(self, *args: str) -> CommandResult:
        return capture(["gh", *args], self.repo_root)

    def ensure_authenticated(self) -> None:
        result = self._gh("auth", "status")
        if result.ok:
            return
        trimmed = result.combined.strip()
        if trimmed:
            raise AuthenticationRequired(f"gh auth status failed: {trimmed}. Run `gh auth login`.")
        raise AuthenticationRequired("gh auth status failed. Run `gh auth login`.")

    def default_branch(self) -> str | None:
        # gh itself resolves the default branch from origin/HEAD, so ask git directly.
        return remote_default_branch(self.repo_root)

    def create_pull_request(self, base: str, head: str, title: str, body_file: Path) -> str:
        console.print(
            f"$ gh pr create --base {base} --head {head} --title {title} --body-file {body_file}",
            markup=False,
            highlight=False,
        )
        result = self._gh(
            "pr", "create", "--base", base, "--head", head, "--title", title, "--body-file", str(body_file)
        )
        if not result.ok:
            raise PrCreateFailed(_failure_message("gh pr create", result))
        return result.combined

    def view_pull_request(self) -> dict:
        result = self._gh("pr", "view", "--json", PR_VIEW_FIELDS)
        if not result.ok:
            raise PrViewFailed(_failure_message("gh pr view", result))
        try:
            view = json.loads(result.stdout.strip())
        except json.JSONDecodeError as e:
            raise PrViewFailed(f"Unable to parse gh pr view output: {e}")
        if not isinstance(view, dict):
            raise PrViewFailed("Unable to parse gh pr view output: expected a JSON object")
        return view

    def merge_pull_request(self, method: MergeMethod) -> None:
        console.print(f"$ gh pr merge {method.flag}", markup=False, highlight=False)
        result = self._gh("pr", "merge", method.flag)
        if not result.ok:
            raise MergeFailed(_failure_message("gh pr merge", result))
        if result.stdout.strip():
            console.print(result.stdout.strip(), markup=False, highlight=False)
        if result.stderr.strip():
            logger.info("gh pr merge: %s", result.stderr.strip())
