"""Review-host interface.

The pipeline talks to the review host (where pull requests, reviews and CI
checks live) through this narrow interface. Two implementations exist:

  - GhCliHost: shells out to the ``gh`` CLI (default)
  - GithubApiHost: calls the GitHub REST API through PyGithub

Both hand back the PR view in the same shape ``gh pr view --json`` produces,
so the review gate never needs to know which host it is polling:

    {
      "url": str,
      "number": int,
      "reviews": [{"author": {"login": str}, "state": str, "body": str, "submittedAt": str}],
      "statusCheckRollup": [{"name", "status", "conclusion"} | {"context", "state"}],
    }
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mergegate_core.settings import MergeMethod


class BaseHost(ABC):
    """Pull request operations against a review host, scoped to one repository."""

    def __init__(self, repo_root: Path):
        self.repo_root = Path(repo_root)

    @abstractmethod
    def ensure_authenticated(self) -> None:
        """Raise AuthenticationRequired unless the host accepts our credentials."""

    @abstractmethod
    def default_branch(self) -> str | None:
        """Return the host's default branch, or None if it cannot be determined."""

    @abstractmethod
    def create_pull_request(self, base: str, head: str, title: str, body_file: Path) -> str:
        """Open a PR and return the host's textual output (which includes the URL)."""

    @abstractmethod
    def view_pull_request(self) -> dict:
        """Return a fresh view of the current branch's PR (see module docstring)."""

    @abstractmethod
    def merge_pull_request(self, method: MergeMethod) -> None:
        """Merge the current branch's PR; raise MergeFailed on failure."""
