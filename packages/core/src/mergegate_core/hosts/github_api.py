from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from github import GithubException
from rich.console import Console

from mergegate_core.errors import AuthenticationRequired, MergeFailed, PrCreateFailed, PrViewFailed
from mergegate_core.gh.git import current_branch, remote_slug
from mergegate_core.gh.pull_request import find_open_pull, get_authenticated_login, get_repo, pull_request_view
from mergegate_core.hosts.base import BaseHost

if TYPE_CHECKING:
    from mergegate_core.settings import MergeMethod

console = Console()
logger = logging.getLogger(__name__)


class GithubApiHost(BaseHost):
    """Review host backed by the GitHub REST API, for machines without ``gh``.

    The repository comes from the origin remote and the PR is the open one
    whose head is the current branch, mirroring what ``gh pr view`` picks.
    """

    def __init__(self, repo_root: Path, token: str | None, repo_name: str | None = None):
        super().__init__(repo_root)
        self.token = token
        self.repo_name = repo_name or remote_slug(self.repo_root)
        self._repo = None

    def _get_repo(self):
        if self._repo is None:
            if not self.repo_name:
                raise PrViewFailed("Unable to detect the GitHub repository from the origin remote.")
            self._repo = get_repo(self.repo_name, token=self.token)
        return self._repo

    def _current_pull(self):
        branch = current_branch(self.repo_root)
        pr = find_open_pull(self._get_repo(), branch)
        if pr is None:
            raise PrViewFailed(f"No open pull request found for branch {branch}.")
        return pr

    def ensure_authenticated(self) -> None:
        if not self.token:
            raise AuthenticationRequired(
                "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first."
            )
        try:
            login = get_authenticated_login(self.token)
        except GithubException as e:
            raise AuthenticationRequired(f"GitHub rejected the token: {e}")
        logger.debug("Authenticated to GitHub as %s", login)

    def default_branch(self) -> str | None:
        try:
            return self._get_repo().default_branch or None
        except (GithubException, PrViewFailed) as e:
            logger.warning("Could not detect the default branch: %s", e)
            return None

    def create_pull_request(self, base: str, head: str, title: str, body_file: Path) -> str:
        console.print(f"Creating PR {head} → {base} via the GitHub API", markup=False, highlight=False)
        body = Path(body_file).read_text(encoding="utf-8")
        try:
            pr = self._get_repo().create_pull(base=base, head=head, title=title, body=body)
        except GithubException as e:
            raise PrCreateFailed(f"GitHub API pull request creation failed: {e}")
        return pr.html_url

    def view_pull_request(self) -> dict:
        try:
            pr = self._current_pull()
            return pull_request_view(self._get_repo(), pr)
        except GithubException as e:
            raise PrViewFailed(f"GitHub API pull request view failed: {e}")

    def merge_pull_request(self, method: MergeMethod) -> None:
        try:
            status = self._current_pull().merge(merge_method=method.value)
        except (GithubException, PrViewFailed) as e:
            raise MergeFailed(f"GitHub API merge failed: {e}")
        if not status.merged:
            raise MergeFailed(f"GitHub API merge failed: {status.message}")
        console.print(status.message or "Merged.", markup=False, highlight=False)
