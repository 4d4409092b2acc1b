"""Version-control queries the pipeline needs: repo root, branch, default branch."""

from __future__ import annotations

import logging
from pathlib import Path

from mergegate_core.errors import BranchUnresolved, DetachedHead, RepositoryUnresolved
from mergegate_core.runner import capture

logger = logging.getLogger(__name__)


def git_output(cwd: Path | str, *args: str) -> str:
    """Run ``git -C cwd <args>`` and return stdout; raises RuntimeError on failure."""
    result = capture(["git", "-C", str(cwd), *args], cwd)
    if not result.ok:
        raise RuntimeError(result.stderr.strip() or f"git {' '.join(args)} failed")
    return result.stdout


def repo_root(cwd: Path | str) -> Path:
    try:
        output = git_output(cwd, "rev-parse", "--show-toplevel").strip()
    except RuntimeError as e:
        raise RepositoryUnresolved(str(e))
    if not output:
        raise RepositoryUnresolved()
    return Path(output)


def repo_root_or_dir(cwd: Path | str) -> Path:
    """Repository root when cwd is inside a git work tree, else cwd itself."""
    try:
        root = repo_root(cwd)
    except RepositoryUnresolved:
        return Path(cwd)
    return root if root.is_dir() else Path(cwd)


def current_branch(cwd: Path | str) -> str:
    try:
        branch = git_output(cwd, "rev-parse", "--abbrev-ref", "HEAD").strip()
    except RuntimeError:
        raise BranchUnresolved()
    if not branch:
        raise BranchUnresolved()
    if branch == "HEAD":
        raise DetachedHead()
    return branch


def remote_default_branch(cwd: Path | str) -> str | None:
    """Branch that ``origin/HEAD`` points at, or None when it is not set."""
    try:
        output = git_output(cwd, "symbolic-ref", "--short", "refs/remotes/origin/HEAD").strip()
    except RuntimeError:
        logger.debug("origin/HEAD is not set in %s", cwd)
        return None
    if output.startswith("origin/") and len(output) > len("origin/"):
        return output[len("origin/") :]
    return None


def remote_slug(cwd: Path | str) -> str | None:
    """Detect the GitHub ``owner/name`` slug from the origin remote URL."""
    try:
        url = git_output(cwd, "remote", "get-url", "origin").strip()
    except RuntimeError:
        return None
    # Handle both HTTPS and SSH remotes:
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None
