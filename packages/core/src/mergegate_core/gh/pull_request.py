from __future__ import annotations

from github import Github

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Commit status states mapped onto the check-run (status, conclusion) pair.
_COMMIT_STATE_TO_CHECK = {
    "pending": ("PENDING", ""),
    "success": ("COMPLETED", "SUCCESS"),
    "failure": ("COMPLETED", "FAILURE"),
    "error": ("COMPLETED", "FAILURE"),
}


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_authenticated_login(token: str) -> str:
    return Github(token).get_user().login


def find_open_pull(repo, branch: str):
    """Return the open PR whose head is ``branch`` in this repository, or None."""
    owner = repo.owner.login
    for pr in repo.get_pulls(state="open", head=f"{owner}:{branch}"):
        return pr
    return None


def review_to_dict(review) -> dict:
    """Render a PyGithub review in the shape ``gh pr view --json reviews`` uses."""
    submitted = review.submitted_at.strftime(_TIMESTAMP_FORMAT) if review.submitted_at else ""
    return {
        "author": {"login": review.user.login if review.user else ""},
        "state": review.state or "COMMENTED",
        "body": review.body or "",
        "submittedAt": submitted,
    }


def check_rollup(repo, head_sha: str) -> list[dict]:
    """Combine check runs and legacy commit statuses for head_sha into one list."""
    commit = repo.get_commit(head_sha)
    rollup = [
        {
            "name": run.name,
            "status": (run.status or "").upper(),
            "conclusion": (run.conclusion or "").upper(),
        }
        for run in commit.get_check_runs()
    ]
    for status in commit.get_combined_status().statuses:
        state, conclusion = _COMMIT_STATE_TO_CHECK.get(status.state, ("PENDING", ""))
        rollup.append({"name": status.context, "status": state, "conclusion": conclusion})
    return rollup


def pull_request_view(repo, pr) -> dict:
    return {
        "url": pr.html_url,
        "number": pr.number,
        "reviews": [review_to_dict(r) for r in pr.get_reviews()],
        "statusCheckRollup": check_rollup(repo, pr.head.sha),
    }
