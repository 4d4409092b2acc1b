"""Review gate: poll the PR until the reviewer and CI agree it can merge.

Nothing is stored between polls. Every iteration fetches a fresh PR view and
derives two independent decisions from it:

  - review gate: the configured reviewer's latest review (state, rating,
    issue count parsed from the review body)
  - check gate: the CI check rollup

Either gate failing aborts the run, both passing merges the PR, anything
else waits ``poll_seconds`` and tries again until ``timeout_seconds``.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from rich.console import Console

from mergegate_core.coverage import is_below
from mergegate_core.errors import (
    ChecksFailed,
    MergeGateError,
    ReviewChangesRequested,
    ReviewGateCancelled,
    ReviewGateTimeout,
    ReviewIssueBudgetExceeded,
    ReviewRatingTooLow,
)
from mergegate_core.hosts.base import BaseHost
from mergegate_core.settings import ReviewGateSettings
from mergegate_core.utils.code import split_lines

console = Console()
logger = logging.getLogger(__name__)

_PENDING_STATUSES = {"", "PENDING", "IN_PROGRESS", "QUEUED"}
_FAILED_CONCLUSIONS = {"FAILURE", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED", "STALE"}
_RATING_DENOMINATORS = (5.0, 10.0, 100.0)
_RATING_KEYWORDS = ("rating", "score", "quality")


class GateState(enum.Enum):
    PENDING = "pending"
    FAILED = "failed"
    PASSED = "passed"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    reason: str
    # Error to raise when this decision fails the run.
    error: MergeGateError | None = field(default=None, compare=False)

    @classmethod
    def pending(cls, reason: str) -> GateDecision:
        return cls(GateState.PENDING, reason)

    @classmethod
    def failed(cls, reason: str, error: MergeGateError | None = None) -> GateDecision:
        return cls(GateState.FAILED, reason, error)

    @classmethod
    def passed(cls, reason: str) -> GateDecision:
        return cls(GateState.PASSED, reason)

    @property
    def is_passed(self) -> bool:
        return self.state is GateState.PASSED

    @property
    def is_failed(self) -> bool:
        return self.state is GateState.FAILED

    def raise_error(self) -> None:
        raise self.error or MergeGateError(self.reason)


@dataclass(frozen=True)
class ReviewRecord:
    login: str
    state: str
    body: str
    submitted_at: str


@dataclass(frozen=True)
class CheckStatus:
    name: str
    status: str
    conclusion: str


# ---------------------------------------------------------------------------
# Number scanning
# ---------------------------------------------------------------------------


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_number_char(ch: str) -> bool:
    return _is_digit(ch) or ch == "."


def _parse_number_forward(text: str, start: int) -> tuple[float, int] | None:
    end = start
    while end < len(text) and _is_number_char(text[end]):
        end += 1
    if end == start:
        return None
    try:
        return float(text[start:end]), end
    except ValueError:
        return None


def _parse_number_backward(text: str, end: int) -> float | None:
    start = end
    while start > 0 and _is_number_char(text[start - 1]):
        start -= 1
    if start == end:
        return None
    try:
        return float(text[start:end])
    except ValueError:
        return None


def parse_first_number(line: str) -> float | None:
    """The decimal number starting at the first digit of line, if it parses."""
    for idx, ch in enumerate(line):
        if _is_digit(ch):
            found = _parse_number_forward(line, idx)
            return found[0] if found else None
    return None


def parse_first_int(line: str) -> int | None:
    for idx, ch in enumerate(line):
        if _is_digit(ch):
            end = idx + 1
            while end < len(line) and _is_digit(line[end]):
                end += 1
            return int(line[idx:end])
    return None


# ---------------------------------------------------------------------------
# Review body parsing
# ---------------------------------------------------------------------------


def parse_fraction_rating(body: str) -> float | None:
    """Scan for ``N/D`` with D in {5, 10, 100} and normalize it to 0–10."""
    for idx, ch in enumerate(body):
        if ch != "/":
            continue
        right = idx + 1
        while right < len(body) and body[right].isspace():
            right += 1
        found = _parse_number_forward(body, right)
        if found is None:
            continue
        denominator = found[0]
        if denominator <= 0.0:
            continue
        left = idx
        while left > 0 and body[left - 1].isspace():
            left -= 1
        numerator = _parse_number_backward(body, left)
        if numerator is None:
            continue
        if denominator in _RATING_DENOMINATORS:
            return numerator * 10.0 / denominator
    return None


def scale_rating_value(value: float, line: str) -> float:
    if "%" in line:
        return value / 10.0
    if value <= 1.0:
        return value * 10.0
    if value > 10.0:
        return value / 10.0
    return value


def parse_review_rating(body: str) -> float | None:
    """Read a 0–10 rating from a review body.

    A fraction anywhere in the body wins; otherwise the first number on the
    first line mentioning rating/score/quality is scaled onto 0–10.
    """
    rating = parse_fraction_rating(body)
    if rating is not None:
        return rating
    for line in split_lines(body.lower()):
        if any(keyword in line for keyword in _RATING_KEYWORDS):
            value = parse_first_number(line)
            if value is not None:
                return scale_rating_value(value, line)
    return None


def parse_review_issue_count(body: str) -> int | None:
    """Issue count reported in a review body, or None when it never says.

    A line mentioning issues without a number counts as one issue unless it
    says none or zero.
    """
    lower = body.lower()
    if "no issue" in lower:
        return 0
    for line in split_lines(lower):
        if "issue" not in line:
            continue
        value = parse_first_int(line)
        if value is not None:
            return value
        if "none" in line or "zero" in line:
            return 0
        return 1
    return None


# ---------------------------------------------------------------------------
# PR view extraction
# ---------------------------------------------------------------------------


def _first_str(item: dict, keys: tuple[str, ...], default: str) -> str:
    for key in keys:
        if key in item:
            value = item[key]
            return value if isinstance(value, str) else default
    return default


def find_reviewer_review(reviews: list, reviewer: str) -> ReviewRecord | None:
    """Latest review by reviewer; on equal timestamps the later entry wins."""
    latest = None
    wanted = reviewer.lower()
    for review in reviews:
        if not isinstance(review, dict):
            continue
        author = review.get("author")
        login = author.get("login") if isinstance(author, dict) else None
        if not isinstance(login, str) or login.lower() != wanted:
            continue
        candidate = ReviewRecord(
            login=login,
            state=_first_str(review, ("state",), "COMMENTED"),
            body=_first_str(review, ("body",), ""),
            submitted_at=_first_str(review, ("submittedAt", "createdAt"), ""),
        )
        # Raw string comparison; ISO-8601 UTC timestamps sort chronologically.
        if latest is None or candidate.submitted_at >= latest.submitted_at:
            latest = candidate
    return latest


def extract_check_rollup(view: dict) -> list[CheckStatus]:
    items = view.get("statusCheckRollup")
    if not isinstance(items, list):
        return []
    checks = []
    for item in items:
        if not isinstance(item, dict):
            continue
        checks.append(
            CheckStatus(
                name=_first_str(item, ("name", "context"), "unknown"),
                status=_first_str(item, ("status", "state"), ""),
                conclusion=_first_str(item, ("conclusion", "result"), ""),
            )
        )
    return checks


def _join_or_none(names: list[str]) -> str:
    return ", ".join(names) if names else "none"


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


def evaluate_review_gate(view: dict, settings: ReviewGateSettings) -> GateDecision:
    reviewer = settings.reviewer
    reviews = view.get("reviews")
    review = find_reviewer_review(reviews if isinstance(reviews, list) else [], reviewer)
    if review is None:
        return GateDecision.pending(f"waiting for {reviewer} review")

    state = review.state.upper()
    if state == "CHANGES_REQUESTED":
        reason = f"{reviewer} requested changes"
        return GateDecision.failed(reason, ReviewChangesRequested(reason))
    if settings.require_approval and state != "APPROVED":
        return GateDecision.pending(f"waiting for {reviewer} approval")

    rating = parse_review_rating(review.body)
    if rating is None:
        return GateDecision.pending(f"waiting for {reviewer} rating")
    if is_below(rating, settings.min_rating):
        reason = f"{reviewer} rating {rating:.2f} below {settings.min_rating:.2f}"
        return GateDecision.failed(reason, ReviewRatingTooLow(reason, rating, settings.min_rating))

    issues = parse_review_issue_count(review.body)
    if issues is not None and issues > settings.max_issues:
        reason = f"{reviewer} flagged {issues} issue(s)"
        return GateDecision.failed(reason, ReviewIssueBudgetExceeded(reason, issues, settings.max_issues))

    return GateDecision.passed(f"{reviewer} review ok")


def evaluate_check_gate(view: dict, settings: ReviewGateSettings) -> GateDecision:
    if not settings.require_checks:
        return GateDecision.passed("checks skipped")

    checks = extract_check_rollup(view)
    if not checks:
        return GateDecision.passed("no checks")

    pending: list[str] = []
    failed: list[str] = []
    for check in checks:
        status = check.status.upper()
        conclusion = check.conclusion.upper()
        if status in _PENDING_STATUSES or not conclusion:
            pending.append(check.name)
        elif conclusion in _FAILED_CONCLUSIONS:
            failed.append(check.name)

    if failed:
        return GateDecision.failed(f"checks failed: {_join_or_none(failed)}", ChecksFailed(failed))
    if pending:
        return GateDecision.pending(f"checks pending: {_join_or_none(pending)}")
    return GateDecision.passed("checks ok")


# ---------------------------------------------------------------------------
# Poll loop
# ---------------------------------------------------------------------------


def run_review_gate(
    host: BaseHost,
    settings: ReviewGateSettings,
    pr_url: str | None = None,
    stop_event: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll the PR until it merges. Returns False when the gate is disabled.

    Raises the failing gate's error, ReviewGateTimeout once ``timeout_seconds``
    elapse without a decision, or ReviewGateCancelled when stop_event is set.
    """
    console.print("\n[bold]==> Review gate[/bold]")
    if not settings.enabled:
        console.print("Review gate skipped (disabled).")
        return False

    host.ensure_authenticated()
    if pr_url:
        console.print(f"Review gate watching: {pr_url}", markup=False, highlight=False)

    stop_event = stop_event or threading.Event()
    deadline = clock() + settings.timeout_seconds
    last_status = ""

    while True:
        if stop_event.is_set():
            raise ReviewGateCancelled()

        view = host.view_pull_request()
        review = evaluate_review_gate(view, settings)
        checks = evaluate_check_gate(view, settings)

        if review.is_failed:
            review.raise_error()
        if checks.is_failed:
            checks.raise_error()
        if review.is_passed and checks.is_passed:
            host.merge_pull_request(settings.merge_method)
            console.print("[green]PR merged.[/green]")
            return True

        status = f"review: {review.reason} | checks: {checks.reason}"
        if status != last_status:
            console.print(status, markup=False, highlight=False)
            last_status = status
        else:
            logger.debug("Gate unchanged: %s", status)

        if clock() >= deadline:
            raise ReviewGateTimeout(settings.timeout_seconds)

        stop_event.wait(settings.poll_seconds)
