"""Tests for the review gate: body parsing, gate evaluation and the poll loop."""

import threading
from dataclasses import replace

import pytest

from mergegate_core.errors import (
    ChecksFailed,
    ReviewChangesRequested,
    ReviewGateCancelled,
    ReviewGateTimeout,
    ReviewIssueBudgetExceeded,
    ReviewRatingTooLow,
)
from mergegate_core.hosts.base import BaseHost
from mergegate_core.review_gate import (
    CheckStatus,
    GateDecision,
    GateState,
    evaluate_check_gate,
    evaluate_review_gate,
    extract_check_rollup,
    find_reviewer_review,
    parse_first_number,
    parse_fraction_rating,
    parse_review_issue_count,
    parse_review_rating,
    run_review_gate,
    scale_rating_value,
)
from mergegate_core.settings import MergeMethod, ReviewGateSettings

SETTINGS = ReviewGateSettings(poll_seconds=5, timeout_seconds=60)


def _review(login="greptile", state="APPROVED", body="Rating: 9/10\nNo issues found.", at="2024-05-01T10:00:00Z"):
    return {"author": {"login": login}, "state": state, "body": body, "submittedAt": at}


def _check(name="ci", status="COMPLETED", conclusion="SUCCESS"):
    return {"name": name, "status": status, "conclusion": conclusion}


def _view(reviews=(), checks=()):
    return {"url": "https://github.com/o/r/pull/1", "number": 1, "reviews": list(reviews), "statusCheckRollup": list(checks)}


class StubHost(BaseHost):
    """Replays a fixed sequence of PR views; the last one repeats."""

    def __init__(self, views, on_view=None):
        super().__init__(".")
        self.views = list(views)
        self.on_view = on_view
        self.view_calls = 0
        self.merged_with = None

    def ensure_authenticated(self):
        pass

    def default_branch(self):
        return "main"

    def create_pull_request(self, base, head, title, body_file):
        return ""

    def view_pull_request(self):
        view = self.views[min(self.view_calls, len(self.views) - 1)]
        self.view_calls += 1
        if self.on_view:
            self.on_view(self.view_calls)
        return view

    def merge_pull_request(self, method):
        self.merged_with = method


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class AdvancingEvent(threading.Event):
    """Event whose wait() advances a fake clock instead of blocking."""

    def __init__(self, clock):
        super().__init__()
        self.clock = clock
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        self.clock.now += timeout
        return self.is_set()


# ---------------------------------------------------------------------------
# Rating and issue parsing
# ---------------------------------------------------------------------------


class TestParseReviewRating:
    @pytest.mark.parametrize(
        "body,expected",
        [
            ("Rating: 8/10", 8.0),
            ("Quality score: 92%", 9.2),
            ("Score: 0.8", 8.0),
            ("Overall rating: 9", 9.0),
            ("Score: 12", 1.2),
            ("Confidence 4 / 5", 8.0),
            ("Scored 85/100 overall", 8.5),
        ],
    )
    def test_values(self, body, expected):
        assert parse_review_rating(body) == pytest.approx(expected)

    def test_fraction_anywhere_beats_rating_line(self):
        assert parse_review_rating("Rating: 3\nFixed 9/10 findings") == pytest.approx(9.0)

    def test_unsupported_denominator_ignored(self):
        assert parse_fraction_rating("Tests 3/4 passing") is None
        assert parse_review_rating("Tests 3/4 passing") is None

    def test_no_rating(self):
        assert parse_review_rating("Looks good to me") is None

    def test_first_rating_line_with_number_wins(self):
        assert parse_review_rating("Rating: pending\nScore: 7") == pytest.approx(7.0)

    def test_unicode_separator_does_not_split_rating_line(self):
        assert parse_review_rating("Score:\u2028 7") == pytest.approx(7.0)

    def test_scale_rating_value(self):
        assert scale_rating_value(75.0, "score: 75%") == 7.5
        assert scale_rating_value(1.0, "rating 1") == 10.0
        assert scale_rating_value(7.0, "rating 7") == 7.0

    def test_parse_first_number_rejects_malformed(self):
        assert parse_first_number("version 1.2.3") is None
        assert parse_first_number("no digits") is None


class TestParseIssueCount:
    @pytest.mark.parametrize(
        "body,expected",
        [
            ("No issues found.", 0),
            ("Issues: 3 blocking", 3),
            ("Issues: 2/10 (minor)", 2),
            ("Issue rate: 20%", 20),
            ("Issues: 0", 0),
            ("Issues: none", 0),
            ("Issues found: pending triage", 1),
            ("Looks good overall.", None),
        ],
    )
    def test_values(self, body, expected):
        assert parse_review_issue_count(body) == expected

    def test_first_issue_line_decides(self):
        assert parse_review_issue_count("Issue summary below\nIssues: 4") == 1

    def test_form_feed_does_not_split_issue_line(self):
        assert parse_review_issue_count("Issues:\f 3 blocking") == 3


# ---------------------------------------------------------------------------
# PR view extraction
# ---------------------------------------------------------------------------


class TestFindReviewerReview:
    def test_case_insensitive_login(self):
        review = find_reviewer_review([_review(login="Greptile")], "greptile")
        assert review.login == "Greptile"

    def test_latest_timestamp_wins(self):
        reviews = [
            _review(state="APPROVED", at="2024-05-01T10:00:00Z"),
            _review(state="CHANGES_REQUESTED", at="2024-05-02T10:00:00Z"),
            _review(state="COMMENTED", at="2024-04-30T10:00:00Z"),
        ]
        assert find_reviewer_review(reviews, "greptile").state == "CHANGES_REQUESTED"

    def test_equal_timestamps_later_entry_wins(self):
        reviews = [_review(state="COMMENTED"), _review(state="APPROVED")]
        assert find_reviewer_review(reviews, "greptile").state == "APPROVED"

    def test_missing_fields_defaulted(self):
        review = find_reviewer_review([{"author": {"login": "greptile"}, "createdAt": "2024-01-01"}], "greptile")
        assert review.state == "COMMENTED"
        assert review.body == ""
        assert review.submitted_at == "2024-01-01"

    def test_other_reviewers_ignored(self):
        assert find_reviewer_review([_review(login="someone")], "greptile") is None


class TestExtractCheckRollup:
    def test_both_field_shapes(self):
        view = {"statusCheckRollup": [_check(), {"context": "legacy", "state": "COMPLETED", "result": "FAILURE"}, {}]}
        assert extract_check_rollup(view) == [
            CheckStatus("ci", "COMPLETED", "SUCCESS"),
            CheckStatus("legacy", "COMPLETED", "FAILURE"),
            CheckStatus("unknown", "", ""),
        ]

    def test_non_list_rollup(self):
        assert extract_check_rollup({"statusCheckRollup": None}) == []


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


class TestReviewGate:
    def test_pending_without_review(self):
        decision = evaluate_review_gate(_view(), SETTINGS)
        assert decision == GateDecision.pending("waiting for greptile review")

    def test_changes_requested_after_approval_fails(self):
        view = _view([_review(at="2024-05-01T10:00:00Z"), _review(state="CHANGES_REQUESTED", at="2024-05-01T11:00:00Z")])
        decision = evaluate_review_gate(view, SETTINGS)
        assert decision.is_failed
        assert decision.reason == "greptile requested changes"
        assert isinstance(decision.error, ReviewChangesRequested)

    def test_waiting_for_approval(self):
        decision = evaluate_review_gate(_view([_review(state="COMMENTED")]), SETTINGS)
        assert decision == GateDecision.pending("waiting for greptile approval")

    def test_commented_review_passes_without_required_approval(self):
        settings = replace(SETTINGS, require_approval=False)
        assert evaluate_review_gate(_view([_review(state="COMMENTED")]), settings).is_passed

    def test_waiting_for_rating(self):
        decision = evaluate_review_gate(_view([_review(body="LGTM")]), SETTINGS)
        assert decision == GateDecision.pending("waiting for greptile rating")

    def test_rating_below_minimum(self):
        decision = evaluate_review_gate(_view([_review(body="Rating: 6/10")]), SETTINGS)
        assert decision.reason == "greptile rating 6.00 below 8.00"
        assert isinstance(decision.error, ReviewRatingTooLow)
        assert decision.error.rating == 6.0

    def test_rating_at_minimum_passes(self):
        assert evaluate_review_gate(_view([_review(body="Rating: 8/10")]), SETTINGS).is_passed

    def test_issue_budget_exceeded(self):
        decision = evaluate_review_gate(_view([_review(body="Rating: 9/10\nIssues: 2")]), SETTINGS)
        assert decision.reason == "greptile flagged 2 issue(s)"
        assert isinstance(decision.error, ReviewIssueBudgetExceeded)

    def test_issue_count_within_budget(self):
        settings = replace(SETTINGS, max_issues=2)
        assert evaluate_review_gate(_view([_review(body="Rating: 9/10\nIssues: 2")]), settings).is_passed

    def test_unknown_issue_count_passes(self):
        decision = evaluate_review_gate(_view([_review(body="Rating: 9/10")]), SETTINGS)
        assert decision == GateDecision.passed("greptile review ok")


class TestCheckGate:
    def test_skipped_when_not_required(self):
        settings = replace(SETTINGS, require_checks=False)
        decision = evaluate_check_gate(_view(checks=[_check(conclusion="FAILURE")]), settings)
        assert decision == GateDecision.passed("checks skipped")

    def test_no_checks(self):
        assert evaluate_check_gate(_view(), SETTINGS) == GateDecision.passed("no checks")

    def test_failure_lists_names(self):
        checks = [_check("build", conclusion="FAILURE"), _check("lint", conclusion="TIMED_OUT"), _check("docs")]
        decision = evaluate_check_gate(_view(checks=checks), SETTINGS)
        assert decision.reason == "checks failed: build, lint"
        assert isinstance(decision.error, ChecksFailed)
        assert decision.error.names == ["build", "lint"]

    def test_failed_beats_pending(self):
        checks = [_check("slow", status="QUEUED", conclusion=""), _check("build", conclusion="CANCELLED")]
        assert evaluate_check_gate(_view(checks=checks), SETTINGS).is_failed

    def test_pending_statuses(self):
        checks = [_check("a", status="IN_PROGRESS"), _check("b", status="completed", conclusion=""), _check("c")]
        decision = evaluate_check_gate(_view(checks=checks), SETTINGS)
        assert decision == GateDecision.pending("checks pending: a, b")

    def test_all_success(self):
        checks = [_check("a"), _check("b", conclusion="NEUTRAL"), _check("c", conclusion="skipped")]
        assert evaluate_check_gate(_view(checks=checks), SETTINGS) == GateDecision.passed("checks ok")


def test_gate_decision_state():
    assert GateDecision.failed("x").state is GateState.FAILED
    assert GateDecision.pending("x").is_passed is False


# ---------------------------------------------------------------------------
# Poll loop
# ---------------------------------------------------------------------------


class TestRunReviewGate:
    def test_disabled(self):
        host = StubHost([_view()])
        assert run_review_gate(host, replace(SETTINGS, enabled=False)) is False
        assert host.view_calls == 0

    def test_merges_when_both_gates_pass(self, capsys):
        host = StubHost([_view([_review()], [_check()])])
        settings = replace(SETTINGS, merge_method=MergeMethod.SQUASH)
        assert run_review_gate(host, settings, pr_url="https://github.com/o/r/pull/1") is True
        assert host.merged_with is MergeMethod.SQUASH
        out = capsys.readouterr().out
        assert "Review gate watching: https://github.com/o/r/pull/1" in out
        assert "PR merged." in out

    def test_polls_until_pass_and_logs_status_changes_once(self, capsys):
        clock = FakeClock()
        waiting = _view()
        views = [waiting, waiting, _view([_review()], [_check(status="QUEUED", conclusion="")]), _view([_review()], [_check()])]
        host = StubHost(views)
        stop = AdvancingEvent(clock)
        assert run_review_gate(host, SETTINGS, stop_event=stop, clock=clock) is True
        assert host.view_calls == 4
        assert stop.waits == [5, 5, 5]
        out = capsys.readouterr().out
        assert out.count("review: waiting for greptile review | checks: no checks") == 1
        assert "review: greptile review ok | checks: checks pending: ci" in out

    def test_review_failure_raises(self):
        host = StubHost([_view([_review(state="CHANGES_REQUESTED")])])
        with pytest.raises(ReviewChangesRequested, match="greptile requested changes"):
            run_review_gate(host, SETTINGS)
        assert host.merged_with is None

    def test_check_failure_raises(self):
        host = StubHost([_view([_review()], [_check("build", conclusion="FAILURE")])])
        with pytest.raises(ChecksFailed, match="checks failed: build"):
            run_review_gate(host, SETTINGS)

    def test_times_out(self):
        clock = FakeClock()
        host = StubHost([_view()])
        stop = AdvancingEvent(clock)
        with pytest.raises(ReviewGateTimeout, match="timed out after 60s"):
            run_review_gate(host, SETTINGS, stop_event=stop, clock=clock)
        # Polls at t=0,5,...,60; the poll at the deadline still runs before giving up.
        assert host.view_calls == 13

    def test_stop_event_cancels_between_polls(self):
        stop = threading.Event()
        host = StubHost([_view()], on_view=lambda calls: stop.set())
        with pytest.raises(ReviewGateCancelled):
            run_review_gate(host, SETTINGS, stop_event=stop)
        assert host.view_calls == 1

    def test_already_stopped_never_polls(self):
        stop = threading.Event()
        stop.set()
        host = StubHost([_view()])
        with pytest.raises(ReviewGateCancelled):
            run_review_gate(host, SETTINGS, stop_event=stop)
        assert host.view_calls == 0
