"""Error hierarchy for the merge gate pipeline.

Every failure the pipeline can surface is a MergeGateError subclass. Each one
carries the context needed to print an actionable console message (stage,
command, file:line, numeric thresholds) so the CLI can render it as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mergegate_core.static_checks import StaticViolation


class MergeGateError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CommandFailed(MergeGateError):
    """A stage command exited with a non-zero status."""

    def __init__(self, stage: str, exit_status: int, output: str = "") -> None:
        super().__init__(f"{stage} failed with status {exit_status}.")
        self.stage = stage
        self.exit_status = exit_status
        self.output = output


class ToolNotFound(MergeGateError):
    """An external executable could not be found on PATH."""

    def __init__(self, tool: str, hint: str | None = None) -> None:
        message = f"{tool} not found."
        if hint:
            message = f"{tool} not found. {hint}"
        super().__init__(message)
        self.tool = tool
        self.hint = hint


class CommandLaunchFailed(MergeGateError):
    """An executable was found but the OS refused to start it."""

    def __init__(self, tool: str, detail: str) -> None:
        super().__init__(f"Could not run {tool}: {detail}")
        self.tool = tool
        self.detail = detail


class WorkingDirectoryMissing(MergeGateError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Working directory {path} does not exist.")
        self.path = path


class InvalidConfigValue(MergeGateError):
    def __init__(self, key: str, value: object, reason: str | None = None) -> None:
        message = f"Invalid {key}: {value}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key
        self.value = value
        self.reason = reason


class CoverageBelowThreshold(MergeGateError):
    def __init__(self, actual: float, required: float) -> None:
        super().__init__(f"Coverage {actual:.2f}% below required {required:.2f}%.")
        self.actual = actual
        self.required = required


class CoverageUnparseable(MergeGateError):
    def __init__(self) -> None:
        super().__init__("Coverage output missing percentage value.")


class RepositoryUnresolved(MergeGateError):
    def __init__(self, detail: str = "") -> None:
        message = "Unable to resolve git repository root."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class DetachedHead(MergeGateError):
    def __init__(self) -> None:
        super().__init__("Cannot create PR from detached HEAD.")


class BranchUnresolved(MergeGateError):
    def __init__(self) -> None:
        super().__init__("Unable to determine current branch.")


class PrTemplateMissing(MergeGateError):
    def __init__(self, candidates: list[str]) -> None:
        super().__init__("No PR template found. Looked for: " + ", ".join(candidates))
        self.candidates = candidates


class AuthenticationRequired(MergeGateError):
    pass


class PrCreateFailed(MergeGateError):
    pass


class PrViewFailed(MergeGateError):
    pass


class MergeFailed(MergeGateError):
    pass


class StaticChecksFailed(MergeGateError):
    def __init__(self, violations: list[StaticViolation]) -> None:
        super().__init__(f"Static checks failed with {len(violations)} issue(s).")
        self.violations = violations


class ReviewChangesRequested(MergeGateError):
    pass


class ReviewRatingTooLow(MergeGateError):
    def __init__(self, message: str, rating: float, min_rating: float) -> None:
        super().__init__(message)
        self.rating = rating
        self.min_rating = min_rating


class ReviewIssueBudgetExceeded(MergeGateError):
    def __init__(self, message: str, count: int, max_issues: int) -> None:
        super().__init__(message)
        self.count = count
        self.max_issues = max_issues


class ChecksFailed(MergeGateError):
    def __init__(self, names: list[str]) -> None:
        super().__init__(f"checks failed: {', '.join(names) if names else 'None'}")
        self.names = names


class ReviewGateTimeout(MergeGateError):
    def __init__(self, timeout_seconds: int) -> None:
        super().__init__(f"Review gate timed out after {timeout_seconds}s.")
        self.timeout_seconds = timeout_seconds


class ReviewGateCancelled(MergeGateError):
    def __init__(self) -> None:
        super().__init__("Review gate cancelled before a decision was reached.")
