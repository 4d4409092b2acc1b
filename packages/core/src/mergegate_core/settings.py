"""Validated, immutable settings for each pipeline stage.

Each ``resolve_*`` function reads string values from a Config, applies the
stage's defaults, validates ranges, and returns a frozen dataclass. Nothing
downstream touches the Config again.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from mergegate_core.config import Config, normalize_csv, parse_bool_value
from mergegate_core.errors import InvalidConfigValue

DEFAULT_CARGO_TEST_COMMAND = "cargo test --workspace"
DEFAULT_CARGO_COVERAGE_COMMAND = "cargo tarpaulin --workspace"
DEFAULT_COVERAGE_MIN = 90.0
DEFAULT_COVERAGE_WARN = 70.0

DEFAULT_STATIC_MAX_COMMENT_LINES = 12
DEFAULT_STATIC_MAX_COMMENT_CHARS = 600
DEFAULT_STATIC_DUPLICATE_BLOCK_LINES = 8
DEFAULT_STATIC_DUPLICATE_MIN_ALNUM_LINES = 4
DEFAULT_STATIC_MAX_FILE_BYTES = 1_000_000
DEFAULT_TODO_MARKERS = ["TODO", "FIXME"]

DEFAULT_REVIEW_REVIEWER = "greptile"
DEFAULT_REVIEW_MIN_RATING = 8.0
DEFAULT_REVIEW_MAX_ISSUES = 0
DEFAULT_REVIEW_POLL_SECONDS = 20
DEFAULT_REVIEW_TIMEOUT_SECONDS = 1800

DEFAULT_STATIC_ALLOW_PATTERNS = [
    "**/*.rs",
    "**/*.md",
    "**/*.toml",
    "**/*.yaml",
    "**/*.yml",
    "**/*.json",
    "**/*.js",
    "**/*.ts",
    "**/*.tsx",
    "**/*.jsx",
    "**/*.py",
    "**/*.go",
    "**/*.java",
    "**/*.c",
    "**/*.h",
    "**/*.hpp",
    "**/*.cpp",
    "**/*.cc",
    "**/*.cs",
    "**/*.sh",
    "**/*.ps1",
    "**/*.txt",
    "**/Dockerfile",
    "**/Makefile",
]

DEFAULT_STATIC_IGNORE_PATTERNS = [
    "**/.git/**",
    "**/.worktrees/**",
    "**/.mergegate/**",
    "**/target/**",
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
]


class MergeMethod(enum.Enum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"

    @property
    def flag(self) -> str:
        return f"--{self.value}"


@dataclass(frozen=True)
class VerifierSettings:
    test_command: str
    coverage_command: str
    coverage_min: float
    coverage_warn: float


@dataclass(frozen=True)
class StaticCheckSettings:
    enabled: bool = True
    check_todo: bool = True
    check_comments: bool = True
    check_duplicates: bool = True
    allow_patterns: tuple[str, ...] = ()
    ignore_patterns: tuple[str, ...] = ()
    todo_markers: tuple[str, ...] = ("FIXME", "TODO")
    max_comment_lines: int = DEFAULT_STATIC_MAX_COMMENT_LINES
    max_comment_chars: int = DEFAULT_STATIC_MAX_COMMENT_CHARS
    duplicate_block_lines: int = DEFAULT_STATIC_DUPLICATE_BLOCK_LINES
    duplicate_min_alnum_lines: int = DEFAULT_STATIC_DUPLICATE_MIN_ALNUM_LINES
    max_file_bytes: int = DEFAULT_STATIC_MAX_FILE_BYTES


@dataclass(frozen=True)
class ReviewGateSettings:
    enabled: bool = True
    reviewer: str = DEFAULT_REVIEW_REVIEWER
    min_rating: float = DEFAULT_REVIEW_MIN_RATING
    max_issues: int = DEFAULT_REVIEW_MAX_ISSUES
    poll_seconds: int = DEFAULT_REVIEW_POLL_SECONDS
    timeout_seconds: int = DEFAULT_REVIEW_TIMEOUT_SECONDS
    require_approval: bool = True
    require_checks: bool = True
    merge_method: MergeMethod = MergeMethod.MERGE


# ---------------------------------------------------------------------------
# Primitive resolvers
# ---------------------------------------------------------------------------


def resolve_bool(config: Config, key: str, default: bool) -> bool:
    value = config.get(key)
    if value is None or not value.strip():
        return default
    parsed = parse_bool_value(value)
    if parsed is None:
        raise InvalidConfigValue(key, value.strip())
    return parsed


def resolve_int(config: Config, key: str, default: int, minimum: int) -> int:
    value = config.get(key)
    if value is None or not value.strip():
        return default
    trimmed = value.strip()
    try:
        parsed = int(trimmed)
    except ValueError:
        raise InvalidConfigValue(key, trimmed)
    if parsed < 0:
        raise InvalidConfigValue(key, trimmed)
    if parsed < minimum:
        raise InvalidConfigValue(key, parsed, f"minimum {minimum}")
    return parsed


def resolve_percentage(config: Config, key: str, default: float) -> float:
    value = config.get(key)
    if value is None or not value.strip():
        return default
    trimmed = value.strip()
    try:
        parsed = float(trimmed)
    except ValueError:
        raise InvalidConfigValue(key, trimmed)
    return validate_percentage(key, parsed)


def validate_percentage(key: str, value: float) -> float:
    if not 0.0 <= value <= 100.0:
        raise InvalidConfigValue(key, value, "must be between 0 and 100")
    return value


def normalize_pattern(pattern: str) -> str:
    value = pattern.strip().replace("\\", "/")
    while value.startswith("./") or value.startswith("/"):
        value = value[2:] if value.startswith("./") else value[1:]
    return value


def resolve_patterns(config: Config, key: str, default: list[str]) -> tuple[str, ...]:
    value = config.get(key)
    parsed = normalize_csv(value) if value and value.strip() else []
    return tuple(normalize_pattern(p) for p in (parsed or default))


def resolve_markers(config: Config, key: str, default: list[str]) -> tuple[str, ...]:
    """Upper-cased, de-duplicated and sorted marker set."""
    value = config.get(key)
    parsed = normalize_csv(value) if value and value.strip() else []
    markers = {m.strip().upper() for m in (parsed or default) if m.strip()}
    return tuple(sorted(markers))


# ---------------------------------------------------------------------------
# Stage settings
# ---------------------------------------------------------------------------


def uses_cargo_defaults(repo_root: Path) -> bool:
    """Only Cargo projects get built-in test and coverage commands."""
    return (repo_root / "Cargo.toml").is_file()


def resolve_command(
    arg_value: str | None,
    config: Config,
    key: str,
    default: str,
    require_explicit: bool,
) -> str:
    if arg_value is not None and arg_value.strip():
        command = arg_value
    else:
        configured = config.get(key)
        if configured is not None and configured.strip():
            command = configured
        elif require_explicit:
            raise InvalidConfigValue(key, "<unset>", "a command must be set for projects without a Cargo.toml")
        else:
            command = default
    if not command.strip():
        raise InvalidConfigValue(key, "<empty>", "command is empty")
    return command.strip()


def resolve_verifier_settings(
    config: Config,
    repo_root: Path,
    test_command: str | None = None,
    coverage_command: str | None = None,
    coverage_min: float | None = None,
) -> VerifierSettings:
    cargo = uses_cargo_defaults(repo_root)
    test = resolve_command(
        test_command,
        config,
        "verifier.test_command",
        DEFAULT_CARGO_TEST_COMMAND if cargo else "",
        require_explicit=not cargo,
    )
    coverage = resolve_command(
        coverage_command,
        config,
        "verifier.coverage_command",
        DEFAULT_CARGO_COVERAGE_COMMAND if cargo else "",
        require_explicit=not cargo,
    )
    if coverage_min is not None:
        minimum = validate_percentage("verifier.coverage_min", coverage_min)
    else:
        minimum = resolve_percentage(config, "verifier.coverage_min", DEFAULT_COVERAGE_MIN)
    warn = resolve_percentage(config, "verifier.coverage_warn", DEFAULT_COVERAGE_WARN)
    return VerifierSettings(test_command=test, coverage_command=coverage, coverage_min=minimum, coverage_warn=warn)


def resolve_static_check_settings(config: Config) -> StaticCheckSettings:
    prefix = "verifier.static_checks"
    return StaticCheckSettings(
        enabled=resolve_bool(config, f"{prefix}.enabled", True),
        check_todo=resolve_bool(config, f"{prefix}.todo", True),
        check_comments=resolve_bool(config, f"{prefix}.comments", True),
        check_duplicates=resolve_bool(config, f"{prefix}.duplicate", True),
        allow_patterns=resolve_patterns(config, f"{prefix}.allow", DEFAULT_STATIC_ALLOW_PATTERNS),
        ignore_patterns=resolve_patterns(config, f"{prefix}.ignore", DEFAULT_STATIC_IGNORE_PATTERNS),
        todo_markers=resolve_markers(config, f"{prefix}.todo_markers", DEFAULT_TODO_MARKERS),
        max_comment_lines=resolve_int(
            config, f"{prefix}.max_comment_lines", DEFAULT_STATIC_MAX_COMMENT_LINES, minimum=1
        ),
        max_comment_chars=resolve_int(
            config, f"{prefix}.max_comment_chars", DEFAULT_STATIC_MAX_COMMENT_CHARS, minimum=1
        ),
        duplicate_block_lines=resolve_int(
            config, f"{prefix}.duplicate_block_lines", DEFAULT_STATIC_DUPLICATE_BLOCK_LINES, minimum=2
        ),
        duplicate_min_alnum_lines=resolve_int(
            config, f"{prefix}.duplicate_min_alnum_lines", DEFAULT_STATIC_DUPLICATE_MIN_ALNUM_LINES, minimum=1
        ),
        max_file_bytes=resolve_int(config, f"{prefix}.max_file_bytes", DEFAULT_STATIC_MAX_FILE_BYTES, minimum=64),
    )


def resolve_min_rating(config: Config, default: float = DEFAULT_REVIEW_MIN_RATING) -> float:
    """Read min_rating on a 0–10 scale; values above 10 are treated as percentages."""
    rating = resolve_percentage(config, "verifier.review.min_rating", default)
    if rating > 10.0:
        return rating / 10.0
    return rating


def resolve_merge_method(config: Config) -> MergeMethod:
    value = config.get("verifier.review.merge_method")
    method = value.strip() if value and value.strip() else MergeMethod.MERGE.value
    try:
        return MergeMethod(method.lower())
    except ValueError:
        raise InvalidConfigValue("verifier.review.merge_method", method, "expected merge, squash or rebase")


def resolve_review_gate_settings(config: Config) -> ReviewGateSettings:
    prefix = "verifier.review"
    reviewer = config.get(f"{prefix}.reviewer")
    return ReviewGateSettings(
        enabled=resolve_bool(config, f"{prefix}.enabled", True),
        reviewer=reviewer.strip() if reviewer and reviewer.strip() else DEFAULT_REVIEW_REVIEWER,
        min_rating=resolve_min_rating(config),
        max_issues=resolve_int(config, f"{prefix}.max_issues", DEFAULT_REVIEW_MAX_ISSUES, minimum=0),
        poll_seconds=resolve_int(config, f"{prefix}.poll_seconds", DEFAULT_REVIEW_POLL_SECONDS, minimum=5),
        timeout_seconds=resolve_int(config, f"{prefix}.timeout_seconds", DEFAULT_REVIEW_TIMEOUT_SECONDS, minimum=30),
        require_approval=resolve_bool(config, f"{prefix}.require_approval", True),
        require_checks=resolve_bool(config, f"{prefix}.require_checks", True),
        merge_method=resolve_merge_method(config),
    )
