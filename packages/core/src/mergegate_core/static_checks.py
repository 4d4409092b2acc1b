"""Hygiene checks over the working tree.

Three line-level detectors run over every allowed, non-ignored text file:

  - TODO markers (word-bounded, case-insensitive)
  - verbose comment blocks (too many lines or characters)
  - duplicate blocks (identical runs of non-blank lines across the tree)

None of them parse source code. They are deliberately heuristic so they work
the same for every language the allow list admits.

Violations from all detectors are merged and sorted by (path, line) so the
report is byte-for-byte stable between runs on the same tree.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from mergegate_core.errors import StaticChecksFailed
from mergegate_core.settings import StaticCheckSettings
from mergegate_core.utils.code import CommentStyle, comment_style_for_path, is_duplicate_candidate, split_lines
from mergegate_core.utils.paths import path_is_allowed, path_is_ignored, relative_path

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticViolation:
    """One finding, anchored at a repository-relative path and 1-based line."""

    path: str
    line: int
    message: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line} {self.message}"


@dataclass(frozen=True)
class BlockLocation:
    path: str
    line: int


@dataclass
class FileSnapshot:
    """File lines held only for the duration of duplicate detection."""

    path: str
    lines: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------


def collect_static_check_files(root: Path, settings: StaticCheckSettings) -> list[Path]:
    """Return allowed, non-ignored regular files under root, sorted by relative path.

    Symlinks are skipped entirely and ignored directories are pruned before
    descent, so large vendored trees (node_modules, target) are never walked.
    """
    root = Path(root)
    found: list[tuple[str, Path]] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept = []
        for name in dirnames:
            path = current / name
            if path.is_symlink():
                continue
            if path_is_ignored(relative_path(root, path), True, settings.ignore_patterns):
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in filenames:
            path = current / name
            if path.is_symlink() or not path.is_file():
                continue
            rel = relative_path(root, path)
            if not path_is_allowed(rel, settings.allow_patterns):
                continue
            if path_is_ignored(rel, False, settings.ignore_patterns):
                continue
            found.append((rel, path))

    found.sort(key=lambda item: item[0])
    return [path for _, path in found]


def read_text_file(path: Path, max_bytes: int) -> str | None:
    """Return the file as UTF-8 text, or None when too large or not text."""
    if path.stat().st_size > max_bytes:
        logger.debug("Skipping %s: larger than %d bytes", path, max_bytes)
        return None
    data = path.read_bytes()
    if len(data) > max_bytes:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Skipping %s: not valid UTF-8", path)
        return None


# ---------------------------------------------------------------------------
# TODO markers
# ---------------------------------------------------------------------------


def _is_word_char(ch: str) -> bool:
    return ch == "_" or (ch.isascii() and ch.isalnum())


def _ascii_upper(line: str) -> str:
    # str.upper() folds some non-ASCII letters into ASCII (ı -> I, ß -> SS).
    return "".join(ch.upper() if ch.isascii() else ch for ch in line)


def line_contains_marker(line: str, markers: tuple[str, ...] | list[str]) -> str | None:
    """Return the first marker found on the line with non-word characters on both sides."""
    if not markers:
        return None
    upper = _ascii_upper(line)
    for marker in markers:
        offset = 0
        while True:
            start = upper.find(marker, offset)
            if start == -1:
                break
            end = start + len(marker)
            before_ok = start == 0 or not _is_word_char(upper[start - 1])
            after_ok = end >= len(upper) or not _is_word_char(upper[end])
            if before_ok and after_ok:
                return marker
            offset = end
    return None


def check_todo_markers(path: str, lines: list[str], settings: StaticCheckSettings) -> list[StaticViolation]:
    violations = []
    for index, line in enumerate(lines, 1):
        marker = line_contains_marker(line, settings.todo_markers)
        if marker:
            violations.append(StaticViolation(path, index, f"Found {marker} marker."))
    return violations


# ---------------------------------------------------------------------------
# Verbose comments
# ---------------------------------------------------------------------------


def comment_text_len(line: str, style: CommentStyle) -> int:
    """Length of the comment text once its comment syntax is stripped."""
    trimmed = line.lstrip()
    for prefix in style.line_prefixes:
        if trimmed.startswith(prefix):
            return len(trimmed[len(prefix) :].lstrip())
    for token in (style.block_start, style.block_end):
        if token and trimmed.startswith(token):
            return len(trimmed[len(token) :].lstrip())
    if trimmed.startswith("*"):
        return len(trimmed[1:].lstrip())
    return len(trimmed)


def check_verbose_comments(
    path: str,
    lines: list[str],
    settings: StaticCheckSettings,
    style: CommentStyle | None = None,
) -> list[StaticViolation]:
    style = style or comment_style_for_path(path)
    if style is None:
        return []

    violations: list[StaticViolation] = []
    in_block = False
    block_start_line = 0
    block_lines = 0
    block_chars = 0

    def flush() -> None:
        if block_lines > settings.max_comment_lines or block_chars > settings.max_comment_chars:
            violations.append(
                StaticViolation(
                    path,
                    block_start_line,
                    f"Verbose comment block ({block_lines} lines, {block_chars} chars) exceeds limits "
                    f"({settings.max_comment_lines} lines, {settings.max_comment_chars} chars).",
                )
            )

    for line_no, line in enumerate(lines, 1):
        trimmed = line.lstrip()
        is_comment = False
        if in_block:
            is_comment = True
            if style.block_end and style.block_end in trimmed:
                in_block = False
        elif style.block_start and trimmed.startswith(style.block_start):
            is_comment = True
            if style.block_end and style.block_end not in trimmed:
                in_block = True

        if not is_comment and any(trimmed.startswith(prefix) for prefix in style.line_prefixes):
            is_comment = True

        if is_comment:
            if block_lines == 0:
                block_start_line = line_no
            block_lines += 1
            block_chars += comment_text_len(trimmed, style)
        elif block_lines > 0:
            flush()
            block_lines = 0
            block_chars = 0

    if block_lines > 0:
        flush()
    return violations


# ---------------------------------------------------------------------------
# Duplicate blocks
# ---------------------------------------------------------------------------


def split_nonempty_blocks(lines: list[str]) -> list[tuple[int, list[str]]]:
    """Split lines into runs of non-blank lines, each with its 1-based start line."""
    blocks: list[tuple[int, list[str]]] = []
    current: list[str] = []
    start_line = 0
    for index, line in enumerate(lines, 1):
        if not line.strip():
            if current:
                blocks.append((start_line, current))
                current = []
            continue
        if not current:
            start_line = index
        current.append(line)
    if current:
        blocks.append((start_line, current))
    return blocks


def block_is_substantive(lines: list[str], min_alnum_lines: int) -> bool:
    count = sum(1 for line in lines if any(ch.isascii() and ch.isalnum() for ch in line))
    return count >= min_alnum_lines


def normalize_line_for_duplicate(line: str) -> str:
    return " ".join(line.split())


def find_duplicate_blocks(snapshots: list[FileSnapshot], settings: StaticCheckSettings) -> list[StaticViolation]:
    """Report every repeat of a block after its first (canonical) occurrence.

    Snapshots must arrive in sorted path order: the first time a normalized
    block is seen becomes the location every later copy points back to.
    """
    seen: dict[str, BlockLocation] = {}
    violations = []

    for snapshot in snapshots:
        for start_line, block in split_nonempty_blocks(snapshot.lines):
            if len(block) < settings.duplicate_block_lines:
                continue
            if not block_is_substantive(block, settings.duplicate_min_alnum_lines):
                continue
            key = "\n".join(normalize_line_for_duplicate(line) for line in block)
            if not key.strip():
                continue
            existing = seen.get(key)
            if existing is not None:
                violations.append(
                    StaticViolation(
                        snapshot.path,
                        start_line,
                        f"Duplicate block matches {existing.path}:{existing.line}.",
                    )
                )
            else:
                seen[key] = BlockLocation(snapshot.path, start_line)

    return violations


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def run_static_checks(root: Path, settings: StaticCheckSettings) -> list[StaticViolation]:
    """Scan the tree under root and return all violations sorted by (path, line)."""
    root = Path(root)
    violations: list[StaticViolation] = []
    snapshots: list[FileSnapshot] = []

    for path in collect_static_check_files(root, settings):
        contents = read_text_file(path, settings.max_file_bytes)
        if contents is None:
            continue
        rel = relative_path(root, path)
        lines = split_lines(contents)
        if settings.check_todo:
            violations.extend(check_todo_markers(rel, lines, settings))
        if settings.check_comments:
            violations.extend(check_verbose_comments(rel, lines, settings))
        if settings.check_duplicates and is_duplicate_candidate(rel):
            snapshots.append(FileSnapshot(rel, lines))

    if settings.check_duplicates:
        violations.extend(find_duplicate_blocks(snapshots, settings))

    violations.sort(key=lambda v: (v.path, v.line))
    return violations


def verify_static_checks(root: Path, settings: StaticCheckSettings) -> list[StaticViolation]:
    """Pipeline stage: run the checks, print the report, raise on any violation."""
    console.print("\n[bold]==> Static checks[/bold]")
    if not settings.enabled:
        console.print("Static checks skipped (disabled).")
        return []

    violations = run_static_checks(root, settings)
    if not violations:
        console.print("[green]Static checks OK.[/green]")
        return []

    err_console.print(f"[red]Static checks failed ({len(violations)} issue(s)):[/red]")
    for violation in violations:
        err_console.print(f"  {violation}", markup=False, highlight=False)
    raise StaticChecksFailed(violations)
