"""Glob-style allow/ignore matching over repository-relative paths.

Only ``*`` is a wildcard; it matches any run of characters, including ``/``.
A pattern starting with ``**/`` is also tried with that prefix removed, so
``**/target/**`` matches both ``target/x`` and ``nested/target/x``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable


def normalize_path(path: str) -> str:
    value = path.replace("\\", "/")
    while value.startswith("./") or value.startswith("/"):
        value = value[2:] if value.startswith("./") else value[1:]
    return value


def relative_path(root: Path, path: Path) -> str:
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = path
    return normalize_path(rel.as_posix())


def wildcard_match(pattern: str, text: str) -> bool:
    """Greedy two-pointer glob match, backtracking to the most recent ``*``."""
    pi = ti = 0
    star = -1
    match_index = 0

    while ti < len(text):
        if pi < len(pattern) and pattern[pi] == text[ti]:
            pi += 1
            ti += 1
        elif pi < len(pattern) and pattern[pi] == "*":
            star = pi
            match_index = ti
            pi += 1
        elif star != -1:
            pi = star + 1
            match_index += 1
            ti = match_index
        else:
            return False

    while pi < len(pattern) and pattern[pi] == "*":
        pi += 1
    return pi == len(pattern)


def path_matches_any(path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if wildcard_match(pattern, path):
            return True
        if pattern.startswith("**/") and wildcard_match(pattern[3:], path):
            return True
    return False


def path_is_allowed(path: str, allow_patterns: Iterable[str]) -> bool:
    allow_patterns = list(allow_patterns)
    if not allow_patterns:
        return True
    return path_matches_any(normalize_path(path), allow_patterns)


def path_is_ignored(path: str, is_dir: bool, ignore_patterns: Iterable[str]) -> bool:
    ignore_patterns = list(ignore_patterns)
    path = normalize_path(path)
    if path_matches_any(path, ignore_patterns):
        return True
    return is_dir and path_matches_any(path + "/", ignore_patterns)
