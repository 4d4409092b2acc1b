"""Coverage percentage extraction from free-form tool output.

Tools disagree on how they report coverage (tarpaulin, llvm-cov, pytest-cov,
jest...). Rather than parse each format, we scan lines for a coverage phrase
and read the last ``N%`` token on that line.

Precedence:
  - a "coverage results" line wins immediately (first one found);
  - otherwise the last line mentioning "line coverage" or "coverage" wins.
"""

from __future__ import annotations

import enum

from mergegate_core.utils.code import split_lines

_EPSILON = 1e-9


class CoverageLineKind(enum.Enum):
    RESULTS = "results"
    LINE_COVERAGE = "line_coverage"
    COVERAGE = "coverage"


def extract_coverage_percent(output: str) -> float | None:
    fallback = None
    for line in split_lines(output):
        found = coverage_percent_from_line(line)
        if found is None:
            continue
        kind, value = found
        if kind is CoverageLineKind.RESULTS:
            return value
        fallback = value
    return fallback


def coverage_percent_from_line(line: str) -> tuple[CoverageLineKind, float] | None:
    lower = line.lower()
    if "coverage results" in lower:
        kind = CoverageLineKind.RESULTS
    elif "line coverage" in lower:
        kind = CoverageLineKind.LINE_COVERAGE
    elif "coverage" in lower:
        kind = CoverageLineKind.COVERAGE
    else:
        return None
    value = parse_percent_from_line(line)
    if value is None:
        return None
    return kind, value


def parse_percent_from_line(line: str) -> float | None:
    """Return the number immediately preceding the last ``%`` on the line."""
    found = None
    for idx, ch in enumerate(line):
        if ch != "%":
            continue
        start = idx
        while start > 0 and (line[start - 1].isdigit() or line[start - 1] == "."):
            start -= 1
        if start == idx:
            continue
        try:
            found = float(line[start:idx])
        except ValueError:
            continue
    return found


def is_below(value: float, threshold: float) -> bool:
    return value + _EPSILON < threshold


def coverage_warn_message(coverage: float, warn_min: float) -> str | None:
    if is_below(coverage, warn_min):
        return f"Warning: Coverage {coverage:.2f}% below soft target {warn_min:.2f}%."
    return None
