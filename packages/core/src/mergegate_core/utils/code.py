from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath


@dataclass(frozen=True)
class CommentStyle:
    line_prefixes: tuple[str, ...]
    block_start: str | None = None
    block_end: str | None = None


C_STYLE = CommentStyle(line_prefixes=("//",), block_start="/*", block_end="*/")
HASH_STYLE = CommentStyle(line_prefixes=("#",))
SQL_STYLE = CommentStyle(line_prefixes=("--",), block_start="/*", block_end="*/")

COMMENT_STYLES = {
    **dict.fromkeys(("rs", "js", "ts", "tsx", "jsx", "c", "cc", "cpp", "h", "hpp", "java", "go", "cs"), C_STYLE),
    **dict.fromkeys(("py", "rb", "sh", "bash", "zsh", "yaml", "yml", "toml", "ini", "ps1"), HASH_STYLE),
    "sql": SQL_STYLE,
}

# Source files scanned for copy-pasted blocks. Markup and config files repeat
# boilerplate legitimately, so they are left out.
DUPLICATE_CANDIDATE_EXTENSIONS = {
    "rs",
    "js",
    "ts",
    "tsx",
    "jsx",
    "py",
    "go",
    "java",
    "c",
    "cc",
    "cpp",
    "h",
    "hpp",
    "cs",
}


def _extension(file_name: str | PurePath) -> str:
    return PurePath(file_name).suffix.lstrip(".")


def comment_style_for_path(file_name: str | PurePath) -> CommentStyle | None:
    return COMMENT_STYLES.get(_extension(file_name))


def is_duplicate_candidate(file_name: str | PurePath) -> bool:
    return _extension(file_name) in DUPLICATE_CANDIDATE_EXTENSIONS


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only and drop a trailing ``\\r`` from each line.

    ``str.splitlines`` also breaks on form feeds, vertical tabs and Unicode
    separators, which would shift every later line number.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
