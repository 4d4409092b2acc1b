"""Run a stage command and capture its output."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from mergegate_core.errors import (
    CommandFailed,
    CommandLaunchFailed,
    InvalidConfigValue,
    ToolNotFound,
    WorkingDirectoryMissing,
)

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

# Install hints for the external tools the pipeline depends on directly.
INSTALL_HINTS = {
    "gh": "Install from https://cli.github.com/.",
    "git": "Install from https://git-scm.com/downloads.",
}


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_status: int

    @property
    def combined(self) -> str:
        return self.stdout + self.stderr

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def parse_command(command: str, key: str = "command") -> list[str]:
    """Split a shell-style command string into argv, honouring quotes."""
    try:
        parts = shlex.split(command)
    except ValueError as e:
        raise InvalidConfigValue(key, command, f"failed to parse command: {e}")
    if not parts or not parts[0].strip():
        raise InvalidConfigValue(key, command, "command cannot be empty")
    return parts


def capture(argv: list[str], cwd: Path | str) -> CommandResult:
    """Run argv in cwd and capture output without echoing anything.

    Raises WorkingDirectoryMissing when cwd is not a directory, ToolNotFound
    when the executable is missing and CommandLaunchFailed for any other
    OS-level launch failure.
    """
    if not Path(cwd).is_dir():
        raise WorkingDirectoryMissing(str(cwd))
    tool = argv[0]
    try:
        proc = subprocess.run(argv, cwd=str(cwd), capture_output=True, text=True, errors="replace")
    except FileNotFoundError:
        raise ToolNotFound(tool, INSTALL_HINTS.get(Path(tool).name))
    except OSError as e:
        logger.debug("Launching %s failed: %r", tool, e)
        raise CommandLaunchFailed(tool, e.strerror or str(e))
    return CommandResult(stdout=proc.stdout or "", stderr=proc.stderr or "", exit_status=proc.returncode)


def run_stage_command(stage: str, cwd: Path | str, command: str, key: str = "command") -> str:
    """Echo and run a stage command, streaming its output to the console.

    Returns stdout+stderr on success; raises CommandFailed on a non-zero exit.
    """
    argv = parse_command(command, key)
    console.print(f"\n[bold]==> {stage}[/bold]")
    console.print(f"$ {command}", markup=False, highlight=False)

    result = capture(argv, cwd)
    if result.stdout:
        console.out(result.stdout, end="", highlight=False)
    if result.stderr:
        err_console.out(result.stderr, end="", highlight=False)

    if not result.ok:
        logger.debug("%s command exited with %d", stage, result.exit_status)
        raise CommandFailed(stage, result.exit_status, result.combined)
    return result.combined
