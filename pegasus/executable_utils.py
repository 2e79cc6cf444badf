"""Executable discovery and subprocess helpers for Pegasus.

Functions:
    find_executable: Locate an executable in PATH or node_modules.
    require_executable: Like find_executable, but a missing tool is an environment error.
    run_command: Run a subprocess with logging and secret redaction.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from .errors import PipelineEnvironmentError, redact

logger = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 20


class CommandFailed(Exception):
    """A subprocess exited with a nonzero status.

    Attributes:
        command: The command line with secrets redacted.
        returncode: Exit status.
        output: Last lines of stderr (or stdout when stderr is empty), redacted.
    """

    def __init__(self, command: str, returncode: int, output: str):
        self.command = command
        self.returncode = returncode
        self.output = output
        detail = f": {output}" if output else ""
        super().__init__(f"`{command}` exited with status {returncode}{detail}")


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or local node_modules.

    Args:
        name: Name of the executable to find (e.g., 'git', 'hexo').
        project_root: Optional project root to search ``node_modules/.bin``.

    Returns:
        Full path to the executable if found, None otherwise.

    Examples:
        >>> find_executable('git')
        '/usr/bin/git'

        >>> find_executable('hexo', Path('/my/blog'))
        '/my/blog/node_modules/.bin/hexo'
    """
    found = shutil.which(name)
    if found:
        return found
    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return None


def require_executable(name: str, project_root: Path | None = None, step: str | None = None) -> str:
    """Find an executable or raise PipelineEnvironmentError.

    Args:
        name: Name of the executable.
        project_root: Optional project root to search ``node_modules/.bin``.
        step: Pipeline step to attribute the error to.

    Returns:
        Full path to the executable.
    """
    found = find_executable(name, project_root)
    if found is None:
        raise PipelineEnvironmentError(f"Required executable not found: {name}", step=step)
    return found


def _tail(text: str | None) -> str:
    if not text:
        return ""
    lines = text.strip().splitlines()
    return "\n".join(lines[-OUTPUT_TAIL_LINES:])


def run_command(
    cmd: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    secrets: Iterable[str | None] = (),
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a subprocess, logging the command and its output at debug level.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Full environment for the child; inherits the current one when None.
        secrets: Values to redact from logs and errors.
        check: Raise CommandFailed on a nonzero exit status.

    Returns:
        The CompletedProcess with captured text output.

    Raises:
        CommandFailed: If check is True and the command exits nonzero.
    """
    hidden = [s for s in secrets if s]
    display = redact(" ".join(str(part) for part in cmd), hidden)
    logger.debug("$ %s", display)
    result = subprocess.run(
        [str(part) for part in cmd],
        cwd=cwd,
        env=dict(env) if env is not None else None,
        capture_output=True,
        text=True,
    )
    if result.stdout:
        logger.debug(redact(result.stdout.rstrip(), hidden))
    if result.stderr:
        logger.debug(redact(result.stderr.rstrip(), hidden))
    if check and result.returncode != 0:
        output = _tail(result.stderr) or _tail(result.stdout)
        raise CommandFailed(display, result.returncode, redact(output, hidden))
    return result
