"""Subprocess execution helpers.

``run`` captures output for queries (git, cargo metadata). ``call``
inherits the terminal so hooks and ``cargo publish`` stream their output to
the user.
"""

import logging
import os
import re
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class ShellError(Exception):
    """A command exited non-zero while ``check`` was requested, or timed out.

    Attributes:
        cmd: The command line that failed
        returncode: Exit status; -1 when the command timed out
        stdout: Captured standard output (ANSI stripped)
        stderr: Captured standard error (ANSI stripped)
        timeout: Seconds the command was allowed before it was killed
    """

    def __init__(
        self,
        cmd: str,
        returncode: int,
        stdout: str,
        stderr: str,
        timeout: float | None = None,
    ) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timeout = timeout
        super().__init__(f"Command failed with exit code {returncode}: {cmd}")

    def __str__(self) -> str:
        parts = [f"Command failed: {self.cmd}"]
        if self.timeout is not None:
            parts.append(f"Timed out after {self.timeout} seconds")
        else:
            parts.append(f"Exit code: {self.returncode}")
        if self.stderr:
            parts.append(f"Stderr: {self.stderr}")
        if self.stdout:
            parts.append(f"Stdout: {self.stdout}")
        return "\n".join(parts)


# ESC[...m style sequences and OSC/DCS strings
ANSI_PATTERN = re.compile(
    r"\x1b\[[0-9;]*[a-zA-Z]|\x1b\][^\x07]*\x07|\x1b[PX^_][^\x1b]*\x1b\\"
)


def strip_ansi(text: str | None) -> str:
    """Remove ANSI escape sequences so tag names and versions stay clean."""
    if not text:
        return ""
    return ANSI_PATTERN.sub("", text)


def _to_argv(cmd: str | Sequence[str]) -> list[str]:
    return shlex.split(cmd) if isinstance(cmd, str) else [str(c) for c in cmd]


def _decode(output: str | bytes | None) -> str:
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output or ""


def _merge_env(env: Mapping[str, str] | None) -> dict[str, str]:
    merged = dict(os.environ)
    if env:
        merged.update(env)
    return merged


def run(
    cmd: str | Sequence[str],
    cwd: Path | None = None,
    check: bool = True,
    timeout: int | None = 300,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output.

    Args:
        cmd: Command line (string is split with shlex) or argument list
        cwd: Working directory
        check: Raise ShellError on a non-zero exit
        timeout: Maximum execution time in seconds
        env: Extra environment variables layered over the process environment

    Returns:
        CompletedProcess with ANSI-stripped stdout/stderr

    Raises:
        ShellError: If the command fails and check=True, or times out
        FileNotFoundError: If the program does not exist
    """
    argv = _to_argv(cmd)
    logger.debug("running %s", shlex.join(argv))
    try:
        result = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=_merge_env(env),
        )
    except subprocess.TimeoutExpired as e:
        raise ShellError(
            cmd=shlex.join(argv),
            returncode=-1,
            stdout=strip_ansi(_decode(e.stdout)),
            stderr=strip_ansi(_decode(e.stderr)),
            timeout=timeout,
        ) from e
    result.stdout = strip_ansi(result.stdout)
    result.stderr = strip_ansi(result.stderr)

    if check and result.returncode != 0:
        raise ShellError(
            cmd=shlex.join(argv),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def call(
    cmd: str | Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> bool:
    """Run a command with inherited stdio and report whether it succeeded.

    Raises:
        FileNotFoundError: If the program does not exist
    """
    argv = _to_argv(cmd)
    logger.debug("calling %s", shlex.join(argv))
    return subprocess.run(argv, cwd=cwd, env=_merge_env(env)).returncode == 0
