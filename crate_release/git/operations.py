"""Git operations that modify repository state.

Each operation honours ``dry_run`` by logging what it would do and
reporting success. Failures are reported as a False return so the caller
decides whether they are fatal.
"""

import logging
import shlex
from pathlib import Path

from crate_release.exceptions import GitError
from crate_release.utils.shell import ShellError, call, run

logger = logging.getLogger(__name__)


def _call_git(argv: list[str], cwd: Path, dry_run: bool) -> bool:
    if dry_run:
        logger.info("Would run: %s", shlex.join(argv))
        return True
    logger.debug("running %s", shlex.join(argv))
    try:
        return call(argv, cwd=cwd)
    except OSError as e:
        raise GitError(f"Failed to run {argv[0]}", details=str(e)) from e


def commit_all(cwd: Path, message: str, sign: bool, dry_run: bool) -> bool:
    """Commit every tracked modification under ``cwd``."""
    argv = ["git", "commit", "--all", "--message", message]
    if sign:
        argv.append("--gpg-sign")
    return _call_git(argv, cwd, dry_run)


def tag(cwd: Path, name: str, message: str, sign: bool, dry_run: bool) -> bool:
    """Create an annotated (or signed) tag at HEAD."""
    argv = ["git", "tag", name, "--annotate", "--message", message]
    if sign:
        argv.append("--sign")
    return _call_git(argv, cwd, dry_run)


def push(
    cwd: Path,
    remote: str,
    refs: list[str],
    options: list[str],
    dry_run: bool,
) -> bool:
    """Push ``refs`` (branches and tags) to ``remote``."""
    argv = ["git", "push"]
    for option in options:
        argv.extend(["--push-option", option])
    argv.append(remote)
    argv.extend(refs)
    return _call_git(argv, cwd, dry_run)


def fetch(cwd: Path, remote: str, branch: str) -> bool:
    """Update ``remote/branch``; a failed fetch is reported, not raised."""
    try:
        result = run(["git", "fetch", remote, branch], cwd=cwd, check=False)
    except OSError as e:
        raise GitError("Failed to run git fetch", details=str(e)) from e
    except ShellError as e:
        logger.debug("fetch of %s/%s timed out: %s", remote, branch, e)
        return False
    if result.returncode != 0:
        logger.debug("fetch of %s/%s failed: %s", remote, branch, result.stderr.strip())
        return False
    return True
