"""Read-only git queries.

All functions run git through crate_release.utils.shell.run() and raise
GitError when git itself fails.
"""

import logging
from pathlib import Path

from crate_release.exceptions import GitBinError, GitError
from crate_release.utils.shell import ShellError, run

logger = logging.getLogger(__name__)


def git_version() -> str:
    """Return ``git --version`` output.

    Raises:
        GitBinError: If git is not installed
    """
    try:
        return run(["git", "--version"]).stdout.strip()
    except (OSError, ShellError):
        raise GitBinError() from None


def top_level(cwd: Path) -> Path:
    """Root of the repository containing ``cwd``."""
    try:
        result = run(["git", "rev-parse", "--show-toplevel"], cwd=cwd)
        return Path(result.stdout.strip())
    except ShellError as e:
        raise GitError(
            f"{cwd} is not inside a git repository",
            details=str(e),
            fix_hint="Run `git init` or release from inside a repository",
        ) from e


def is_dirty(cwd: Path) -> list[str] | None:
    """Uncommitted files under ``cwd``, or None when the tree is clean.

    Raises:
        GitError: If git status fails
    """
    try:
        result = run(["git", "status", "--porcelain", "--", "."], cwd=cwd)
    except ShellError as e:
        raise GitError(
            "Failed to check git working directory status",
            details=str(e),
            fix_hint="Ensure you are in a git repository",
        ) from e
    files = [line[3:].strip() for line in result.stdout.splitlines() if line.strip()]
    return files or None


def tag_exists(cwd: Path, name: str) -> bool:
    try:
        result = run(
            ["git", "rev-parse", "--verify", "--quiet", f"refs/tags/{name}"],
            cwd=cwd,
            check=False,
        )
    except ShellError as e:
        raise GitError(f"Failed to look up tag {name}", details=str(e)) from e
    return result.returncode == 0


def find_last_tag(cwd: Path, glob: str) -> str | None:
    """Most recent tag reachable from HEAD whose name matches ``glob``."""
    try:
        result = run(
            ["git", "describe", "--tags", "--abbrev=0", "--match", glob],
            cwd=cwd,
            check=False,
        )
    except ShellError as e:
        raise GitError(f"Failed to search tags matching {glob}", details=str(e)) from e
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def current_branch(cwd: Path) -> str:
    """Checked-out branch name; ``HEAD`` when detached."""
    try:
        result = run(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
        return result.stdout.strip()
    except ShellError as e:
        raise GitError(
            "Failed to get current branch name",
            details=str(e),
            fix_hint="Ensure the repository has at least one commit",
        ) from e


def is_behind_remote(cwd: Path, remote: str, branch: str) -> bool:
    """Whether ``remote/branch`` has commits HEAD lacks.

    A missing remote-tracking branch counts as not behind.
    """
    try:
        result = run(
            ["git", "rev-list", "--count", f"HEAD..{remote}/{branch}"],
            cwd=cwd,
            check=False,
        )
    except ShellError as e:
        raise GitError(f"Failed to compare HEAD with {remote}/{branch}", details=str(e)) from e
    if result.returncode != 0:
        logger.debug("no remote-tracking branch %s/%s", remote, branch)
        return False
    try:
        return int(result.stdout.strip()) > 0
    except ValueError as e:
        raise GitError("Failed to parse commit count", details=result.stdout) from e


def changed_files(cwd: Path, tag: str) -> list[Path] | None:
    """Files under ``cwd`` that differ from ``tag``, including uncommitted edits.

    Returns:
        Absolute paths, or None when ``tag`` does not exist
    """
    if not tag_exists(cwd, tag):
        return None
    root = top_level(cwd)
    try:
        result = run(["git", "diff", "--name-only", tag, "--", "."], cwd=cwd)
    except ShellError as e:
        raise GitError(f"Failed to diff against {tag}", details=str(e)) from e
    return [root / line.strip() for line in result.stdout.splitlines() if line.strip()]
