"""Lifecycle hook execution.

A hook is a user command run from the crate root with a fixed set of
environment variables describing the release. Hooks run in dry-run as
well; ``DRY_RUN`` tells them which mode they are in.
"""

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path

from crate_release.exceptions import ReleaseIOError
from crate_release.template import Template
from crate_release.utils.shell import call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookEnvironment:
    """Environment contract handed to every hook."""

    prev_version: str
    prev_metadata: str
    new_version: str
    new_metadata: str
    dry_run: bool
    crate_name: str
    workspace_root: Path
    crate_root: Path

    def as_env(self) -> dict[str, str]:
        return {
            "PREV_VERSION": self.prev_version,
            "PREV_METADATA": self.prev_metadata,
            "NEW_VERSION": self.new_version,
            "NEW_METADATA": self.new_metadata,
            "DRY_RUN": "true" if self.dry_run else "false",
            "CRATE_NAME": self.crate_name,
            "WORKSPACE_ROOT": str(self.workspace_root),
            "CRATE_ROOT": str(self.crate_root),
        }


def hook_argv(command: str | list[str], template: Template) -> list[str]:
    """Split a hook command and render each argument."""
    args = shlex.split(command) if isinstance(command, str) else list(command)
    return [template.render(arg) for arg in args]


def run_hook(
    command: str | list[str],
    template: Template,
    env: HookEnvironment,
    cwd: Path,
) -> bool:
    """Run a hook and report whether it exited successfully.

    Raises:
        ReleaseIOError: If the hook program cannot be started
    """
    argv = hook_argv(command, template)
    if not argv:
        return True
    logger.info("Calling hook: %s", shlex.join(argv))
    try:
        return call(argv, cwd=cwd, env=env.as_env())
    except OSError as e:
        raise ReleaseIOError(
            f"Failed to run hook `{argv[0]}`",
            details=str(e),
            fix_hint="Check that the hook program exists and is executable",
        ) from e
