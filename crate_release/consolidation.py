"""Shared versions and commit consolidation.

Packages with ``shared-version`` must land on the same version, and
packages with ``consolidate-commits`` fold their commits into a single
workspace commit per phase.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from crate_release import git
from crate_release.config.models import ReleaseConfig
from crate_release.exceptions import EXIT_FAILURE, ReleaseExit
from crate_release.plan import PackageRelease
from crate_release.template import Template
from crate_release.utils.version import Version

logger = logging.getLogger(__name__)

Phase = Literal["pre", "post"]


def find_shared_version(packages: list[PackageRelease]) -> Version | None:
    """The common version of all shared-version packages.

    Raises:
        ReleaseExit: 101 if two shared-version packages disagree
    """
    shared = [pkg for pkg in packages if pkg.config.shared_version]
    if not shared:
        return None

    version = shared[0].version
    for pkg in shared[1:]:
        if pkg.version.bare != version.bare:
            logger.error(
                "Crate versions deviated, aborting: %s is at %s, %s is at %s",
                shared[0].name,
                version,
                pkg.name,
                pkg.version,
            )
            raise ReleaseExit(EXIT_FAILURE)
    return version


def find_shared_post_version(packages: list[PackageRelease]) -> Version | None:
    """First development version among shared-version packages."""
    for pkg in packages:
        if pkg.config.shared_version and pkg.post_version is not None:
            return pkg.post_version
    return None


@dataclass
class CommitPolicy:
    """Decides where the commits of one phase go.

    A package with ``consolidate-commits`` only records that a shared commit
    is needed; others are committed on their own right away.
    """

    workspace_root: Path
    config: ReleaseConfig
    phase: Phase
    dry_run: bool
    shared_requested: bool = False

    def _message(self, config: ReleaseConfig) -> str:
        if self.phase == "pre":
            return config.pre_release_commit_message
        return config.post_release_commit_message

    def commit_package(self, pkg: PackageRelease, template: Template) -> None:
        """Commit ``pkg``'s changes, or defer them to the shared commit.

        Raises:
            ReleaseExit: 101 if git refuses the commit
        """
        if pkg.config.consolidate_commits:
            self.shared_requested = True
            return
        message = template.render(self._message(pkg.config))
        if not git.commit_all(pkg.package_root, message, pkg.config.sign_commit, self.dry_run):
            logger.error("Failed to commit %s", pkg.name)
            raise ReleaseExit(EXIT_FAILURE)

    def commit_shared(self, template: Template) -> bool:
        """Create the workspace commit if any package asked for one.

        Returns:
            True if a commit was made (or would be, in dry-run)

        Raises:
            ReleaseExit: 101 if git refuses the commit
        """
        if not self.shared_requested:
            return False
        message = template.render(self._message(self.config))
        if not git.commit_all(
            self.workspace_root, message, self.config.sign_commit, self.dry_run
        ):
            logger.error("Failed to create the workspace commit")
            raise ReleaseExit(EXIT_FAILURE)
        return True
