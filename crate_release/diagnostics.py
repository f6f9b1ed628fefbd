"""Warnings about packages whose release state looks suspicious.

None of these checks fail a release; they point out excluded packages
that probably should have been released and selected packages that did
not change since their last tag.
"""

import logging
from pathlib import Path

from crate_release import git
from crate_release.cargo.index import CratesIndex
from crate_release.plan import PackageRelease

logger = logging.getLogger(__name__)


def changed_since(
    workspace_root: Path, pkg: PackageRelease, since_ref: str
) -> list[Path] | None:
    """Files of ``pkg`` changed since ``since_ref``.

    Cargo.lock only counts for packages with a binary target, since a
    library's published contents do not include the lock file.

    Returns:
        Changed paths, or None when ``since_ref`` does not exist
    """
    lock_path = workspace_root / "Cargo.lock"
    root = workspace_root if pkg.has_bin else pkg.package_root
    changed = git.changed_files(root, since_ref)
    if changed is None:
        return None
    return [
        path
        for path in changed
        if (pkg.has_bin and path == lock_path) or path.is_relative_to(pkg.package_root)
    ]


def warn_excluded_changes(workspace_root: Path, excluded: list[PackageRelease]) -> None:
    for pkg in excluded:
        if pkg.prior_tag is None:
            logger.debug("Disabled by user, skipping %s (no tag found)", pkg.name)
            continue
        changed = changed_since(workspace_root, pkg, pkg.prior_tag)
        if changed is None:
            logger.debug("Disabled by user, skipping %s (no %s tag)", pkg.name, pkg.prior_tag)
        elif changed == [workspace_root / "Cargo.lock"]:
            logger.warning(
                "Disabled by user, skipping %s despite lock file being changed since %s",
                pkg.name,
                pkg.prior_tag,
            )
        elif changed:
            logger.warning(
                "Disabled by user, skipping %s which has files changed since %s: %s",
                pkg.name,
                pkg.prior_tag,
                ", ".join(str(p) for p in changed),
            )
        else:
            logger.debug(
                "Disabled by user, skipping %s (no changes since %s)", pkg.name, pkg.prior_tag
            )


def warn_excluded_unpublished(index: CratesIndex, excluded: list[PackageRelease]) -> None:
    for pkg in excluded:
        if not pkg.publishes_to_default_registry:
            continue
        version = pkg.initial_version.full_string
        if not index.is_published(pkg.name, version):
            logger.warning(
                "Disabled by user, skipping %s v%s despite being unpublished", pkg.name, version
            )


def warn_changed(workspace_root: Path, packages: list[PackageRelease]) -> None:
    """Warn about selected packages that are released without changes.

    A package whose own files are unchanged is still expected to release
    when one of its workspace dependencies changed.
    """
    changed_names: set[str] = set()
    for pkg in packages:
        version = pkg.version.full_string
        if pkg.prior_tag is None:
            logger.debug(
                "cannot detect changes for %s because no tag was found. "
                "Try setting `--prev-tag-name <TAG>`.",
                pkg.name,
            )
            continue
        changed = changed_since(workspace_root, pkg, pkg.prior_tag)
        if changed is None:
            logger.debug(
                "cannot detect changes for %s because tag %s is missing. "
                "Try setting `--prev-tag-name <TAG>`.",
                pkg.name,
                pkg.prior_tag,
            )
        elif changed:
            logger.debug(
                "Files changed in %s since %s: %s",
                pkg.name,
                pkg.prior_tag,
                ", ".join(str(p) for p in changed),
            )
            changed_names.add(pkg.name)
        elif changed_names.intersection(pkg.dependencies):
            logger.debug("Dependency changed for %s since %s", pkg.name, pkg.prior_tag)
            changed_names.add(pkg.name)
        else:
            logger.warning(
                "Updating %s to %s despite no changes made since tag %s",
                pkg.name,
                version,
                pkg.prior_tag,
            )
