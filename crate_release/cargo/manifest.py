"""Format-preserving Cargo.toml edits.

Uses tomlkit so comments, ordering and whitespace survive a version bump.
"""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from crate_release.cargo.metadata import cargo_bin
from crate_release.config.models import DependentVersion
from crate_release.exceptions import (
    DependencyVersionConflictError,
    InvalidManifestError,
    ReleaseIOError,
)
from crate_release.utils.diff import log_diff
from crate_release.utils.requirement import matches, upgrade_requirement
from crate_release.utils.shell import ShellError, run
from crate_release.utils.version import Version

logger = logging.getLogger(__name__)

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def _read(path: Path) -> tuple[str, tomlkit.TOMLDocument]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReleaseIOError(f"Failed to read {path}", details=str(e)) from e
    try:
        return text, tomlkit.parse(text)
    except TOMLKitError as e:
        raise InvalidManifestError(f"Invalid TOML in {path}", details=str(e)) from e


def _write(path: Path, before: str, doc: tomlkit.TOMLDocument, dry_run: bool) -> None:
    after = tomlkit.dumps(doc)
    if after == before:
        return
    if dry_run:
        log_diff(path, before, after, noisy=False)
        return
    try:
        path.write_text(after, encoding="utf-8")
    except OSError as e:
        raise ReleaseIOError(f"Failed to write {path}", details=str(e)) from e


def set_package_version(
    manifest_path: Path,
    version: str,
    dry_run: bool,
    workspace_manifest: Path | None = None,
) -> None:
    """Write ``[package].version``.

    A package using ``version.workspace = true`` has the version written to
    ``[workspace.package]`` of ``workspace_manifest`` instead.

    Raises:
        InvalidManifestError: If the manifest has no [package] table
    """
    before, doc = _read(manifest_path)
    package = doc.get("package")
    if not isinstance(package, dict):
        raise InvalidManifestError(f"{manifest_path} has no [package] table")

    current = package.get("version")
    if isinstance(current, dict) and current.get("workspace"):
        if workspace_manifest is None:
            raise InvalidManifestError(
                f"{manifest_path} inherits its version but no workspace manifest was given"
            )
        ws_before, ws_doc = _read(workspace_manifest)
        ws_package = ws_doc.get("workspace", {}).get("package")
        if not isinstance(ws_package, dict):
            raise InvalidManifestError(
                f"{workspace_manifest} has no [workspace.package] table"
            )
        ws_package["version"] = version
        _write(workspace_manifest, ws_before, ws_doc, dry_run)
        return

    package["version"] = version
    _write(manifest_path, before, doc, dry_run)


def _dependency_tables(doc: tomlkit.TOMLDocument) -> Iterator[dict[str, Any]]:
    for key in DEPENDENCY_TABLES:
        table = doc.get(key)
        if isinstance(table, dict):
            yield table
    for target in doc.get("target", {}).values():
        if not isinstance(target, dict):
            continue
        for key in DEPENDENCY_TABLES:
            table = target.get(key)
            if isinstance(table, dict):
                yield table
    workspace_deps = doc.get("workspace", {}).get("dependencies")
    if isinstance(workspace_deps, dict):
        yield workspace_deps


def set_dependency_version(manifest_path: Path, name: str, req: str, dry_run: bool) -> bool:
    """Set the ``version`` key of every dependency on ``name``.

    Returns:
        True if the manifest declares a version for ``name`` anywhere
    """
    before, doc = _read(manifest_path)
    found = False
    for table in _dependency_tables(doc):
        for key, item in table.items():
            if not isinstance(item, dict):
                continue
            if item.get("package", key) != name or "version" not in item:
                continue
            item["version"] = req
            found = True
    if found:
        _write(manifest_path, before, doc, dry_run)
    return found


def upgrade_dependency_req(
    manifest_name: str,
    manifest_path: Path,
    name: str,
    req: str,
    version: Version,
    policy: DependentVersion,
    dry_run: bool,
    workspace_manifest: Path | None = None,
) -> str | None:
    """Apply the ``dependent-version`` policy to one dependent.

    Args:
        manifest_name: Name of the dependent package
        manifest_path: Manifest of the dependent package
        name: Package being released
        req: The dependent's current requirement on ``name``
        version: The version ``name`` is moving to
        policy: upgrade, fix, error, warn or ignore
        dry_run: Log the edit instead of writing it
        workspace_manifest: Fallback for requirements in [workspace.dependencies]

    Returns:
        The rewritten requirement, or None when it was left alone

    Raises:
        DependencyVersionConflictError: ``error`` policy and ``req`` excludes ``version``
        UnsupportedVersionReqError: The requirement's operator cannot be rewritten
    """
    if policy == "ignore":
        return None

    compatible = matches(req, version.bare)
    if policy == "warn":
        if not compatible:
            logger.warning(
                "%s's dependency on %s `%s` is incompatible with %s",
                manifest_name,
                name,
                req,
                version.bare_string,
            )
        return None
    if policy == "error":
        if not compatible:
            raise DependencyVersionConflictError(
                f"{manifest_name}'s dependency on {name} `{req}` is incompatible with "
                f"{version.bare_string}",
                fix_hint="Set `dependent-version` to `upgrade` or `fix`",
            )
        return None
    if policy == "fix" and compatible:
        return None

    new_req = upgrade_requirement(req, version.bare)
    if new_req is None:
        return None
    logger.info(
        "%s %s's dependency on %s to `%s` (from `%s`)",
        "Fixing" if policy == "fix" else "Upgrading",
        manifest_name,
        name,
        new_req,
        req,
    )
    if not set_dependency_version(manifest_path, name, new_req, dry_run):
        if workspace_manifest is not None:
            set_dependency_version(workspace_manifest, name, new_req, dry_run)
    return new_req


def update_lock(manifest_path: Path) -> None:
    """Refresh Cargo.lock after versions changed.

    Raises:
        ReleaseIOError: If cargo fails
    """
    cmd = [
        cargo_bin(),
        "update",
        "--workspace",
        "--offline",
        "--manifest-path",
        str(manifest_path),
    ]
    try:
        run(cmd, timeout=300)
    except (OSError, ShellError) as e:
        raise ReleaseIOError(
            "Failed to update Cargo.lock",
            details=str(e),
            fix_hint="Run `cargo update --workspace --offline` to see the error",
        ) from e
