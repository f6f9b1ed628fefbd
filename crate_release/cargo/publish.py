"""``cargo publish`` invocation."""

import logging
import shlex
from pathlib import Path

from crate_release.cargo.metadata import cargo_bin
from crate_release.exceptions import ReleaseIOError
from crate_release.utils.shell import call

logger = logging.getLogger(__name__)


def publish_command(
    dry_run: bool,
    verify: bool,
    manifest_path: Path,
    package: str | None = None,
    features: list[str] | None = None,
    all_features: bool = False,
    registry: str | None = None,
    target: str | None = None,
) -> list[str]:
    """Build the ``cargo publish`` argument list."""
    cmd = [cargo_bin(), "publish", "--manifest-path", str(manifest_path)]
    if package:
        cmd.extend(["--package", package])
    if registry:
        cmd.extend(["--registry", registry])
    if dry_run:
        cmd.extend(["--dry-run", "--allow-dirty"])
    if not verify:
        cmd.append("--no-verify")
    if target:
        cmd.extend(["--target", target])
    if all_features:
        cmd.append("--all-features")
    elif features:
        cmd.extend(["--features", " ".join(features)])
    return cmd


def publish(
    dry_run: bool,
    verify: bool,
    manifest_path: Path,
    package: str | None = None,
    features: list[str] | None = None,
    all_features: bool = False,
    registry: str | None = None,
    target: str | None = None,
) -> bool:
    """Run ``cargo publish`` with output streamed to the terminal.

    In dry-run cargo itself runs with ``--dry-run`` so packaging problems
    still surface.

    Returns:
        True if cargo exited successfully

    Raises:
        ReleaseIOError: If cargo cannot be started
    """
    cmd = publish_command(
        dry_run, verify, manifest_path, package, features, all_features, registry, target
    )
    logger.debug("running %s", shlex.join(cmd))
    try:
        return call(cmd, cwd=manifest_path.parent)
    except OSError as e:
        raise ReleaseIOError("Failed to run cargo publish", details=str(e)) from e
