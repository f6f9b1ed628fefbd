"""Tests for Cargo.toml edits.

Tests:
- Package version writes, including version.workspace = true
- Dependency requirement rewrites across dependency tables
- The dependent-version policies
"""

import logging
import tomllib
from pathlib import Path

import pytest

from crate_release.cargo.manifest import (
    set_dependency_version,
    set_package_version,
    upgrade_dependency_req,
)
from crate_release.exceptions import DependencyVersionConflictError, InvalidManifestError
from crate_release.utils.version import Version

MANIFEST = """\
[package]
name = "app"
# keep this comment
version = "1.0.0"

[dependencies]
core = { path = "../core", version = "1.0.0" }
serde = "1"

[dev-dependencies]
core = { path = "../core", version = "1.0.0", features = ["test"] }

[target.'cfg(unix)'.dependencies]
renamed = { package = "core", path = "../core", version = "~1.0" }
"""


@pytest.fixture
def app(tmp_path: Path) -> Path:
    """Create a manifest depending on core in several tables.

    Returns:
        Path to app/Cargo.toml
    """
    path = tmp_path / "app" / "Cargo.toml"
    path.parent.mkdir()
    path.write_text(MANIFEST)
    return path


def load(path: Path) -> dict:
    return tomllib.loads(path.read_text())


class TestSetPackageVersion:
    """Tests for set_package_version."""

    def test_writes_version_and_keeps_formatting(self, app: Path) -> None:
        """Validate that only the version line changes."""
        set_package_version(app, "1.1.0", dry_run=False)

        text = app.read_text()
        assert load(app)["package"]["version"] == "1.1.0"
        assert "# keep this comment\nversion = \"1.1.0\"\n" in text
        assert text.count('version = "1.0.0"') == 2

    def test_dry_run_does_not_write(
        self, app: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Validate that dry-run logs a diff instead of writing."""
        caplog.set_level(logging.DEBUG, logger="crate_release")

        set_package_version(app, "1.1.0", dry_run=True)

        assert app.read_text() == MANIFEST
        assert '+version = "1.1.0"' in caplog.text

    def test_inherited_version_writes_workspace(self, tmp_path: Path) -> None:
        """Validate version.workspace = true updates [workspace.package]."""
        ws = tmp_path / "Cargo.toml"
        ws.write_text('[workspace]\nmembers = ["m"]\n\n[workspace.package]\nversion = "0.3.0"\n')
        member = tmp_path / "m" / "Cargo.toml"
        member.parent.mkdir()
        member.write_text('[package]\nname = "m"\nversion.workspace = true\n')

        set_package_version(member, "0.4.0", dry_run=False, workspace_manifest=ws)

        assert load(ws)["workspace"]["package"]["version"] == "0.4.0"
        assert load(member)["package"]["version"] == {"workspace": True}

    def test_missing_package_table(self, tmp_path: Path) -> None:
        """Validate that a virtual manifest cannot take a version."""
        path = tmp_path / "Cargo.toml"
        path.write_text('[workspace]\nmembers = []\n')

        with pytest.raises(InvalidManifestError, match="no \\[package\\] table"):
            set_package_version(path, "1.0.0", dry_run=False)


class TestSetDependencyVersion:
    """Tests for set_dependency_version."""

    def test_updates_every_table(self, app: Path) -> None:
        """Validate normal, dev, target-specific and renamed dependencies."""
        assert set_dependency_version(app, "core", "1.1.0", dry_run=False) is True

        data = load(app)
        assert data["dependencies"]["core"]["version"] == "1.1.0"
        assert data["dev-dependencies"]["core"]["version"] == "1.1.0"
        assert data["dev-dependencies"]["core"]["features"] == ["test"]
        assert data["target"]["cfg(unix)"]["dependencies"]["renamed"]["version"] == "1.1.0"
        assert data["dependencies"]["serde"] == "1"

    def test_unknown_dependency(self, app: Path) -> None:
        """Validate that nothing is written for an absent dependency."""
        assert set_dependency_version(app, "other", "1.0.0", dry_run=False) is False
        assert app.read_text() == MANIFEST


class TestUpgradeDependencyReq:
    """Tests for the dependent-version policies."""

    def upgrade(self, app: Path, req: str, version: str, policy: str) -> str | None:
        return upgrade_dependency_req(
            "app", app, "core", req, Version.parse(version), policy, dry_run=False
        )

    def test_upgrade_rewrites_compatible_requirement(
        self, app: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Validate that upgrade always follows the new version."""
        caplog.set_level(logging.INFO, logger="crate_release")

        assert self.upgrade(app, "1.0.0", "1.0.1", "upgrade") == "1.0.1"
        assert load(app)["dependencies"]["core"]["version"] == "1.0.1"
        assert "Upgrading app's dependency on core to `1.0.1` (from `1.0.0`)" in caplog.text

    def test_fix_leaves_compatible_requirement(self, app: Path) -> None:
        """Validate that fix only acts when the requirement breaks."""
        assert self.upgrade(app, "1.0.0", "1.0.1", "fix") is None
        assert app.read_text() == MANIFEST

    def test_fix_rewrites_incompatible_requirement(self, app: Path) -> None:
        """Validate that fix rewrites a requirement the new version violates."""
        assert self.upgrade(app, "1.0.0", "2.0.0", "fix") == "2.0.0"
        assert load(app)["dependencies"]["core"]["version"] == "2.0.0"

    def test_error_policy_raises_on_conflict(self, app: Path) -> None:
        """Validate that error refuses an incompatible version."""
        with pytest.raises(DependencyVersionConflictError, match="incompatible with 2.0.0"):
            self.upgrade(app, "1.0.0", "2.0.0", "error")

    def test_warn_policy_only_warns(
        self, app: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Validate that warn logs and leaves the manifest alone."""
        assert self.upgrade(app, "1.0.0", "2.0.0", "warn") is None
        assert app.read_text() == MANIFEST
        assert "is incompatible with 2.0.0" in caplog.text

    def test_ignore_policy(self, app: Path) -> None:
        """Validate that ignore does nothing."""
        assert self.upgrade(app, "1.0.0", "2.0.0", "ignore") is None
        assert app.read_text() == MANIFEST

    def test_workspace_dependency_fallback(self, tmp_path: Path) -> None:
        """Validate that [workspace.dependencies] is updated when the member inherits."""
        ws = tmp_path / "Cargo.toml"
        ws.write_text(
            '[workspace]\nmembers = ["app"]\n\n'
            '[workspace.dependencies]\ncore = { path = "core", version = "1.0.0" }\n'
        )
        app = tmp_path / "app" / "Cargo.toml"
        app.parent.mkdir()
        app.write_text(
            '[package]\nname = "app"\nversion = "0.1.0"\n\n'
            "[dependencies]\ncore = { workspace = true }\n"
        )

        new_req = upgrade_dependency_req(
            "app",
            app,
            "core",
            "1.0.0",
            Version.parse("1.1.0"),
            "upgrade",
            dry_run=False,
            workspace_manifest=ws,
        )

        assert new_req == "1.1.0"
        assert load(ws)["workspace"]["dependencies"]["core"]["version"] == "1.1.0"
