"""Tests for shared versions and commit consolidation."""

import logging
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from crate_release.config.models import ReleaseConfig
from crate_release.consolidation import (
    CommitPolicy,
    find_shared_post_version,
    find_shared_version,
)
from crate_release.exceptions import ReleaseExit
from crate_release.plan import PackageRelease
from crate_release.template import Template
from crate_release.utils.version import Version


def release(name: str, version: str = "1.0.0", **config: Any) -> PackageRelease:
    return PackageRelease(
        name=name,
        manifest_path=Path("/ws") / name / "Cargo.toml",
        package_root=Path("/ws") / name,
        is_root=False,
        has_bin=False,
        config=ReleaseConfig(**config),
        initial_version=Version.parse(version),
    )


class TestSharedVersion:
    """Tests for find_shared_version and find_shared_post_version."""

    def test_no_shared_packages(self) -> None:
        """Validate that nothing is shared by default."""
        assert find_shared_version([release("a"), release("b", "2.0.0")]) is None

    def test_agreeing_versions(self) -> None:
        """Validate the common version, ignoring non-shared packages."""
        packages = [
            release("a", "1.1.0", shared_version=True),
            release("b", "1.1.0", shared_version=True),
            release("c", "3.0.0"),
        ]

        assert find_shared_version(packages) == Version.parse("1.1.0")

    def test_deviating_versions_abort(self, caplog: pytest.LogCaptureFixture) -> None:
        """Validate that disagreeing shared versions exit with 101."""
        packages = [
            release("a", "1.1.0", shared_version=True),
            release("b", "1.2.0", shared_version=True),
        ]

        with pytest.raises(ReleaseExit) as exc_info:
            find_shared_version(packages)

        assert exc_info.value.code == 101
        assert "Crate versions deviated, aborting" in caplog.text

    def test_shared_post_version(self) -> None:
        """Validate the first development version among shared packages."""
        a = release("a", shared_version=True)
        b = release("b", shared_version=True)
        b.post_version = Version.parse("1.0.1-alpha.0")

        assert find_shared_post_version([a, b]) == Version.parse("1.0.1-alpha.0")
        assert find_shared_post_version([a]) is None


class TestCommitPolicy:
    """Tests for CommitPolicy."""

    def test_package_committed_in_its_root(self) -> None:
        """Validate the per-package commit and its rendered message."""
        policy = CommitPolicy(Path("/ws"), ReleaseConfig(), "pre", dry_run=False)
        pkg = release("a", sign_commit=True)

        with patch("crate_release.git.commit_all", return_value=True) as commit_all:
            policy.commit_package(pkg, Template(version="1.0.1"))
            shared = policy.commit_shared(Template(version="1.0.1"))

        commit_all.assert_called_once_with(
            Path("/ws/a"), "(cargo-release) version 1.0.1", True, False
        )
        assert shared is False

    def test_consolidated_packages_share_one_commit(self) -> None:
        """Validate that consolidate-commits defers to a workspace commit."""
        config = ReleaseConfig(post_release_commit_message="next {{next_version}}")
        policy = CommitPolicy(Path("/ws"), config, "post", dry_run=True)

        with patch("crate_release.git.commit_all", return_value=True) as commit_all:
            policy.commit_package(release("a", consolidate_commits=True), Template())
            policy.commit_package(release("b", consolidate_commits=True), Template())
            assert commit_all.call_count == 0
            shared = policy.commit_shared(Template(next_version="1.0.2-alpha.0"))

        assert shared is True
        commit_all.assert_called_once_with(Path("/ws"), "next 1.0.2-alpha.0", False, True)

    def test_failed_commit_aborts(self, caplog: pytest.LogCaptureFixture) -> None:
        """Validate that git refusing a commit exits with 101."""
        caplog.set_level(logging.ERROR)
        policy = CommitPolicy(Path("/ws"), ReleaseConfig(), "pre", dry_run=False)

        with (
            patch("crate_release.git.commit_all", return_value=False),
            pytest.raises(ReleaseExit) as exc_info,
        ):
            policy.commit_package(release("a"), Template(version="1.0.1"))

        assert exc_info.value.code == 101
        assert "Failed to commit a" in caplog.text
