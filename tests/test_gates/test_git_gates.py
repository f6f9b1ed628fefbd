"""Tests for repository state gates.

Tests the following gates:
- GitCleanGate: Working tree has no uncommitted changes
- TagsMissingGate: Planned tags are not taken
- GitBranchGate: Current branch matches allow-branch
- BehindUpstreamGate: Branch is not behind its remote

These tests mock the git query functions to avoid actual git operations.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from crate_release.config.models import ReleaseConfig
from crate_release.gates import GateContext, GateSeverity
from crate_release.gates.git import (
    BehindUpstreamGate,
    GitBranchGate,
    GitCleanGate,
    TagsMissingGate,
    branch_allowed,
)


def package(name: str, tag: str | None) -> MagicMock:
    pkg = MagicMock()
    pkg.name = name
    pkg.planned_tag = tag
    pkg.package_root = Path("/ws") / name
    return pkg


@pytest.fixture
def context(tmp_path: Path) -> GateContext:
    """Create a GateContext with default configuration.

    Returns:
        GateContext rooted at a temporary directory
    """
    return GateContext(
        workspace_root=tmp_path,
        config=ReleaseConfig(),
        packages=[package("a", "a-v1.0.1"), package("b", "b-v1.0.1")],
    )


class TestBranchAllowed:
    """Tests for allow-branch glob matching."""

    @pytest.mark.parametrize(
        ("branch", "patterns", "expected"),
        [
            ("main", ["*", "!HEAD"], True),
            ("HEAD", ["*", "!HEAD"], False),
            ("release/1.x", ["release/*"], True),
            ("feature", ["main", "release/*"], False),
            ("main", ["!main", "*"], True),
            ("main", [], False),
        ],
    )
    def test_last_matching_pattern_wins(
        self, branch: str, patterns: list[str], expected: bool
    ) -> None:
        """Validate glob matching with negation."""
        assert branch_allowed(branch, patterns) is expected


class TestGitCleanGate:
    """Tests for GitCleanGate - validates working directory cleanliness."""

    def test_clean_tree_passes(self, context: GateContext) -> None:
        """Validate that a clean working tree returns success."""
        with patch("crate_release.git.is_dirty", return_value=None):
            result = GitCleanGate().check(context)

        assert result.passed is True
        assert result.severity == GateSeverity.INFO

    def test_dirty_tree_lists_files(self, context: GateContext) -> None:
        """Validate that uncommitted files are listed in the details."""
        with patch("crate_release.git.is_dirty", return_value=["src/lib.rs", "Cargo.toml"]):
            result = GitCleanGate().check(context)

        assert result.blocking is True
        assert "Uncommitted changes" in result.message
        assert result.details is not None
        assert "src/lib.rs" in result.details
        assert result.fix_command == "git status"

    def test_long_file_list_is_truncated(self, context: GateContext) -> None:
        """Validate that only the first ten files are listed."""
        files = [f"file{i}.rs" for i in range(15)]
        with patch("crate_release.git.is_dirty", return_value=files):
            result = GitCleanGate().check(context)

        assert result.details is not None
        assert "file9.rs" in result.details
        assert "file10.rs" not in result.details
        assert "and 5 more" in result.details


class TestTagsMissingGate:
    """Tests for TagsMissingGate - validates planned tags are free."""

    def test_free_tags_pass(self, context: GateContext) -> None:
        """Validate that unused tag names return success."""
        with patch("crate_release.git.tag_exists", return_value=False):
            assert TagsMissingGate().check(context).passed is True

    def test_existing_tag_names_package(self, context: GateContext) -> None:
        """Validate that an existing tag is reported with its package."""
        with patch(
            "crate_release.git.tag_exists", side_effect=lambda cwd, name: name == "b-v1.0.1"
        ):
            result = TagsMissingGate().check(context)

        assert result.blocking is True
        assert result.message == "tag `b-v1.0.1` already exists (for `b`)"

    def test_shared_tag_checked_once(self, tmp_path: Path) -> None:
        """Validate that packages sharing a tag name trigger one lookup."""
        ctx = GateContext(
            workspace_root=tmp_path,
            config=ReleaseConfig(),
            packages=[package("a", "v1.0.0"), package("b", "v1.0.0"), package("c", None)],
        )
        with patch("crate_release.git.tag_exists", return_value=False) as tag_exists:
            TagsMissingGate().check(ctx)

        assert tag_exists.call_count == 1


class TestGitBranchGate:
    """Tests for GitBranchGate - validates the release branch."""

    def test_allowed_branch_passes(self, context: GateContext) -> None:
        """Validate that the default patterns allow a named branch."""
        with patch("crate_release.git.current_branch", return_value="main"):
            result = GitBranchGate().check(context)

        assert result.passed is True
        assert "main" in result.message

    def test_detached_head_fails(self, context: GateContext) -> None:
        """Validate that the default patterns reject a detached HEAD."""
        with patch("crate_release.git.current_branch", return_value="HEAD"):
            result = GitBranchGate().check(context)

        assert result.blocking is True
        assert "cannot release from branch 'HEAD'" in result.message

    def test_custom_patterns(self, tmp_path: Path) -> None:
        """Validate that allow-branch from config is honoured."""
        ctx = GateContext(
            workspace_root=tmp_path,
            config=ReleaseConfig(allow_branch=["release/*"]),
            packages=[],
        )
        with patch("crate_release.git.current_branch", return_value="main"):
            result = GitBranchGate().check(ctx)

        assert result.passed is False
        assert "release/*" in result.message


class TestBehindUpstreamGate:
    """Tests for BehindUpstreamGate - warns when the remote is ahead."""

    def test_up_to_date_passes(self, context: GateContext) -> None:
        """Validate that an up-to-date branch returns success."""
        with (
            patch("crate_release.git.current_branch", return_value="main"),
            patch("crate_release.git.fetch", return_value=True) as fetch,
            patch("crate_release.git.is_behind_remote", return_value=False),
        ):
            result = BehindUpstreamGate().check(context)

        assert result.passed is True
        fetch.assert_called_once_with(context.workspace_root, "origin", "main")

    def test_behind_is_a_warning(self, context: GateContext) -> None:
        """Validate that being behind warns but does not block."""
        with (
            patch("crate_release.git.current_branch", return_value="main"),
            patch("crate_release.git.fetch", return_value=False),
            patch("crate_release.git.is_behind_remote", return_value=True),
        ):
            result = BehindUpstreamGate().check(context)

        assert result.passed is False
        assert result.severity == GateSeverity.WARNING
        assert result.blocking is False
        assert result.fix_command == "git pull origin main"
