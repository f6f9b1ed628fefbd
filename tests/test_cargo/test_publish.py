"""Tests for the cargo publish invocation."""

from pathlib import Path
from unittest.mock import patch

import pytest

from crate_release.cargo.publish import publish, publish_command
from crate_release.exceptions import ReleaseIOError

MANIFEST = Path("/ws/core/Cargo.toml")


class TestPublishCommand:
    """Tests for publish_command."""

    def test_minimal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Validate the command for a plain publish."""
        monkeypatch.delenv("CARGO", raising=False)

        assert publish_command(False, True, MANIFEST) == [
            "cargo",
            "publish",
            "--manifest-path",
            str(MANIFEST),
        ]

    def test_dry_run_flags(self) -> None:
        """Validate that dry-run packages a possibly dirty tree."""
        cmd = publish_command(True, False, MANIFEST, package="core")

        assert cmd[-5:] == ["--package", "core", "--dry-run", "--allow-dirty", "--no-verify"]

    def test_features_and_target(self) -> None:
        """Validate feature, registry and target flags."""
        cmd = publish_command(
            False,
            True,
            MANIFEST,
            features=["serde", "std"],
            registry="private",
            target="x86_64-unknown-linux-gnu",
        )

        assert cmd[4:] == [
            "--registry",
            "private",
            "--target",
            "x86_64-unknown-linux-gnu",
            "--features",
            "serde std",
        ]

    def test_all_features_wins(self) -> None:
        """Validate that --all-features replaces the feature list."""
        cmd = publish_command(False, True, MANIFEST, features=["std"], all_features=True)

        assert "--all-features" in cmd
        assert "--features" not in cmd


class TestPublish:
    """Tests for publish."""

    def test_runs_in_crate_directory(self) -> None:
        """Validate the working directory and result."""
        with patch("crate_release.cargo.publish.call", return_value=True) as call:
            assert publish(True, True, MANIFEST) is True

        assert call.call_args.kwargs["cwd"] == MANIFEST.parent

    def test_missing_cargo(self) -> None:
        """Validate that an unstartable cargo raises."""
        with (
            patch("crate_release.cargo.publish.call", side_effect=FileNotFoundError("cargo")),
            pytest.raises(ReleaseIOError),
        ):
            publish(False, True, MANIFEST)
