"""Tests for configuration models.

Tests:
- Kebab-case keys and defaults of ReleaseConfig
- Layer merging by explicitly set keys
- Tag prefix resolution
- EnvironmentSettings from environment variables
"""

import pytest
from pydantic import ValidationError

from crate_release.config.models import EnvironmentSettings, ReleaseConfig, Replace


class TestReleaseConfig:
    """Tests for ReleaseConfig."""

    def test_defaults(self) -> None:
        """Validate the built-in defaults."""
        config = ReleaseConfig()

        assert config.allow_branch == ["*", "!HEAD"]
        assert config.push_remote == "origin"
        assert config.publish is True
        assert config.dev_version is False
        assert config.dependent_version == "upgrade"
        assert config.tag_name == "{{prefix}}v{{version}}"
        assert config.pre_release_commit_message == "(cargo-release) version {{version}}"

    def test_kebab_case_keys(self) -> None:
        """Validate that on-disk keys use dashes."""
        config = ReleaseConfig.model_validate(
            {
                "push-remote": "upstream",
                "pre-release-replacements": [
                    {"file": "README.md", "search": "a", "replace": "b", "exactly": 1}
                ],
            }
        )

        assert config.push_remote == "upstream"
        assert config.pre_release_replacements == [
            Replace(file="README.md", search="a", replace="b", exactly=1)
        ]

    def test_unknown_key_rejected(self) -> None:
        """Validate that typos are not silently ignored."""
        with pytest.raises(ValidationError):
            ReleaseConfig.model_validate({"push-remtoe": "upstream"})

    def test_invalid_dependent_version_rejected(self) -> None:
        """Validate the dependent-version choices."""
        with pytest.raises(ValidationError):
            ReleaseConfig.model_validate({"dependent-version": "sometimes"})

    def test_single_string_becomes_list(self) -> None:
        """Validate that allow-branch accepts a single glob."""
        assert ReleaseConfig.model_validate({"allow-branch": "main"}).allow_branch == ["main"]

    def test_merge_only_overrides_set_keys(self) -> None:
        """Validate that a layer does not reset keys it leaves out."""
        base = ReleaseConfig(push_remote="upstream", sign_tag=True)
        layer = ReleaseConfig(sign_tag=False, publish=False)

        merged = base.merge(layer)

        assert merged.push_remote == "upstream"
        assert merged.sign_tag is False
        assert merged.publish is False

    @pytest.mark.parametrize(
        ("tag_prefix", "is_root", "expected"),
        [(None, True, ""), (None, False, "{{crate_name}}-"), ("rel-", False, "rel-")],
    )
    def test_resolved_tag_prefix(
        self, tag_prefix: str | None, is_root: bool, expected: str
    ) -> None:
        """Validate the default prefix for root and member packages."""
        assert ReleaseConfig(tag_prefix=tag_prefix).resolved_tag_prefix(is_root) == expected

    def test_to_toml_dict_uses_kebab_keys(self) -> None:
        """Validate the dump used by the config command."""
        data = ReleaseConfig().to_toml_dict()

        assert data["push-remote"] == "origin"
        assert "registry" not in data


class TestEnvironmentSettings:
    """Tests for EnvironmentSettings."""

    def test_defaults(self, clean_env: None) -> None:
        """Validate defaults with an empty environment."""
        settings = EnvironmentSettings()

        assert settings.publish_grace_sleep == 0
        assert settings.publish_timeout == 300
        assert settings.index_url == "https://index.crates.io"

    def test_grace_sleep_from_environment(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Validate that PUBLISH_GRACE_SLEEP is read without a prefix."""
        monkeypatch.setenv("PUBLISH_GRACE_SLEEP", "5")

        assert EnvironmentSettings().publish_grace_sleep == 5

    def test_prefixed_settings(self, clean_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        """Validate the CRATE_RELEASE_ prefix."""
        monkeypatch.setenv("CRATE_RELEASE_PUBLISH_TIMEOUT", "60")
        monkeypatch.setenv("CRATE_RELEASE_INDEX_URL", "http://localhost:8000")

        settings = EnvironmentSettings()

        assert settings.publish_timeout == 60
        assert settings.index_url == "http://localhost:8000"
