"""Pydantic v2 configuration models for release.toml.

Keys are kebab-case on disk (``push-remote``) and snake_case in Python.
Every layer of configuration validates against the same model; layers are
merged by the keys they set explicitly.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def to_kebab(name: str) -> str:
    return name.replace("_", "-")


DependentVersion = Literal["upgrade", "fix", "error", "warn", "ignore"]

DEFAULT_PRE_RELEASE_COMMIT_MESSAGE = "(cargo-release) version {{version}}"
DEFAULT_POST_RELEASE_COMMIT_MESSAGE = (
    "(cargo-release) start next development iteration {{next_version}}"
)
DEFAULT_TAG_MESSAGE = "(cargo-release) {{crate_name}} version {{version}}"
DEFAULT_TAG_NAME = "{{prefix}}v{{version}}"
ROOT_TAG_PREFIX = ""
MEMBER_TAG_PREFIX = "{{crate_name}}-"


class Replace(BaseModel):
    """A single search/replace rule applied to one file."""

    model_config = ConfigDict(extra="forbid")

    file: str | None = Field(default=None, description="Path relative to the crate root")
    search: str | None = Field(default=None, description="Regular expression to find")
    replace: str | None = Field(
        default=None, description="Replacement text, rendered as a template"
    )
    min: int | None = Field(default=None, ge=0, description="Minimum number of matches")
    max: int | None = Field(default=None, ge=0, description="Maximum number of matches")
    exactly: int | None = Field(default=None, ge=0, description="Exact number of matches")
    prerelease: bool = Field(
        default=False, description="Also apply when releasing a prerelease"
    )


class ReleaseConfig(BaseModel):
    """Effective release configuration for the workspace or one package."""

    model_config = ConfigDict(
        alias_generator=to_kebab,
        populate_by_name=True,
        extra="forbid",
    )

    allow_branch: list[str] = Field(
        default_factory=lambda: ["*", "!HEAD"],
        description="Branch globs a release may run from",
    )
    sign_commit: bool = Field(default=False, description="GPG sign commits")
    sign_tag: bool = Field(default=False, description="GPG sign tags")
    push_remote: str = Field(default="origin", description="Remote to push to")
    registry: str | None = Field(
        default=None, description="Alternative registry; None means crates.io"
    )
    release: bool = Field(default=True, description="Include the package in releases")
    publish: bool = Field(default=True, description="Publish to the registry")
    verify: bool = Field(default=True, description="Verify the package build on publish")
    push: bool = Field(default=True, description="Push commits and tags")
    push_options: list[str] = Field(default_factory=list, description="git push -o values")
    shared_version: bool = Field(
        default=False, description="Keep one version across shared-version packages"
    )
    consolidate_commits: bool = Field(
        default=False, description="Fold package commits into one workspace commit"
    )
    pre_release_commit_message: str = Field(default=DEFAULT_PRE_RELEASE_COMMIT_MESSAGE)
    post_release_commit_message: str = Field(default=DEFAULT_POST_RELEASE_COMMIT_MESSAGE)
    pre_release_replacements: list[Replace] = Field(default_factory=list)
    post_release_replacements: list[Replace] = Field(default_factory=list)
    pre_release_hook: str | list[str] | None = Field(
        default=None, description="Command run after replacements, before committing"
    )
    post_release_hook: str | list[str] | None = Field(
        default=None, description="Command run after the development version bump"
    )
    tag: bool = Field(default=True, description="Create a git tag")
    tag_prefix: str | None = Field(
        default=None,
        description="Tag prefix; defaults to empty at the git root, else `{{crate_name}}-`",
    )
    tag_name: str = Field(default=DEFAULT_TAG_NAME)
    tag_message: str = Field(default=DEFAULT_TAG_MESSAGE)
    dev_version: bool = Field(
        default=False, description="Move to a development version after release"
    )
    dev_version_ext: str = Field(default="alpha.0")
    enable_features: list[str] = Field(default_factory=list)
    enable_all_features: bool = Field(default=False)
    dependent_version: DependentVersion = Field(default="upgrade")
    target: str | None = Field(default=None, description="Target triple for publish")

    @field_validator("allow_branch", "push_options", "enable_features", mode="before")
    @classmethod
    def single_string_as_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    def merge(self, layer: "ReleaseConfig") -> "ReleaseConfig":
        """Return a config where keys set in ``layer`` override this one."""
        data = self.model_dump(exclude_unset=True)
        data.update(layer.model_dump(exclude_unset=True))
        return ReleaseConfig.model_validate(data)

    def resolved_tag_prefix(self, is_root: bool) -> str:
        if self.tag_prefix is not None:
            return self.tag_prefix
        return ROOT_TAG_PREFIX if is_root else MEMBER_TAG_PREFIX

    def to_toml_dict(self) -> dict[str, Any]:
        """Kebab-case mapping with unset optional values dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)


class EnvironmentSettings(BaseSettings):
    """Process-level knobs read from the environment."""

    model_config = SettingsConfigDict(env_prefix="CRATE_RELEASE_", extra="ignore")

    publish_grace_sleep: int = Field(
        default=0,
        ge=0,
        validation_alias="PUBLISH_GRACE_SLEEP",
        description="Seconds to sleep after each publish",
    )
    publish_timeout: int = Field(
        default=300,
        gt=0,
        description="Seconds to wait for a publish to reach the index",
    )
    index_url: str = Field(
        default="https://index.crates.io",
        description="Sparse index of the default registry",
    )
