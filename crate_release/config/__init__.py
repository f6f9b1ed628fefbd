"""Configuration management for crate-release."""

from crate_release.config.models import EnvironmentSettings, ReleaseConfig, Replace

__all__ = [
    "ReleaseConfig",
    "Replace",
    "EnvironmentSettings",
]
