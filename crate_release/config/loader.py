"""Configuration loading and layering.

Layers, later wins per key:
1. Built-in defaults
2. User config (``$XDG_CONFIG_HOME/crate-release/release.toml`` or
   ``~/.release.toml``)
3. Workspace ``release.toml``
4. ``[workspace.metadata.release]`` in the workspace Cargo.toml
5. Package ``release.toml`` (package configs only)
6. ``[package.metadata.release]`` (package configs only)
7. ``--config FILE`` (TOML or YAML)
8. Command-line overrides
9. Manifest facts (``publish = false``)

Layers 2-6 are skipped with ``--isolated``.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from crate_release.config.models import EnvironmentSettings, ReleaseConfig
from crate_release.exceptions import ConfigurationError, EnvironmentVariableError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "release.toml"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in {path}",
            details=str(e),
            fix_hint="Check YAML syntax at the indicated line",
        ) from e


def load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file.

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
            return data
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Invalid TOML in {path}",
            details=str(e),
            fix_hint="Check TOML syntax at the indicated line",
        ) from e


def parse_config(data: dict[str, Any], source: str) -> ReleaseConfig:
    """Validate one configuration layer.

    Raises:
        ConfigurationError: On unknown keys or values of the wrong type
    """
    try:
        return ReleaseConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}",
            details=str(e),
            fix_hint="Check the keys and value types against the documented options",
        ) from e


def load_config_file(path: Path) -> ReleaseConfig:
    """Load a standalone release config, TOML or YAML by extension."""
    if path.suffix in (".yml", ".yaml"):
        data = load_yaml(path)
    elif path.suffix == ".toml":
        data = load_toml(path)
    else:
        raise ConfigurationError(
            f"Unsupported config format: {path.suffix}",
            fix_hint="Use .toml, .yml, or .yaml extension",
        )
    logger.debug("loaded config from %s", path)
    return parse_config(data, str(path))


def user_config_paths() -> list[Path]:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return [base / "crate-release" / CONFIG_FILE_NAME, Path.home() / ".release.toml"]


def _load_optional(path: Path) -> ReleaseConfig | None:
    return load_config_file(path) if path.is_file() else None


def _manifest_release_table(manifest_path: Path, section: str) -> ReleaseConfig | None:
    manifest = load_toml(manifest_path)
    table = manifest.get(section, {}).get("metadata", {}).get("release")
    if table is None:
        return None
    return parse_config(table, f"{manifest_path} [{section}.metadata.release]")


def _user_layer() -> ReleaseConfig | None:
    for path in user_config_paths():
        config = _load_optional(path)
        if config is not None:
            return config
    return None


def _apply(base: ReleaseConfig, layers: list[ReleaseConfig | None]) -> ReleaseConfig:
    for layer in layers:
        if layer is not None:
            base = base.merge(layer)
    return base


def _workspace_layers(workspace_root: Path) -> list[ReleaseConfig | None]:
    return [
        _user_layer(),
        _load_optional(workspace_root / CONFIG_FILE_NAME),
        _manifest_release_table(workspace_root / "Cargo.toml", "workspace")
        if (workspace_root / "Cargo.toml").is_file()
        else None,
    ]


def load_workspace_config(
    workspace_root: Path,
    custom_config: Path | None = None,
    isolated: bool = False,
    overrides: ReleaseConfig | None = None,
) -> ReleaseConfig:
    """Effective configuration for workspace-wide decisions."""
    layers: list[ReleaseConfig | None] = []
    if not isolated:
        layers.extend(_workspace_layers(workspace_root))
    if custom_config is not None:
        layers.append(load_config_file(custom_config))
    layers.append(overrides)
    return _apply(ReleaseConfig(), layers)


def load_package_config(
    workspace_root: Path,
    manifest_path: Path,
    custom_config: Path | None = None,
    isolated: bool = False,
    overrides: ReleaseConfig | None = None,
    publish: list[str] | None = None,
) -> ReleaseConfig:
    """Effective configuration for one package.

    ``publish`` is the registry list cargo reports for the package; an empty
    list (``publish = false`` in the manifest) turns publishing off.
    """
    package_root = manifest_path.parent
    layers: list[ReleaseConfig | None] = []
    if not isolated:
        layers.extend(_workspace_layers(workspace_root))
        if package_root != workspace_root:
            layers.append(_load_optional(package_root / CONFIG_FILE_NAME))
        layers.append(_manifest_release_table(manifest_path, "package"))
    if custom_config is not None:
        layers.append(load_config_file(custom_config))
    layers.append(overrides)

    config = _apply(ReleaseConfig(), layers)

    if publish == []:
        config = config.merge(ReleaseConfig(publish=False))
    return config


def load_environment() -> EnvironmentSettings:
    """Read process settings from the environment.

    Raises:
        EnvironmentVariableError: If a variable holds an invalid value
    """
    try:
        return EnvironmentSettings()
    except PydanticValidationError as e:
        first = e.errors()[0]
        name = str(first["loc"][0]) if first.get("loc") else "environment"
        if name != "PUBLISH_GRACE_SLEEP":
            name = f"CRATE_RELEASE_{name.upper()}"
        raise EnvironmentVariableError(name, details=str(e)) from e
