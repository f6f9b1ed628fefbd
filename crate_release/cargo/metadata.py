"""Workspace discovery through ``cargo metadata``.

Uses ``cargo metadata`` rather than parsing manifests directly so that
workspace inheritance and member globs are resolved by cargo itself.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from crate_release.exceptions import InvalidManifestError, ReleaseIOError
from crate_release.utils.shell import ShellError, run

logger = logging.getLogger(__name__)


def cargo_bin() -> str:
    return os.environ.get("CARGO", "cargo")


@dataclass(frozen=True)
class CargoDependency:
    """One entry of a package's dependency list."""

    name: str
    req: str
    kind: str | None = None
    path: Path | None = None


@dataclass
class CargoPackage:
    """A workspace member as reported by cargo."""

    id: str
    name: str
    version: str
    manifest_path: Path
    publish: list[str] | None = None
    dependencies: list[CargoDependency] = field(default_factory=list)
    target_kinds: set[str] = field(default_factory=set)

    @property
    def package_root(self) -> Path:
        return self.manifest_path.parent

    @property
    def has_bin(self) -> bool:
        return "bin" in self.target_kinds


@dataclass
class Workspace:
    """Members of a Cargo workspace."""

    root: Path
    members: list[CargoPackage]

    @property
    def manifest_path(self) -> Path:
        return self.root / "Cargo.toml"

    @property
    def root_package(self) -> CargoPackage | None:
        """Package declared in the workspace manifest; None if virtual."""
        for pkg in self.members:
            if pkg.manifest_path == self.manifest_path:
                return pkg
        return None


def _parse_dependency(data: dict[str, Any]) -> CargoDependency:
    path = data.get("path")
    return CargoDependency(
        name=data["name"],
        req=data.get("req", "*"),
        kind=data.get("kind"),
        path=Path(path) if path else None,
    )


def parse_metadata(data: dict[str, Any]) -> Workspace:
    """Build a Workspace from ``cargo metadata --format-version=1`` output.

    Raises:
        InvalidManifestError: If required keys are missing
    """
    try:
        member_ids = set(data["workspace_members"])
        members = [
            CargoPackage(
                id=pkg["id"],
                name=pkg["name"],
                version=pkg["version"],
                manifest_path=Path(pkg["manifest_path"]),
                publish=pkg.get("publish"),
                dependencies=[_parse_dependency(d) for d in pkg.get("dependencies", [])],
                target_kinds={k for t in pkg.get("targets", []) for k in t.get("kind", [])},
            )
            for pkg in data["packages"]
            if pkg["id"] in member_ids
        ]
        return Workspace(root=Path(data["workspace_root"]), members=members)
    except (KeyError, TypeError) as e:
        raise InvalidManifestError(
            "Unexpected `cargo metadata` output",
            details=f"missing or malformed key: {e}",
        ) from e


def load_workspace(manifest_path: Path | None = None) -> Workspace:
    """Run ``cargo metadata`` for the workspace containing ``manifest_path``.

    Raises:
        InvalidManifestError: If cargo rejects the manifest
        ReleaseIOError: If cargo cannot be run
    """
    cmd = [cargo_bin(), "metadata", "--format-version=1", "--no-deps"]
    if manifest_path is not None:
        cmd.extend(["--manifest-path", str(manifest_path)])
    try:
        result = run(cmd, timeout=120)
    except OSError as e:
        raise ReleaseIOError(
            "Failed to run cargo",
            details=str(e),
            fix_hint="Install the Rust toolchain or set CARGO",
        ) from e
    except ShellError as e:
        raise InvalidManifestError(
            "`cargo metadata` failed",
            details=e.stderr or str(e),
            fix_hint="Run `cargo metadata` to see the error",
        ) from e

    try:
        data: dict[str, Any] = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise InvalidManifestError("Invalid `cargo metadata` output", details=str(e)) from e
    return parse_metadata(data)


def path_dependencies(pkg: CargoPackage, workspace: Workspace) -> list[CargoDependency]:
    """Non-dev dependencies of ``pkg`` on other workspace members."""
    names = {m.name for m in workspace.members}
    return [
        d
        for d in pkg.dependencies
        if d.path is not None and d.kind != "dev" and d.name in names
    ]


def find_dependents(
    pkg: CargoPackage, workspace: Workspace
) -> list[tuple[CargoPackage, CargoDependency]]:
    """Members with a path dependency (of any kind) on ``pkg``."""
    found = []
    for member in workspace.members:
        for dep in member.dependencies:
            if dep.path is not None and dep.name == pkg.name:
                found.append((member, dep))
    return found


def topo_sort(workspace: Workspace) -> list[CargoPackage]:
    """Order members so dependencies come before their dependents.

    Uses Kahn's algorithm over non-dev path dependencies. Ready packages
    are taken in name order for deterministic output.

    Raises:
        InvalidManifestError: If a dependency cycle is detected
    """
    by_name = {m.name: m for m in workspace.members}
    in_degree = {name: 0 for name in by_name}
    reverse_deps: dict[str, list[str]] = {name: [] for name in by_name}

    for name, pkg in by_name.items():
        for dep in path_dependencies(pkg, workspace):
            target = dep.name
            if target == name:
                continue
            in_degree[name] += 1
            reverse_deps[target].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []
    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in sorted(reverse_deps[node]):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(by_name):
        remaining = sorted(set(by_name) - set(order))
        raise InvalidManifestError(
            "Dependency cycle detected between workspace members",
            details=", ".join(remaining),
        )
    return [by_name[name] for name in order]
