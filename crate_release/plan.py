"""Release plan: which packages move to which versions and tags.

``load`` builds one PackageRelease per workspace member in dependency order,
``plan`` derives the planned versions, tags and development versions, and
``partition`` splits members into selected and excluded packages.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from crate_release import git
from crate_release.cargo.metadata import CargoPackage, Workspace, find_dependents, topo_sort
from crate_release.config.loader import load_package_config
from crate_release.config.models import ReleaseConfig
from crate_release.exceptions import ConfigurationError
from crate_release.template import NOW, Template
from crate_release.utils.version import TargetVersion, Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependent:
    """A workspace member that depends on a package by path."""

    name: str
    manifest_path: Path
    req: str


@dataclass
class PackageRelease:
    """Release state of one package, mutated as the pipeline advances."""

    name: str
    manifest_path: Path
    package_root: Path
    is_root: bool
    has_bin: bool
    config: ReleaseConfig
    initial_version: Version
    dependents: list[Dependent] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    planned_version: Version | None = None
    post_version: Version | None = None
    prior_tag: str | None = None
    planned_tag: str | None = None

    @property
    def version(self) -> Version:
        """Version this package is released at."""
        return self.planned_version or self.initial_version

    @property
    def tag_prefix(self) -> str:
        return self.config.resolved_tag_prefix(self.is_root)

    @property
    def publishes_to_default_registry(self) -> bool:
        return self.config.publish and self.config.registry is None

    def exclude(self) -> None:
        self.config = self.config.merge(ReleaseConfig(release=False))
        self.planned_version = None
        self.planned_tag = None
        self.post_version = None

    def set_prior_tag(self, tag: str) -> None:
        self.prior_tag = tag

    def bump(self, target: TargetVersion, metadata: str | None = None) -> None:
        self.planned_version = target.bump(self.initial_version, metadata)

    def template(self, tag_name: str | None = None) -> Template:
        """Template for this package's pre-release artifacts."""
        return Template(
            prev_version=self.initial_version.bare_string,
            prev_metadata=self.initial_version.build,
            version=self.version.bare_string,
            metadata=self.version.build,
            crate_name=self.name,
            date=NOW,
            tag_name=tag_name,
        )

    def render_tag(self, base: Version) -> str:
        template = Template(
            prev_version=self.initial_version.bare_string,
            prev_metadata=self.initial_version.build,
            version=base.bare_string,
            metadata=base.build,
            crate_name=self.name,
            date=NOW,
        )
        prefix = template.render(self.tag_prefix)
        return replace(template, prefix=prefix).render(self.config.tag_name)

    def tag_glob(self) -> str:
        """Glob matching this package's tags for any version."""
        template = Template(version="*", metadata="*", crate_name=self.name)
        prefix = template.render(self.tag_prefix)
        return replace(template, prefix=prefix).render(self.config.tag_name)

    def plan(self) -> None:
        base = self.version
        self.planned_tag = self.render_tag(base) if self.config.tag else None
        self.post_version = None
        if self.config.dev_version and not base.is_prerelease:
            self.post_version = base.next_dev(self.config.dev_version_ext)


def _find_prior_tag(pkg: PackageRelease) -> str | None:
    initial_tag = pkg.render_tag(pkg.initial_version)
    if git.tag_exists(pkg.package_root, initial_tag):
        return initial_tag
    return git.find_last_tag(pkg.package_root, pkg.tag_glob())


def load_package(
    workspace: Workspace,
    member: CargoPackage,
    git_root: Path,
    custom_config: Path | None = None,
    isolated: bool = False,
    overrides: ReleaseConfig | None = None,
) -> PackageRelease:
    config = load_package_config(
        workspace.root,
        member.manifest_path,
        custom_config=custom_config,
        isolated=isolated,
        overrides=overrides,
        publish=member.publish,
    )
    if not config.release:
        logger.debug("disabled in config, skipping %s", member.manifest_path)

    pkg = PackageRelease(
        name=member.name,
        manifest_path=member.manifest_path,
        package_root=member.package_root,
        is_root=member.package_root == git_root,
        has_bin=member.has_bin,
        config=config,
        initial_version=Version.parse(member.version),
        dependents=[
            Dependent(name=dependent.name, manifest_path=dependent.manifest_path, req=dep.req)
            for dependent, dep in find_dependents(member, workspace)
        ],
        dependencies=[d.name for d in member.dependencies if d.path is not None],
    )
    pkg.prior_tag = _find_prior_tag(pkg)
    return pkg


def load(
    workspace: Workspace,
    custom_config: Path | None = None,
    isolated: bool = False,
    overrides: ReleaseConfig | None = None,
) -> dict[str, PackageRelease]:
    """Load every workspace member, dependencies first."""
    git_root = git.top_level(workspace.root)
    return {
        member.name: load_package(
            workspace, member, git_root, custom_config, isolated, overrides
        )
        for member in topo_sort(workspace)
    }


def plan(packages: dict[str, PackageRelease]) -> dict[str, PackageRelease]:
    """Derive planned versions, tags and development versions.

    Every releasable shared-version package is raised to the highest
    version among them.
    """
    shared = [
        pkg for pkg in packages.values() if pkg.config.shared_version and pkg.config.release
    ]
    if shared:
        shared_max = max((pkg.version for pkg in shared), key=lambda v: v.bare)
        for pkg in shared:
            if pkg.initial_version.bare != shared_max.bare:
                pkg.planned_version = shared_max

    for pkg in packages.values():
        pkg.plan()
    return packages


@dataclass(frozen=True)
class Selection:
    """Which workspace members the user asked to release."""

    packages: tuple[str, ...] = ()
    workspace: bool = False
    exclude: tuple[str, ...] = ()


def partition(
    workspace: Workspace,
    packages: dict[str, PackageRelease],
    selection: Selection,
) -> tuple[list[PackageRelease], list[PackageRelease]]:
    """Split packages into (selected, excluded).

    Without explicit packages or ``--workspace`` the root package is
    selected, or every member of a virtual workspace.
    """
    unknown = sorted(set(selection.packages) - set(packages))
    if unknown:
        raise ConfigurationError(
            f"package `{unknown[0]}` is not a member of the workspace",
            details=f"members: {', '.join(packages)}",
        )

    if selection.packages:
        chosen = set(selection.packages)
    elif selection.workspace:
        chosen = set(packages)
    else:
        root = workspace.root_package
        chosen = {root.name} if root is not None else set(packages)
    chosen -= set(selection.exclude)

    selected = [pkg for name, pkg in packages.items() if name in chosen]
    excluded = [pkg for name, pkg in packages.items() if name not in chosen]
    return selected, excluded
