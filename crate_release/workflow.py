"""Release pipeline coordination.

Drives a workspace release through its phases:
1. Resolve the plan (prior tags, bumps, exclusions, shared versions)
2. Select packages
3. Verify preconditions
4. Confirm
5. Pre-release: versions, dependents, replacements, hook, commits
6. Publish
7. Tag
8. Post-release: development versions, replacements, commits
9. Push
10. Finish

Every mutating step honours dry-run. Nothing is rolled back: a failure
after mutations began leaves the repository as it was at that point.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from crate_release import diagnostics, git
from crate_release.cargo import manifest
from crate_release.cargo import publish as cargo_publish
from crate_release.cargo.index import CratesIndex, wait_for_publish
from crate_release.cargo.metadata import Workspace
from crate_release.config.loader import load_environment
from crate_release.config.models import EnvironmentSettings, ReleaseConfig
from crate_release.consolidation import (
    CommitPolicy,
    find_shared_post_version,
    find_shared_version,
)
from crate_release.exceptions import (
    EXIT_FAILURE,
    EXIT_NOTHING_SELECTED,
    EXIT_SUCCESS,
    ReleaseExit,
)
from crate_release.gates import GateContext, GateRegistry, GateSeverity
from crate_release.hooks import HookEnvironment, run_hook
from crate_release.plan import PackageRelease, Selection, partition, plan
from crate_release.replace import do_file_replacements
from crate_release.template import NOW, Template
from crate_release.utils import console
from crate_release.utils.version import TargetVersion, Version

logger = logging.getLogger(__name__)

# Gate order: pre-mutation checks, then branch and remote, then registry limits.
LEADING_GATES = ("git_clean", "tags_missing", "monotonic_versions", "double_publish")
TRAILING_GATES = ("git_branch", "behind_upstream", "rate_limit")


@dataclass
class ReleaseWorkflow:
    """Releases the selected packages of one workspace."""

    workspace: Workspace
    config: ReleaseConfig
    packages: dict[str, PackageRelease]
    selection: Selection = field(default_factory=Selection)
    target: TargetVersion | None = None
    metadata: str | None = None
    prev_tag_name: str | None = None
    execute: bool = False
    no_confirm: bool = False
    index: CratesIndex = field(default_factory=CratesIndex)
    settings: EnvironmentSettings = field(default_factory=load_environment)
    confirm: Callable[[str], bool] = console.confirm
    sleep: Callable[[float], None] = time.sleep

    # State tracking
    failed: bool = False
    selected: list[PackageRelease] = field(default_factory=list)
    excluded: list[PackageRelease] = field(default_factory=list)
    shared_version: Version | None = None

    @property
    def dry_run(self) -> bool:
        return not self.execute

    def run(self) -> int:
        """Execute the pipeline and return the process exit code.

        Returns:
            0 on success, 2 when nothing was selected, 101 on a fatal error
        """
        steps = [
            ("Resolving release plan", self.resolve),
            ("Verifying release", self.verify),
            ("Confirming release", self.confirm_release),
            ("Preparing release", self.pre_release),
            ("Publishing", self.publish),
            ("Tagging", self.tag),
            ("Starting next development iteration", self.post_release),
            ("Pushing", self.push),
        ]
        try:
            for step_name, step_func in steps:
                logger.debug("> %s", step_name)
                step_func()
            self.finish()
        except ReleaseExit as e:
            return e.code
        return EXIT_SUCCESS

    def resolve(self) -> None:
        """Apply bumps, exclusions and shared versions; select packages.

        Raises:
            ReleaseExit: 2 if no package is left to release
        """
        for pkg in self.packages.values():
            if self.prev_tag_name:
                pkg.set_prior_tag(self.prev_tag_name)
            if pkg.config.release and self.target is not None:
                pkg.bump(self.target, self.metadata)

        _, self.excluded = partition(self.workspace, self.packages, self.selection)
        for pkg in self.excluded:
            pkg.exclude()
        diagnostics.warn_excluded_changes(self.workspace.root, self.excluded)

        plan(self.packages)
        diagnostics.warn_excluded_unpublished(self.index, self.excluded)

        self.selected = [pkg for pkg in self.packages.values() if pkg.config.release]
        if not self.selected:
            logger.info("No packages selected.")
            raise ReleaseExit(EXIT_NOTHING_SELECTED)

    def _gate(self, name: str, context: GateContext) -> None:
        result = GateRegistry.run(name, context)
        if result.passed:
            logger.debug("%s", result.message)
            return

        level = logging.ERROR if result.severity == GateSeverity.ERROR else logging.WARNING
        logger.log(level, "%s", result.message)
        if result.details:
            for line in result.details.splitlines():
                logger.log(level, "%s", line)
        if result.blocking:
            self.failed = True
            if not self.dry_run:
                raise ReleaseExit(EXIT_FAILURE)

    def verify(self) -> None:
        """Run every gate; outside dry-run the first blocking failure aborts."""
        git.git_version()
        context = GateContext(
            workspace_root=self.workspace.root,
            config=self.config,
            packages=self.selected,
            index=self.index,
            dry_run=self.dry_run,
        )
        for name in LEADING_GATES:
            self._gate(name, context)
        diagnostics.warn_changed(self.workspace.root, self.selected)
        for name in TRAILING_GATES:
            self._gate(name, context)

        self.shared_version = find_shared_version(self.selected)

    def confirm_release(self) -> None:
        """Ask before mutating anything.

        Raises:
            ReleaseExit: 0 if the user declines
        """
        if self.dry_run or self.no_confirm:
            return
        if len(self.selected) == 1:
            pkg = self.selected[0]
            prompt = f"Release {pkg.name} {pkg.version.full_string}?"
        else:
            lines = [f"  {pkg.name} {pkg.version.full_string}" for pkg in self.selected]
            prompt = "Release\n" + "\n".join(lines) + "\n?"
        if not self.confirm(prompt):
            raise ReleaseExit(EXIT_SUCCESS)

    def _update_dependents(self, pkg: PackageRelease, version: Version) -> None:
        updated = []
        for dependent in pkg.dependents:
            new_req = manifest.upgrade_dependency_req(
                dependent.name,
                dependent.manifest_path,
                pkg.name,
                dependent.req,
                version,
                pkg.config.dependent_version,
                self.dry_run,
                workspace_manifest=self.workspace.manifest_path,
            )
            updated.append(replace(dependent, req=new_req) if new_req else dependent)
        pkg.dependents = updated

    def _set_version(self, pkg: PackageRelease, version: Version) -> None:
        manifest.set_package_version(
            pkg.manifest_path,
            version.full_string,
            self.dry_run,
            workspace_manifest=self.workspace.manifest_path,
        )
        self._update_dependents(pkg, version)
        if self.dry_run:
            logger.debug("Updating lock file")
        else:
            manifest.update_lock(pkg.manifest_path)

    def _call_hook(
        self,
        pkg: PackageRelease,
        command: str | list[str],
        template: Template,
        new_version: Version,
    ) -> None:
        env = HookEnvironment(
            prev_version=pkg.initial_version.bare_string,
            prev_metadata=pkg.initial_version.build,
            new_version=new_version.bare_string,
            new_metadata=new_version.build,
            dry_run=self.dry_run,
            crate_name=pkg.name,
            workspace_root=self.workspace.root,
            crate_root=pkg.manifest_path.parent,
        )
        if not run_hook(command, template, env, pkg.package_root):
            logger.error(
                "Release of %s aborted by non-zero return of the release hook.", pkg.name
            )
            raise ReleaseExit(EXIT_FAILURE)

    def pre_release(self) -> None:
        """Bump versions, rewrite files, run hooks and commit."""
        policy = CommitPolicy(self.workspace.root, self.config, "pre", self.dry_run)
        for pkg in self.selected:
            if pkg.planned_version is not None:
                logger.info("Update %s to version %s", pkg.name, pkg.planned_version)
                self._set_version(pkg, pkg.planned_version)

            template = pkg.template(tag_name=pkg.planned_tag)
            do_file_replacements(
                pkg.config.pre_release_replacements,
                template,
                pkg.package_root,
                prerelease=pkg.version.is_prerelease,
                noisy=False,
                dry_run=self.dry_run,
            )
            if pkg.config.pre_release_hook:
                self._call_hook(pkg, pkg.config.pre_release_hook, template, pkg.version)

            if pkg.planned_version is not None:
                policy.commit_package(pkg, template)

        shared = self.shared_version
        policy.commit_shared(
            Template(
                version=shared.bare_string if shared else None,
                metadata=shared.build if shared else None,
                date=NOW,
            )
        )

    def publish(self) -> None:
        """Publish packages in dependency order, waiting for each to appear."""
        multi_member = len(self.workspace.members) > 1
        for pkg in self.selected:
            if not pkg.config.publish:
                continue
            logger.info("Publishing %s", pkg.name)

            verify = pkg.config.verify
            if verify and self.dry_run and len(self.selected) != 1:
                logger.debug("skipping verification to avoid unpublished dependencies from dry-run")
                verify = False

            if not cargo_publish.publish(
                self.dry_run,
                verify,
                pkg.manifest_path,
                package=pkg.name if multi_member else None,
                features=pkg.config.enable_features,
                all_features=pkg.config.enable_all_features,
                registry=pkg.config.registry,
                target=pkg.config.target,
            ):
                logger.error("Failed to publish %s", pkg.name)
                raise ReleaseExit(EXIT_FAILURE)

            grace = self.settings.publish_grace_sleep
            if not self.dry_run and grace > 0:
                logger.info(
                    "waiting an additional %s seconds for %s to update its indices...",
                    grace,
                    pkg.config.registry or "crates.io",
                )
                self.sleep(grace)

            if pkg.config.registry is None:
                wait_for_publish(
                    self.index,
                    pkg.name,
                    pkg.version.full_string,
                    self.settings.publish_timeout,
                    self.dry_run,
                    sleep=self.sleep,
                )

    def tag(self) -> None:
        """Create each planned tag once."""
        seen: set[str] = set()
        for pkg in self.selected:
            tag_name = pkg.planned_tag
            if tag_name is None or tag_name in seen:
                continue
            seen.add(tag_name)

            message = pkg.template(tag_name=tag_name).render(pkg.config.tag_message)
            logger.debug("Creating git tag %s", tag_name)
            if not git.tag(pkg.package_root, tag_name, message, pkg.config.sign_tag, self.dry_run):
                logger.error("Failed to create tag %s", tag_name)
                raise ReleaseExit(EXIT_FAILURE)

    def post_release(self) -> None:
        """Move to development versions and commit."""
        policy = CommitPolicy(self.workspace.root, self.config, "post", self.dry_run)
        for pkg in self.selected:
            next_version = pkg.post_version
            if next_version is None:
                continue

            logger.info("Starting %s's next development iteration %s", pkg.name, next_version)
            self._set_version(pkg, next_version)

            template = replace(
                pkg.template(tag_name=pkg.planned_tag),
                next_version=next_version.bare_string,
                next_metadata=next_version.build,
            )
            do_file_replacements(
                pkg.config.post_release_replacements,
                template,
                pkg.package_root,
                prerelease=False,
                noisy=False,
                dry_run=self.dry_run,
            )
            if pkg.config.post_release_hook:
                self._call_hook(pkg, pkg.config.post_release_hook, template, next_version)
            policy.commit_package(pkg, template)

        shared = self.shared_version
        shared_post = find_shared_post_version(self.selected)
        policy.commit_shared(
            Template(
                version=shared.bare_string if shared else None,
                metadata=shared.build if shared else None,
                next_version=shared_post.bare_string if shared_post else None,
                next_metadata=shared_post.build if shared_post else None,
                date=NOW,
            )
        )

    def push(self) -> None:
        """Push tags and the current branch to the configured remote."""
        if not self.config.push:
            return
        pushing = [pkg for pkg in self.selected if pkg.config.push]
        if not pushing:
            return

        refs = sorted({pkg.planned_tag for pkg in pushing if pkg.planned_tag})
        refs.append(git.current_branch(self.workspace.root))
        remote = self.config.push_remote
        logger.info("Pushing %s to %s", ", ".join(refs), remote)
        if not git.push(
            self.workspace.root, remote, refs, self.config.push_options, self.dry_run
        ):
            logger.error("Failed to push to %s", remote)
            raise ReleaseExit(EXIT_FAILURE)

    def finish(self) -> None:
        """Report the outcome of a dry-run.

        Raises:
            ReleaseExit: 101 if a dry-run gate failed
        """
        if not self.dry_run:
            return
        if self.failed:
            logger.error("Dry-run failed, resolve the above errors and try again.")
            raise ReleaseExit(EXIT_FAILURE)
        logger.warning("Ran a `dry-run`, re-run with `--execute` if all looked good.")
