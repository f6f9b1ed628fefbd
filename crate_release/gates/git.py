"""Repository state gates: clean tree, free tags, allowed branch, upstream."""

import fnmatch
from typing import ClassVar

from crate_release import git
from crate_release.gates.base import Gate, GateContext, GateRegistry, GateResult


def branch_allowed(branch: str, patterns: list[str]) -> bool:
    """Match ``branch`` against gitignore-style globs.

    The last matching pattern decides; a leading ``!`` negates it.
    """
    allowed = False
    for pattern in patterns:
        negated = pattern.startswith("!")
        glob = pattern[1:] if negated else pattern
        if fnmatch.fnmatchcase(branch, glob):
            allowed = not negated
    return allowed


@GateRegistry.register
class GitCleanGate(Gate):
    """The working tree has no uncommitted changes."""

    name: ClassVar[str] = "git_clean"
    description: ClassVar[str] = "Working directory is clean"
    category: ClassVar[str] = "git"

    def check(self, context: GateContext) -> GateResult:
        dirty = git.is_dirty(context.workspace_root)
        if dirty is None:
            return GateResult.success("Working directory is clean")

        file_list = "\n".join(f"  - {f}" for f in dirty[:10])
        if len(dirty) > 10:
            file_list += f"\n  ... and {len(dirty) - 10} more"
        return GateResult.error(
            "Uncommitted changes detected, please resolve before release",
            details=f"Changed files:\n{file_list}",
            fix_command="git status",
        )


@GateRegistry.register
class TagsMissingGate(Gate):
    """None of the planned tags exist yet."""

    name: ClassVar[str] = "tags_missing"
    description: ClassVar[str] = "Planned tags are not taken"
    category: ClassVar[str] = "git"

    def check(self, context: GateContext) -> GateResult:
        seen: set[str] = set()
        existing = []
        for pkg in context.packages:
            tag_name = pkg.planned_tag
            if tag_name is None or tag_name in seen:
                continue
            seen.add(tag_name)
            if git.tag_exists(pkg.package_root, tag_name):
                existing.append(f"tag `{tag_name}` already exists (for `{pkg.name}`)")

        if not existing:
            return GateResult.success("Planned tags are available")
        return GateResult.error(
            existing[0],
            details="\n".join(existing[1:]) or None,
            fix_command="git tag --list",
        )


@GateRegistry.register
class GitBranchGate(Gate):
    """The current branch is allowed by ``allow-branch``."""

    name: ClassVar[str] = "git_branch"
    description: ClassVar[str] = "Releasing from an allowed branch"
    category: ClassVar[str] = "git"

    def check(self, context: GateContext) -> GateResult:
        branch = git.current_branch(context.workspace_root)
        patterns = context.config.allow_branch
        if branch_allowed(branch, patterns):
            return GateResult.success(f"On allowed branch {branch}")
        return GateResult.error(
            f"cannot release from branch {branch!r}, instead switch to {', '.join(patterns)!r}",
            fix_command="git switch <branch>",
        )


@GateRegistry.register
class BehindUpstreamGate(Gate):
    """The branch is not behind its remote counterpart."""

    name: ClassVar[str] = "behind_upstream"
    description: ClassVar[str] = "Branch is up to date with remote"
    category: ClassVar[str] = "git"

    def check(self, context: GateContext) -> GateResult:
        remote = context.config.push_remote
        branch = git.current_branch(context.workspace_root)
        git.fetch(context.workspace_root, remote, branch)
        if git.is_behind_remote(context.workspace_root, remote, branch):
            return GateResult.warning(
                f"{branch} is behind {remote}/{branch}",
                fix_command=f"git pull {remote} {branch}",
            )
        return GateResult.success(f"{branch} is up to date with {remote}/{branch}")
