"""Registry gates: double publication and crates.io rate limits.

Both only consider packages publishing to the default registry, since
only that registry's index is consulted.
"""

from typing import ClassVar

from crate_release.gates.base import Gate, GateContext, GateRegistry, GateResult

# crates.io burst limits for a single release
MAX_NEW_CRATES = 5
MAX_EXISTING_CRATES = 30


@GateRegistry.register
class DoublePublishGate(Gate):
    """No target version is already in the registry."""

    name: ClassVar[str] = "double_publish"
    description: ClassVar[str] = "Versions are not already published"
    category: ClassVar[str] = "publish"

    def should_run(self, context: GateContext) -> bool:
        return context.index is not None

    def check(self, context: GateContext) -> GateResult:
        assert context.index is not None
        published = [
            f"{pkg.name} {pkg.version.full_string} is already published"
            for pkg in context.packages
            if pkg.publishes_to_default_registry
            and context.index.is_published(pkg.name, pkg.version.full_string)
        ]
        if not published:
            return GateResult.success("No version is already published")
        return GateResult.error(
            published[0],
            details="\n".join(published[1:]) or None,
            fix_command="cargo release <level> to pick a new version",
        )


@GateRegistry.register
class RateLimitGate(Gate):
    """The release stays within crates.io publish rate limits."""

    name: ClassVar[str] = "rate_limit"
    description: ClassVar[str] = "Publish count within crates.io rate limits"
    category: ClassVar[str] = "publish"

    def should_run(self, context: GateContext) -> bool:
        return context.index is not None

    def check(self, context: GateContext) -> GateResult:
        assert context.index is not None
        new = existing = 0
        for pkg in context.packages:
            if not pkg.publishes_to_default_registry:
                continue
            if context.index.has_crate(pkg.name):
                existing += 1
            else:
                new += 1

        problems = []
        if new > MAX_NEW_CRATES:
            problems.append(
                f"attempting to publish {new} new crates which is above the crates.io rate limit"
            )
        if existing > MAX_EXISTING_CRATES:
            problems.append(
                f"attempting to publish {existing} existing crates which is above the "
                "crates.io rate limit"
            )
        if not problems:
            return GateResult.success(f"{new} new and {existing} existing crates to publish")
        return GateResult.error(problems[0], details="\n".join(problems[1:]) or None)
