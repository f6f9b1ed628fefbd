"""Version gates."""

from typing import ClassVar

from crate_release.gates.base import Gate, GateContext, GateRegistry, GateResult


@GateRegistry.register
class MonotonicVersionsGate(Gate):
    """No package moves to a lower version."""

    name: ClassVar[str] = "monotonic_versions"
    description: ClassVar[str] = "Versions only move forward"
    category: ClassVar[str] = "version"

    def check(self, context: GateContext) -> GateResult:
        downgrades = [
            f"cannot downgrade {pkg.name} from {pkg.initial_version} to {pkg.planned_version}"
            for pkg in context.packages
            if pkg.planned_version is not None and pkg.planned_version < pkg.initial_version
        ]
        if not downgrades:
            return GateResult.success("Versions only move forward")
        return GateResult.error(downgrades[0], details="\n".join(downgrades[1:]) or None)
