"""Release preconditions.

Importing this package registers every gate with GateRegistry.
"""

from crate_release.gates import git, publish, version  # noqa: F401
from crate_release.gates.base import (
    Gate,
    GateContext,
    GateRegistry,
    GateResult,
    GateSeverity,
)

__all__ = [
    "Gate",
    "GateContext",
    "GateRegistry",
    "GateResult",
    "GateSeverity",
]
