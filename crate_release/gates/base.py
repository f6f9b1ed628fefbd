"""Gate interface and registry.

Gates are read-only precondition checks. Each returns a GateResult; the
pipeline decides what a failed result means (abort outside dry-run, or
remember the failure and keep reporting in dry-run).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from crate_release.cargo.index import CratesIndex
    from crate_release.config.models import ReleaseConfig
    from crate_release.plan import PackageRelease


class GateSeverity(Enum):
    """How a failed check is treated.

    - ERROR: Blocks release
    - WARNING: Reported, never blocks
    - INFO: Informational only
    """

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class GateResult:
    """Outcome of one gate.

    Attributes:
        passed: Whether the precondition holds
        message: One-line summary
        severity: ERROR results block a release when not passed
        details: Extra lines (offending files, tags, crates)
        fix_command: Suggested command to resolve the problem
    """

    passed: bool
    message: str
    severity: GateSeverity = GateSeverity.ERROR
    details: str | None = None
    fix_command: str | None = None

    @property
    def blocking(self) -> bool:
        return not self.passed and self.severity == GateSeverity.ERROR

    @classmethod
    def success(cls, message: str = "Check passed") -> "GateResult":
        return cls(passed=True, message=message, severity=GateSeverity.INFO)

    @classmethod
    def error(
        cls,
        message: str,
        details: str | None = None,
        fix_command: str | None = None,
    ) -> "GateResult":
        return cls(
            passed=False,
            message=message,
            severity=GateSeverity.ERROR,
            details=details,
            fix_command=fix_command,
        )

    @classmethod
    def warning(
        cls,
        message: str,
        details: str | None = None,
        fix_command: str | None = None,
    ) -> "GateResult":
        return cls(
            passed=False,
            message=message,
            severity=GateSeverity.WARNING,
            details=details,
            fix_command=fix_command,
        )


@dataclass
class GateContext:
    """Everything a gate may inspect."""

    workspace_root: Path
    config: "ReleaseConfig"
    packages: list["PackageRelease"]
    index: "CratesIndex | None" = None
    dry_run: bool = True


class Gate(ABC):
    """A single release precondition."""

    name: ClassVar[str]
    description: ClassVar[str]
    category: ClassVar[str]

    @abstractmethod
    def check(self, context: GateContext) -> GateResult:
        """Evaluate the precondition against ``context``."""

    def should_run(self, context: GateContext) -> bool:
        return True


class GateRegistry:
    """Gates in registration order, which is the order the pipeline runs them."""

    _gates: dict[str, type[Gate]] = {}

    @classmethod
    def register(cls, gate_class: type[Gate]) -> type[Gate]:
        """Register a gate class; usable as a decorator.

        Raises:
            TypeError: If the class lacks name, description or category
            ValueError: If another class already uses the same name
        """
        missing = [
            attr
            for attr in ("name", "description", "category")
            if not hasattr(gate_class, attr)
        ]
        if missing:
            raise TypeError(
                f"Gate class {gate_class.__name__} missing required class attributes: "
                f"{', '.join(missing)}"
            )
        existing = cls._gates.get(gate_class.name)
        if existing is not None and existing is not gate_class:
            raise ValueError(
                f"Gate name '{gate_class.name}' already registered by {existing.__name__}"
            )
        cls._gates[gate_class.name] = gate_class
        return gate_class

    @classmethod
    def get(cls, name: str) -> type[Gate] | None:
        return cls._gates.get(name)

    @classmethod
    def list_registered(cls) -> list[str]:
        return list(cls._gates)

    @classmethod
    def run(cls, name: str, context: GateContext) -> GateResult:
        """Run one gate by name.

        Raises:
            KeyError: If no gate has that name
        """
        gate = cls._gates[name]()
        if not gate.should_run(context):
            return GateResult.success(f"{name}: skipped")
        return gate.check(context)

    @classmethod
    def run_all(cls, context: GateContext) -> list[tuple[str, GateResult]]:
        return [
            (name, cls.run(name, context))
            for name in cls._gates
            if cls._gates[name]().should_run(context)
        ]
