"""Utility modules for crate-release."""

from crate_release.utils.shell import ShellError, call, run, strip_ansi
from crate_release.utils.version import BumpLevel, TargetVersion, Version

__all__ = [
    "run",
    "call",
    "strip_ansi",
    "ShellError",
    "BumpLevel",
    "TargetVersion",
    "Version",
]
