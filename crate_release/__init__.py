"""Release pipeline coordinator for Cargo workspaces."""

__version__ = "0.1.0"

from crate_release.exceptions import (
    ConfigurationError,
    GitError,
    ReleaseError,
    ReleaseExit,
)

__all__ = [
    "__version__",
    "ReleaseError",
    "ReleaseExit",
    "ConfigurationError",
    "GitError",
]
