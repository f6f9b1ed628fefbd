"""Terminal output for crate-release.

All diagnostics go to stderr: the stdlib logging tree is rendered by rich,
and interactive prompts use the same console.
"""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

LOG_LEVELS = {
    -1: logging.ERROR,
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def configure_logging(verbosity: int = 0) -> None:
    """Install a rich handler on the ``crate_release`` logger.

    Args:
        verbosity: -1 for quiet, 0 for warnings, 1 for info, 2+ for debug
    """
    level = LOG_LEVELS[max(-1, min(verbosity, 2))]
    handler = RichHandler(
        console=console,
        show_time=False,
        show_path=verbosity >= 2,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger("crate_release")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on stderr, defaulting to no."""
    return typer.confirm(prompt, default=False, err=True)
