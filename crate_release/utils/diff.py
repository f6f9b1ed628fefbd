"""Unified diff previews for dry-run file edits."""

import difflib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def log_diff(path: Path, before: str, after: str, noisy: bool = True) -> None:
    """Log what writing ``after`` over ``before`` would change."""
    diff = "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"{path} original",
            tofile=f"{path} updated",
        )
    )
    logger.log(logging.INFO if noisy else logging.DEBUG, "Change:\n%s", diff)
