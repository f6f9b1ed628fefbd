"""Regex-driven text replacements in arbitrary files.

Rules are validated before any file is read. Files are then processed in
sorted path order and each is written once after all of its rules succeed.
If a rule fails, files earlier in that order have already been written;
the failing file is left untouched. In dry-run the match count of each rule
and a unified diff are logged instead of writing.
"""

import logging
import re
from collections import defaultdict
from pathlib import Path

from crate_release.config.models import Replace
from crate_release.exceptions import (
    ReleaseIOError,
    ReplaceFileNotFoundError,
    ReplacerConfigError,
    ReplacerMaxError,
    ReplacerMinError,
    ReplacerRegexError,
)
from crate_release.template import Template
from crate_release.utils.diff import log_diff

logger = logging.getLogger(__name__)


def _compile(rule: Replace) -> re.Pattern[str]:
    if not rule.file or rule.search is None or rule.replace is None:
        raise ReplacerConfigError(details=f"rule: {rule.model_dump(exclude_none=True)}")
    try:
        return re.compile(rule.search)
    except re.error as e:
        raise ReplacerRegexError(
            f"Invalid replacement pattern `{rule.search}`",
            details=str(e),
            fix_hint=f"Fix the `search` pattern for {rule.file}",
        ) from e


def _bounds(rule: Replace) -> tuple[int, int | None]:
    minimum = rule.min if rule.min is not None else rule.exactly
    maximum = rule.max if rule.max is not None else rule.exactly
    return (1 if minimum is None else minimum), maximum


def do_file_replacements(
    rules: list[Replace],
    template: Template,
    cwd: Path,
    prerelease: bool,
    noisy: bool,
    dry_run: bool,
) -> bool:
    """Apply replacement rules relative to ``cwd``.

    Args:
        rules: Replacement rules in configuration order
        template: Values for placeholders in ``replace`` text
        cwd: Directory rule paths are relative to
        prerelease: Skip rules that do not opt in with ``prerelease = true``
        noisy: Log dry-run diffs at info level rather than debug
        dry_run: Log a diff instead of writing

    Returns:
        True once every file has been processed

    Raises:
        ReplacerConfigError: A rule lacks file, search or replace
        ReplacerRegexError: A search pattern does not compile
        ReplaceFileNotFoundError: A target file does not exist
        ReplacerMinError: Fewer matches than required
        ReplacerMaxError: More matches than allowed
    """
    by_file: dict[Path, list[tuple[Replace, re.Pattern[str]]]] = defaultdict(list)
    for rule in rules:
        pattern = _compile(rule)
        by_file[cwd / rule.file].append((rule, pattern))

    for path in sorted(by_file):
        if not path.exists():
            raise ReplaceFileNotFoundError(path)
        try:
            before = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ReleaseIOError(f"Failed to read {path}", details=str(e)) from e

        after = before
        for rule, pattern in by_file[path]:
            if prerelease and not rule.prerelease:
                logger.debug("skipping replacement in %s for prerelease", path)
                continue

            minimum, maximum = _bounds(rule)
            found = sum(1 for _ in pattern.finditer(after))
            if found < minimum:
                raise ReplacerMinError(rule.search, minimum, found)
            if maximum is not None and found > maximum:
                raise ReplacerMaxError(rule.search, maximum, found)
            if dry_run:
                logger.log(
                    logging.INFO if noisy else logging.DEBUG,
                    "%s: %d replacement(s) for %r",
                    path,
                    found,
                    rule.search,
                )

            after = pattern.sub(template.render(rule.replace), after)

        if before == after:
            continue
        if dry_run:
            log_diff(path, before, after, noisy)
            continue
        try:
            path.write_text(after, encoding="utf-8")
        except OSError as e:
            raise ReleaseIOError(f"Failed to write {path}", details=str(e)) from e

    return True
