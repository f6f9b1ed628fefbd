"""Placeholder substitution for commit messages, tags, hooks and replacements.

Placeholders are written ``{{name}}``. Every known placeholder is replaced;
one without a bound value renders as an empty string.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime

logger = logging.getLogger(__name__)

# Captured once so every artifact of a run shares the same date.
NOW = datetime.now().strftime("%Y-%m-%d")


@dataclass(frozen=True)
class Template:
    """Values bound to the placeholders of a single render."""

    prev_version: str | None = None
    prev_metadata: str | None = None
    version: str | None = None
    metadata: str | None = None
    crate_name: str | None = None
    date: str | None = None
    tag_name: str | None = None
    next_version: str | None = None
    next_metadata: str | None = None
    prefix: str | None = None

    def render(self, text: str) -> str:
        """Substitute every placeholder in ``text``. Never fails."""
        for field in fields(self):
            placeholder = f"{{{{{field.name}}}}}"
            if placeholder not in text:
                continue
            value = getattr(self, field.name)
            if value is None:
                logger.debug("`%s` placeholder is unbound in %r", field.name, text)
                value = ""
            text = text.replace(placeholder, value)
        return text
