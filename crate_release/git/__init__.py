"""Git queries and operations used by the release pipeline."""

from crate_release.git.operations import commit_all, fetch, push, tag
from crate_release.git.queries import (
    changed_files,
    current_branch,
    find_last_tag,
    git_version,
    is_behind_remote,
    is_dirty,
    tag_exists,
    top_level,
)

__all__ = [
    "git_version",
    "top_level",
    "is_dirty",
    "tag_exists",
    "find_last_tag",
    "current_branch",
    "is_behind_remote",
    "changed_files",
    "commit_all",
    "tag",
    "push",
    "fetch",
]
