"""Git reference model and history queries."""

from .history import Commit, GitError, commits_between, previous_release_tag
from .ref import (
    BranchRef,
    CommitRef,
    GitRef,
    GitRefError,
    TagRef,
    parse_ref,
    ref_from_env,
    short_sha,
)

__all__ = [
    # history
    "Commit",
    "GitError",
    "commits_between",
    "previous_release_tag",
    # ref
    "BranchRef",
    "CommitRef",
    "GitRef",
    "GitRefError",
    "TagRef",
    "parse_ref",
    "ref_from_env",
    "short_sha",
]
