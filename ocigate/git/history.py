"""Commit history queries used to build release notes.

All operations shell out to `git` through `ocigate.platform.process` and
return Result values.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ocigate.core.result import Err, Ok, Result
from ocigate.platform.process import run as run_process

GIT_TIMEOUT_SECONDS = 30.0

# Unit separator; cannot appear in a commit subject.
_FIELD_SEP = "\x1f"

__all__ = [
    "Commit",
    "GitError",
    "commits_between",
    "previous_release_tag",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class Commit:
    sha: str
    subject: str

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


def previous_release_tag(repo_root: Path, tag: str) -> Result[str | None, GitError]:
    """Most recent `v*` tag reachable from the parent of `tag`.

    Returns Ok(None) when `tag` is the first release.
    """
    result = run_process(
        ["git", "describe", "--tags", "--abbrev=0", "--match", "v*", f"{tag}^"],
        cwd=repo_root,
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        stderr = result.error.stderr
        if "No names found" in stderr or "cannot describe" in stderr:
            return Ok(None)
        if "unknown revision" in stderr or "bad revision" in stderr:
            # `tag` is a root commit: there is no parent to describe.
            return Ok(None)
        return Err(
            GitError(
                command="describe",
                message=stderr.strip() or str(result.error),
                returncode=result.error.returncode,
            )
        )
    return Ok(result.value.strip() or None)


def commits_between(repo_root: Path, *, since: str | None, until: str) -> Result[list[Commit], GitError]:
    """Commits in `since..until`, newest first (the whole history if since is None)."""
    rev_range = f"{since}..{until}" if since else until
    result = run_process(
        ["git", "log", "--no-merges", f"--format=%H{_FIELD_SEP}%s", rev_range],
        cwd=repo_root,
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            GitError(
                command="log",
                message=result.error.stderr.strip() or str(result.error),
                returncode=result.error.returncode,
            )
        )

    commits: list[Commit] = []
    for line in result.value.splitlines():
        if _FIELD_SEP not in line:
            continue
        sha, subject = line.split(_FIELD_SEP, 1)
        commits.append(Commit(sha=sha.strip(), subject=subject.strip()))
    return Ok(commits)
