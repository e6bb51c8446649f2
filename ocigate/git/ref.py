"""Version-control reference model.

A pipeline run is driven by exactly one reference: a branch push, a tag push,
or a bare commit. It is modelled as a tagged union so the publish and release
policies can dispatch on it with `match` and be tested without any CI present.

Usage:
    match ref_from_env(os.environ):
        case Ok(TagRef(name=name)):
            print(f"tag {name}")
        case Ok(ref):
            print(f"{ref.kind} {ref.name}")
        case Err(e):
            print(e.message)
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from ocigate.core.result import Err, Ok, Result

__all__ = [
    "BranchRef",
    "CommitRef",
    "GitRef",
    "GitRefError",
    "RefKind",
    "TagRef",
    "is_full_sha",
    "parse_ref",
    "ref_from_env",
    "short_sha",
]

RefKind = Literal["branch", "tag", "commit"]

SHORT_SHA_LENGTH = 7

_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


@dataclass(frozen=True, slots=True)
class GitRefError:
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BranchRef:
    name: str
    sha: str

    @property
    def kind(self) -> RefKind:
        return "branch"


@dataclass(frozen=True, slots=True)
class TagRef:
    name: str
    sha: str

    @property
    def kind(self) -> RefKind:
        return "tag"


@dataclass(frozen=True, slots=True)
class CommitRef:
    sha: str

    @property
    def kind(self) -> RefKind:
        return "commit"

    @property
    def name(self) -> str:
        return self.sha


GitRef = BranchRef | TagRef | CommitRef


def is_full_sha(value: str) -> bool:
    return _SHA_RE.match(value) is not None


def short_sha(sha: str, length: int = SHORT_SHA_LENGTH) -> str:
    return sha[:length]


def _checked_sha(sha: str) -> Result[str, GitRefError]:
    sha = sha.strip().lower()
    if not is_full_sha(sha):
        return Err(
            GitRefError(
                message=f"invalid commit sha: {sha!r}",
                hint="expected 40 hex characters (GITHUB_SHA)",
            )
        )
    return Ok(sha)


def parse_ref(ref: str, sha: str) -> Result[GitRef, GitRefError]:
    """Build a GitRef from a fully qualified ref (`refs/tags/v1.0.0`).

    Anything that is neither `refs/heads/*` nor `refs/tags/*` is treated as a
    bare commit (e.g. `refs/pull/12/merge` or an empty ref).
    """
    checked = _checked_sha(sha)
    if isinstance(checked, Err):
        return checked

    ref = ref.strip()
    if ref.startswith("refs/heads/") and len(ref) > len("refs/heads/"):
        return Ok(BranchRef(name=ref.removeprefix("refs/heads/"), sha=checked.value))
    if ref.startswith("refs/tags/") and len(ref) > len("refs/tags/"):
        return Ok(TagRef(name=ref.removeprefix("refs/tags/"), sha=checked.value))
    return Ok(CommitRef(sha=checked.value))


def ref_from_env(env: Mapping[str, str]) -> Result[GitRef, GitRefError]:
    """Read the CI environment contract.

    Consumes GITHUB_REF_TYPE (`tag` | `branch`), GITHUB_REF_NAME and
    GITHUB_SHA. Without a ref type the run is treated as a bare commit.
    """
    sha = env.get("GITHUB_SHA", "")
    if not sha:
        return Err(GitRefError(message="GITHUB_SHA is not set", hint="pass --sha explicitly"))
    checked = _checked_sha(sha)
    if isinstance(checked, Err):
        return checked

    ref_type = env.get("GITHUB_REF_TYPE", "").strip()
    ref_name = env.get("GITHUB_REF_NAME", "").strip()

    if not ref_type:
        return Ok(CommitRef(sha=checked.value))

    if ref_type not in ("tag", "branch"):
        return Err(
            GitRefError(
                message=f"unsupported GITHUB_REF_TYPE: {ref_type!r}",
                hint="expected 'tag' or 'branch'",
            )
        )
    if not ref_name:
        return Err(GitRefError(message=f"GITHUB_REF_NAME is empty for a {ref_type} ref"))

    if ref_type == "tag":
        return Ok(TagRef(name=ref_name, sha=checked.value))
    return Ok(BranchRef(name=ref_name, sha=checked.value))
