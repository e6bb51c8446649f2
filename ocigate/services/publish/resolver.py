"""Tag/push policy.

Which repository and tags an image is pushed under, if at all, is a pure
function of the git reference:

1. a `v<semver>` tag pushes under the tag name (plus `latest` if configured)
2. the staging branch pushes under the short commit sha
3. anything else does not push
"""

from __future__ import annotations

from dataclasses import dataclass

from ocigate.core.config import PublishConfig
from ocigate.git.ref import BranchRef, CommitRef, GitRef, TagRef, short_sha
from ocigate.services.release.semver import is_version_tag

__all__ = [
    "LATEST_TAG",
    "PublishDecision",
    "PublishPolicy",
    "derive_git_hash",
    "oci_tag",
    "resolve_publish",
]

LATEST_TAG = "latest"


@dataclass(frozen=True, slots=True)
class PublishPolicy:
    staging_branch: str = "container"
    tag_latest: bool = False

    @classmethod
    def from_config(cls, publish: PublishConfig) -> PublishPolicy:
        return cls(staging_branch=publish.staging_branch, tag_latest=publish.tag_latest)


@dataclass(frozen=True, slots=True)
class PublishDecision:
    push: bool
    repository: str
    tags: frozenset[str]
    git_hash: str | None = None
    reason: str = ""


def derive_git_hash(ref: GitRef) -> str:
    """GIT_HASH: the tag name for a tag, the full commit sha otherwise."""
    match ref:
        case TagRef(name=name):
            return name
        case BranchRef(sha=sha) | CommitRef(sha=sha):
            return sha


def oci_tag(name: str) -> str:
    # Registry tags cannot carry semver build metadata separators.
    return name.replace("+", "_")


def resolve_publish(
    ref: GitRef,
    *,
    repository: str,
    policy: PublishPolicy = PublishPolicy(),
) -> PublishDecision:
    match ref:
        case TagRef(name=name) if is_version_tag(name):
            tags = {oci_tag(name)}
            if policy.tag_latest:
                tags.add(LATEST_TAG)
            return PublishDecision(
                push=True,
                repository=repository,
                tags=frozenset(tags),
                git_hash=derive_git_hash(ref),
                reason=f"release tag {name}",
            )
        case BranchRef(name=name, sha=sha) if name == policy.staging_branch:
            return PublishDecision(
                push=True,
                repository=repository,
                tags=frozenset({short_sha(sha)}),
                git_hash=derive_git_hash(ref),
                reason=f"staging branch {name}",
            )
        case TagRef(name=name):
            reason = f"tag {name} is not a v<semver> release tag"
        case BranchRef(name=name):
            reason = f"branch {name} is not the staging branch ({policy.staging_branch})"
        case CommitRef(sha=sha):
            reason = f"commit {short_sha(sha)} is neither a tag nor a branch"

    return PublishDecision(push=False, repository=repository, tags=frozenset(), reason=reason)
