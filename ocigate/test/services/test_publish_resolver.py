"""Tests for the tag/push policy."""

from __future__ import annotations

import pytest

from ocigate.git.ref import BranchRef, CommitRef, TagRef
from ocigate.services.publish.resolver import (
    PublishPolicy,
    derive_git_hash,
    oci_tag,
    resolve_publish,
)

from ._fixtures import SHA

REPO = "ghcr.io/dfinity/dre/dre"


class TestResolvePublish:
    def test_release_tag(self) -> None:
        decision = resolve_publish(TagRef(name="v1.2.3", sha=SHA), repository=REPO)
        assert decision.push is True
        assert decision.repository == REPO
        assert decision.tags == frozenset({"v1.2.3"})
        assert decision.git_hash == "v1.2.3"

    def test_release_tag_with_latest(self) -> None:
        decision = resolve_publish(
            TagRef(name="v1.2.3", sha=SHA),
            repository=REPO,
            policy=PublishPolicy(tag_latest=True),
        )
        assert decision.tags == frozenset({"v1.2.3", "latest"})

    def test_prerelease_tag_with_build_metadata(self) -> None:
        decision = resolve_publish(TagRef(name="v2.0.0-rc.1+build.5", sha=SHA), repository=REPO)
        assert decision.push is True
        assert decision.tags == frozenset({"v2.0.0-rc.1_build.5"})

    def test_staging_branch_uses_short_sha(self) -> None:
        decision = resolve_publish(BranchRef(name="container", sha=SHA), repository=REPO)
        assert decision.push is True
        assert decision.tags == frozenset({SHA[:7]})
        assert decision.git_hash == SHA

    def test_custom_staging_branch(self) -> None:
        policy = PublishPolicy(staging_branch="staging")
        assert resolve_publish(BranchRef(name="staging", sha=SHA), repository=REPO, policy=policy).push
        assert not resolve_publish(BranchRef(name="container", sha=SHA), repository=REPO, policy=policy).push

    @pytest.mark.parametrize(
        "ref",
        [
            BranchRef(name="main", sha=SHA),
            TagRef(name="release-2024", sha=SHA),
            TagRef(name="v1.2", sha=SHA),
            CommitRef(sha=SHA),
        ],
    )
    def test_no_push(self, ref: BranchRef | TagRef | CommitRef) -> None:
        decision = resolve_publish(ref, repository=REPO)
        assert decision.push is False
        assert decision.tags == frozenset()
        assert decision.reason


def test_git_hash() -> None:
    assert derive_git_hash(TagRef(name="v0.1.0", sha=SHA)) == "v0.1.0"
    assert derive_git_hash(BranchRef(name="main", sha=SHA)) == SHA
    assert derive_git_hash(CommitRef(sha=SHA)) == SHA


def test_oci_tag() -> None:
    assert oci_tag("v1.0.0") == "v1.0.0"
    assert oci_tag("v1.0.0+meta") == "v1.0.0_meta"
