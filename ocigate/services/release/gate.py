"""Release gate.

A release is cut only for a tag whose name starts with `v`, always as a draft
pre-release. When the gate opens, every candidate file must exist before
anything is staged: a release is never cut with a partial file set.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from collections.abc import Sequence
from pathlib import Path

from ocigate.core.result import Err, Ok, Result
from ocigate.git.ref import BranchRef, CommitRef, GitRef, TagRef
from ocigate.platform.files import TMP_SUFFIX, replace_dir
from ocigate.services.release.errors import ReleaseError
from ocigate.services.release.model import ReleaseCandidate, ReleaseDecision

__all__ = ["RELEASE_TAG_PREFIX", "decide_release", "resolve_release"]

RELEASE_TAG_PREFIX = "v"

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def decide_release(ref: GitRef) -> ReleaseDecision:
    match ref:
        case TagRef(name=name) if name.startswith(RELEASE_TAG_PREFIX):
            return ReleaseDecision(
                cut=True,
                draft=True,
                prerelease=True,
                tag=name,
                reason=f"release tag {name}",
            )
        case TagRef(name=name):
            return ReleaseDecision(cut=False, reason=f"tag {name} does not start with '{RELEASE_TAG_PREFIX}'")
        case BranchRef(name=name):
            return ReleaseDecision(cut=False, reason=f"branch {name} never releases")
        case CommitRef():
            return ReleaseDecision(cut=False, reason="bare commit never releases")


def _stage(candidates: Sequence[ReleaseCandidate], staging_dir: Path) -> None:
    staging_dir.parent.mkdir(parents=True, exist_ok=True)
    tmp = Path(
        tempfile.mkdtemp(prefix=f".{staging_dir.name}.", suffix=TMP_SUFFIX, dir=staging_dir.parent)
    )
    try:
        for candidate in candidates:
            dest = tmp / candidate.name
            # copyfile follows symlinks: the release carries the real bytes.
            shutil.copyfile(candidate.source, dest)
            os.chmod(dest, dest.stat().st_mode | _EXEC_BITS)
        replace_dir(tmp, staging_dir)
    finally:
        if tmp.exists():
            shutil.rmtree(tmp, ignore_errors=True)


def resolve_release(
    ref: GitRef,
    candidate_files: Sequence[ReleaseCandidate],
    *,
    staging_dir: Path,
) -> Result[ReleaseDecision, ReleaseError]:
    """Decide and, when the gate is open, stage the release files.

    Returns Err(candidate_missing) naming every missing file; nothing is
    copied in that case.
    """
    decision = decide_release(ref)
    if not decision.cut:
        return Ok(decision)

    names = [c.name for c in candidate_files]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"duplicate release file names: {', '.join(duplicates)}",
            )
        )

    missing = [c.source for c in candidate_files if not c.source.is_file()]
    if missing:
        return Err(
            ReleaseError(
                kind="candidate_missing",
                message=f"release files missing: {', '.join(str(p) for p in missing)}",
                hint="build the release targets before tagging",
            )
        )

    try:
        _stage(candidate_files, staging_dir)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="staging_failed",
                message=f"failed to stage release files: {e}",
                hint=str(staging_dir),
            )
        )

    return Ok(
        ReleaseDecision(
            cut=True,
            draft=decision.draft,
            prerelease=decision.prerelease,
            tag=decision.tag,
            attached_files=frozenset(staging_dir / c.name for c in candidate_files),
            reason=decision.reason,
        )
    )
