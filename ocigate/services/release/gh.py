from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path
from time import sleep
from typing import Protocol

from ocigate.core.result import Err, Ok, Result
from ocigate.core.structured import as_str_dict, get_str
from ocigate.platform.process import ProcessError
from ocigate.platform.process import run as run_process
from ocigate.services.release.errors import ReleaseError
from ocigate.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

__all__ = [
    "GhReleaseClient",
    "ReleaseClient",
    "ensure_gh_available",
]


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def _run_with_retry(
    cmd: list[str],
    *,
    cwd: Path,
    timeout: float,
    retry_attempts: int,
) -> Result[str, ProcessError]:
    attempts = max(1, retry_attempts)
    result = run_process(cmd, cwd=cwd, timeout=timeout)
    for attempt in range(1, attempts):
        if isinstance(result, Ok) or not _is_transient_gh_error(result.error):
            break
        sleep(GH_READ_RETRY_DELAY_SECONDS * attempt)
        result = run_process(cmd, cwd=cwd, timeout=timeout)
    return result


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


class ReleaseClient(Protocol):
    def find_release(self, tag: str) -> Result[str | None, ReleaseError]:
        """URL of the release for tag, or None if there is none."""
        ...

    def create_release(
        self,
        tag: str,
        body: str,
        draft: bool,
        prerelease: bool,
        files: Sequence[Path],
    ) -> Result[str, ReleaseError]:
        """Create the release and return its URL."""
        ...


class GhReleaseClient:
    def __init__(self, *, workspace_root: Path, repo: str | None = None) -> None:
        self._root = workspace_root
        self._repo = repo

    def _repo_args(self) -> list[str]:
        return ["--repo", self._repo] if self._repo else []

    def find_release(self, tag: str) -> Result[str | None, ReleaseError]:
        available = ensure_gh_available()
        if isinstance(available, Err):
            return available

        cmd = ["gh", "release", "view", tag, "--json", "url", *self._repo_args()]
        result = _run_with_retry(
            cmd,
            cwd=self._root,
            timeout=GH_TIMEOUT_SECONDS,
            retry_attempts=GH_READ_RETRY_ATTEMPTS,
        )
        if isinstance(result, Err):
            if "release not found" in result.error.stderr.lower():
                return Ok(None)
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"failed to query release: {tag}",
                    hint=result.error.stderr.strip() or None,
                )
            )

        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return Err(ReleaseError(kind="invalid_input", message=f"invalid JSON from gh release view: {e}"))

        data = as_str_dict(obj)
        if data is None:
            return Err(ReleaseError(kind="invalid_input", message="unexpected payload from gh release view"))
        return Ok(get_str(data, "url") or tag)

    def create_release(
        self,
        tag: str,
        body: str,
        draft: bool,
        prerelease: bool,
        files: Sequence[Path],
    ) -> Result[str, ReleaseError]:
        available = ensure_gh_available()
        if isinstance(available, Err):
            return available

        fd, notes_name = tempfile.mkstemp(prefix="ocigate-notes-", suffix=".md")
        notes_file = Path(notes_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)

            cmd = ["gh", "release", "create", tag, "--title", tag, "--notes-file", str(notes_file)]
            if draft:
                cmd.append("--draft")
            if prerelease:
                cmd.append("--prerelease")
            cmd += self._repo_args()
            cmd += [str(p) for p in sorted(files)]

            # Single attempt; writes are never retried.
            result = run_process(cmd, cwd=self._root, timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        finally:
            notes_file.unlink(missing_ok=True)

        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="release_failed",
                    message=f"gh release create failed: {tag}",
                    hint=result.error.stderr.strip() or str(result.error),
                )
            )
        return Ok(result.value.strip() or tag)
