from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ReleaseCandidate:
    """A build output to attach to the release, under `name`."""

    source: Path
    name: str


@dataclass(frozen=True, slots=True)
class ReleaseDecision:
    cut: bool
    draft: bool = False
    prerelease: bool = False
    tag: str | None = None
    attached_files: frozenset[Path] = frozenset()
    reason: str = ""
