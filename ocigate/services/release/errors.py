from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "candidate_missing",
    "changelog_missing",
    "staging_failed",
    "history_failed",
    "gh_missing",
    "release_failed",
    "invalid_input",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
