"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
Fatal messages always name the stage that failed and the offending path or key.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from ocigate.core.config import ConfigError
from ocigate.core.errors import ErrorCode
from ocigate.git.ref import GitRefError
from ocigate.output.console import Style
from ocigate.services.packaging.errors import (
    ArtifactMissing,
    BaseImageUnresolved,
    InvalidEntrypoint,
    LayerWriteFailed,
    MalformedPath,
    NameCollision,
    PackagingError,
    PathCollision,
)
from ocigate.services.publish.registry import PushError
from ocigate.services.release.errors import ReleaseError

if TYPE_CHECKING:
    from ocigate.output.console import ConsoleProtocol
    from ocigate.services.pipeline import StageError

__all__ = [
    "describe_packaging_error",
    "packaging_error_exit_code",
    "print_push_failures",
    "print_release_error",
    "print_stage_error",
    "release_error_exit_code",
    "stage_error_exit_code",
]


def describe_packaging_error(error: PackagingError) -> str:
    match error:
        case PathCollision(dest=dest, first=first, second=second):
            return f"path collision at {dest} ({first} and {second})"
        case NameCollision(name=name, reason=reason):
            return f"name collision for {name!r}: {reason}"
        case MalformedPath(path=path, reason=reason):
            return f"malformed path {path!r}: {reason}"
        case BaseImageUnresolved(reference=reference):
            return f"unknown base image: {reference}"
        case ArtifactMissing(path=path):
            return f"artifact missing: {path}"
        case InvalidEntrypoint(entrypoint=entrypoint, reason=reason):
            return f"invalid entrypoint {list(entrypoint)!r}: {reason}"
        case LayerWriteFailed(path=path, reason=reason):
            return f"failed to write {path}: {reason}"


def packaging_error_exit_code(error: PackagingError) -> int:
    match error:
        case LayerWriteFailed():
            return int(ErrorCode.IO_ERROR)
        case _:
            return int(ErrorCode.CONFIG_ERROR)


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "candidate_missing" | "changelog_missing" | "invalid_input":
            return int(ErrorCode.CONFIG_ERROR)
        case "gh_missing" | "history_failed":
            return int(ErrorCode.ENV_ERROR)
        case "staging_failed":
            return int(ErrorCode.IO_ERROR)
        case "release_failed":
            return int(ErrorCode.NETWORK_ERROR)


def print_release_error(error: ReleaseError, console: ConsoleProtocol, *, stage: str | None = None) -> None:
    prefix = f"{stage}: " if stage else ""
    console.error(f"{prefix}{error.message}")
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def print_stage_error(error: StageError, console: ConsoleProtocol) -> None:
    """Print a fatal pipeline error to console with appropriate formatting."""
    match error.error:
        case ReleaseError() as e:
            print_release_error(e, console, stage=error.stage)
        case ConfigError(message=message, path=path):
            console.error(f"{error.stage}: {message}")
            if path is not None:
                console.print(f"config: {path}", Style.DIM)
        case GitRefError(message=message, hint=hint):
            console.error(f"{error.stage}: {message}")
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case e:
            console.error(f"{error.stage}: {describe_packaging_error(e)}")
            if isinstance(e, BaseImageUnresolved) and e.available:
                console.print(f"Available: {', '.join(e.available)}", Style.DIM)


def stage_error_exit_code(error: StageError) -> int:
    match error.error:
        case ReleaseError() as e:
            return release_error_exit_code(e)
        case ConfigError():
            return int(ErrorCode.CONFIG_ERROR)
        case GitRefError():
            return int(ErrorCode.ENV_ERROR)
        case e:
            return packaging_error_exit_code(e)


def print_push_failures(failures: Sequence[PushError], console: ConsoleProtocol) -> None:
    if not failures:
        return
    console.error(f"push: {len(failures)} push(es) failed")
    for f in failures:
        console.print(f"  {f.target}: {f.message}", Style.ERROR)
        if f.hint:
            console.print(f"    {f.hint}", Style.DIM)
