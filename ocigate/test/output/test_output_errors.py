"""Tests for ocigate.output.errors module."""

from __future__ import annotations

from pathlib import Path

import pytest

from ocigate.core.config import ConfigError
from ocigate.core.errors import ErrorCode
from ocigate.git.ref import GitRefError
from ocigate.output.console import MockConsole
from ocigate.output.errors import (
    describe_packaging_error,
    print_push_failures,
    print_stage_error,
    release_error_exit_code,
    stage_error_exit_code,
)
from ocigate.services.packaging.errors import (
    ArtifactMissing,
    BaseImageUnresolved,
    LayerWriteFailed,
    NameCollision,
    PathCollision,
)
from ocigate.services.pipeline import StageError
from ocigate.services.publish.registry import PushError
from ocigate.services.release.errors import ReleaseError


def test_describe_path_collision_names_both_sources() -> None:
    error = PathCollision(dest="/dre.runfiles/dre/lib.py", first="a/lib.py", second="b/lib.py")
    message = describe_packaging_error(error)
    assert "/dre.runfiles/dre/lib.py" in message
    assert "a/lib.py" in message and "b/lib.py" in message


def test_describe_artifact_missing() -> None:
    assert describe_packaging_error(ArtifactMissing(path=Path("rs/cli/dre"))) == "artifact missing: rs/cli/dre"


def test_print_stage_error_lists_available_bases() -> None:
    console = MockConsole()
    error = StageError(
        stage="image",
        error=BaseImageUnresolved(reference="alpine", available=("cc", "distroless_python3")),
    )
    print_stage_error(error, console)
    assert console.messages[0] == "error: image: unknown base image: alpine"
    assert "Available: cc, distroless_python3" in console.messages[1]


def test_print_stage_error_release_hint() -> None:
    console = MockConsole()
    error = StageError(
        stage="decide",
        error=ReleaseError(kind="candidate_missing", message="release files missing: dre", hint="build first"),
    )
    print_stage_error(error, console)
    assert console.messages == ["error: decide: release files missing: dre", "hint: build first"]


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (NameCollision(name="usr", reason="reserved"), ErrorCode.CONFIG_ERROR),
        (LayerWriteFailed(path=Path("out/dre_layer.tar"), reason="No space left"), ErrorCode.IO_ERROR),
        (ConfigError("publish.registry is not set"), ErrorCode.CONFIG_ERROR),
        (GitRefError("GITHUB_SHA is not set"), ErrorCode.ENV_ERROR),
        (ReleaseError(kind="staging_failed", message="x"), ErrorCode.IO_ERROR),
        (ReleaseError(kind="gh_missing", message="gh: missing"), ErrorCode.ENV_ERROR),
    ],
)
def test_stage_error_exit_code(error: object, code: ErrorCode) -> None:
    assert stage_error_exit_code(StageError(stage="assemble", error=error)) == int(code)  # type: ignore[arg-type]


def test_release_failed_is_a_network_error() -> None:
    error = ReleaseError(kind="release_failed", message="gh release create failed: v1.0.0")
    assert release_error_exit_code(error) == int(ErrorCode.NETWORK_ERROR)


def test_print_push_failures() -> None:
    console = MockConsole()
    failures = [
        PushError(repository="ghcr.io/dfinity/dre/dre", tag="v1.2.3", message="unauthorized"),
    ]
    print_push_failures(failures, console)
    assert console.messages[0] == "error: push: 1 push(es) failed"
    assert "ghcr.io/dfinity/dre/dre:v1.2.3: unauthorized" in console.messages[1]


def test_print_push_failures_empty() -> None:
    console = MockConsole()
    print_push_failures([], console)
    assert console.outputs == []
