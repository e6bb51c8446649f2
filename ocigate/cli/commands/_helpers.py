"""Shared helpers for CLI commands."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err
from ocigate.git.ref import GitRef, parse_ref, ref_from_env
from ocigate.output.console import Style
from ocigate.output.errors import print_stage_error, stage_error_exit_code

if TYPE_CHECKING:
    from ocigate.cli.context import CLIContext
    from ocigate.services.pipeline import StageError


def exit_on_stage_error(error: StageError, ctx: CLIContext) -> NoReturn:
    print_stage_error(error, ctx.console)
    raise typer.Exit(code=stage_error_exit_code(error))


def resolve_ref(ctx: CLIContext, *, ref: str | None, sha: str | None) -> GitRef:
    """The run's git reference: --ref/--sha when given, else the CI environment."""
    if ref is None:
        env = dict(os.environ)
        if sha is not None:
            env["GITHUB_SHA"] = sha
        result = ref_from_env(env)
    else:
        result = parse_ref(ref, sha if sha is not None else os.environ.get("GITHUB_SHA", ""))

    if isinstance(result, Err):
        ctx.console.error(result.error.message)
        if result.error.hint:
            ctx.console.print(f"hint: {result.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    return result.value


def build_root_for(ctx: CLIContext, build_root: Path | None) -> Path:
    if build_root is None:
        return ctx.workspace.root
    return build_root if build_root.is_absolute() else ctx.workspace.root / build_root


REF_HELP = "Fully qualified ref (refs/tags/v1.2.3); defaults to GITHUB_REF_TYPE/GITHUB_REF_NAME"
SHA_HELP = "Commit sha (40 hex); defaults to GITHUB_SHA"
BUILD_ROOT_HELP = "Build tree root (defaults to the workspace root)"
