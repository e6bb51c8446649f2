from __future__ import annotations

import os
from pathlib import Path

import typer

from ocigate.cli.commands._helpers import REF_HELP, SHA_HELP, resolve_ref
from ocigate.cli.context import build_context
from ocigate.core.errors import ErrorCode
from ocigate.services.publish.resolver import derive_git_hash

GIT_HASH_VAR = "GIT_HASH"


def git_hash(
    ref: str | None = typer.Option(None, "--ref", help=REF_HELP),
    sha: str | None = typer.Option(None, "--sha", help=SHA_HELP),
) -> None:
    """Print GIT_HASH and export it to $GITHUB_ENV when set."""
    ctx = build_context()
    value = derive_git_hash(resolve_ref(ctx, ref=ref, sha=sha))

    env_file = os.environ.get("GITHUB_ENV")
    if env_file:
        try:
            with Path(env_file).open("a", encoding="utf-8") as f:
                f.write(f"{GIT_HASH_VAR}={value}\n")
        except OSError as e:
            ctx.console.error(f"failed to write {env_file}: {e}")
            raise typer.Exit(code=int(ErrorCode.IO_ERROR))

    ctx.console.print(value)
