from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import typer

from ocigate.cli.commands._helpers import (
    BUILD_ROOT_HELP,
    REF_HELP,
    SHA_HELP,
    build_root_for,
    exit_on_stage_error,
    resolve_ref,
)
from ocigate.cli.context import build_context
from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err, Result
from ocigate.output.errors import print_push_failures, print_release_error, release_error_exit_code
from ocigate.services.pipeline import run_pipeline
from ocigate.services.publish.registry import CraneRegistry, RegistryClient
from ocigate.services.release.errors import ReleaseError
from ocigate.services.release.gh import GhReleaseClient
from ocigate.services.release.notes import build_release_notes
from ocigate.services.triggers import TriggerEvent, should_run


def run(
    ref: str | None = typer.Option(None, "--ref", help=REF_HELP),
    sha: str | None = typer.Option(None, "--sha", help=SHA_HELP),
    event: str = typer.Option("push", "--event", help="Triggering event (GITHUB_EVENT_NAME)"),
    changed: list[str] | None = typer.Option(
        None, "--changed", help="Changed path, repeatable (enables path filters)"
    ),
    repo: str | None = typer.Option(None, "--repo", help="GitHub repository (owner/name)"),
    build_root: Path | None = typer.Option(None, "--build-root", help=BUILD_ROOT_HELP),
) -> None:
    """Run the full pipeline: assemble, image, decide, push, release."""
    ctx = build_context()
    git_ref = resolve_ref(ctx, ref=ref, sha=sha)
    root = ctx.workspace.root

    trigger = TriggerEvent(event=event, ref=git_ref, changed_paths=tuple(changed) if changed else None)
    if not should_run(ctx.config.triggers, trigger):
        ctx.console.info(f"no trigger matches {event} {git_ref.kind} {git_ref.name}; nothing to do")
        return

    def registry_factory(layer_paths: Mapping[str, Path]) -> RegistryClient:
        return CraneRegistry(workspace_root=root, layer_paths=layer_paths)

    def notes(tag: str) -> Result[str, ReleaseError]:
        return build_release_notes(
            workspace_root=root,
            changelog=root / ctx.config.release.changelog,
            tag=tag,
        )

    result = run_pipeline(
        git_ref,
        config=ctx.config,
        workspace=ctx.workspace,
        build_root=build_root_for(ctx, build_root),
        registry_factory=registry_factory,
        releases=GhReleaseClient(workspace_root=root, repo=repo),
        notes=notes,
        console=ctx.console,
    )
    if isinstance(result, Err):
        exit_on_stage_error(result.error, ctx)

    report = result.value
    print_push_failures(report.pushes.failed, ctx.console)
    if report.release_error is not None:
        print_release_error(report.release_error, ctx.console, stage="release")

    if not report.pushes.ok:
        raise typer.Exit(code=int(ErrorCode.NETWORK_ERROR))
    if report.release_error is not None:
        raise typer.Exit(code=release_error_exit_code(report.release_error))
