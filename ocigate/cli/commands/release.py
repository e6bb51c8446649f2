from __future__ import annotations

import typer

from ocigate.cli.commands._helpers import REF_HELP, SHA_HELP, resolve_ref
from ocigate.cli.context import build_context
from ocigate.core.result import Err
from ocigate.output.errors import print_release_error, release_error_exit_code
from ocigate.services.pipeline import publish_release, release_candidates
from ocigate.services.release.gate import resolve_release
from ocigate.services.release.gh import GhReleaseClient
from ocigate.services.release.notes import build_release_notes


def release(
    ref: str | None = typer.Option(None, "--ref", help=REF_HELP),
    sha: str | None = typer.Option(None, "--sha", help=SHA_HELP),
    repo: str | None = typer.Option(None, "--repo", help="GitHub repository (owner/name)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Stage files and render notes only"),
) -> None:
    """Stage release files and cut a draft pre-release for a v* tag."""
    ctx = build_context()
    git_ref = resolve_ref(ctx, ref=ref, sha=sha)
    root = ctx.workspace.root

    staged = resolve_release(
        git_ref,
        release_candidates(ctx.config, ctx.workspace),
        staging_dir=root / ctx.config.release.staging_dir,
    )
    if isinstance(staged, Err):
        print_release_error(staged.error, ctx.console, stage="release")
        raise typer.Exit(code=release_error_exit_code(staged.error))

    decision = staged.value
    if not decision.cut or decision.tag is None:
        ctx.console.info(f"not releasing: {decision.reason}")
        return

    notes = build_release_notes(
        workspace_root=root,
        changelog=root / ctx.config.release.changelog,
        tag=decision.tag,
    )
    if isinstance(notes, Err):
        print_release_error(notes.error, ctx.console, stage="release")
        raise typer.Exit(code=release_error_exit_code(notes.error))

    for path in sorted(decision.attached_files):
        ctx.console.print(f"attach {path.relative_to(root)}")
    if dry_run:
        ctx.console.print(notes.value)
        return

    client = GhReleaseClient(workspace_root=root, repo=repo)
    _, error = publish_release(decision, notes.value, releases=client, console=ctx.console)
    if error is not None:
        print_release_error(error, ctx.console, stage="release")
        raise typer.Exit(code=release_error_exit_code(error))
