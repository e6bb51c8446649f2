from __future__ import annotations

import typer

from ocigate.cli.commands._helpers import REF_HELP, SHA_HELP, exit_on_stage_error, resolve_ref
from ocigate.cli.context import build_context
from ocigate.core.result import Err
from ocigate.output.console import Style
from ocigate.services.packaging.builder import PackagingSpec
from ocigate.services.pipeline import StageError
from ocigate.services.publish.resolver import PublishPolicy, derive_git_hash, resolve_publish
from ocigate.services.release.gate import decide_release


def decide(
    ref: str | None = typer.Option(None, "--ref", help=REF_HELP),
    sha: str | None = typer.Option(None, "--sha", help=SHA_HELP),
) -> None:
    """Show the publish and release decisions for a ref (no side effects)."""
    ctx = build_context()
    git_ref = resolve_ref(ctx, ref=ref, sha=sha)

    ctx.console.header(f"{git_ref.kind} {git_ref.name}")
    ctx.console.print(f"GIT_HASH={derive_git_hash(git_ref)}")

    policy = PublishPolicy.from_config(ctx.config.publish)
    for image in ctx.config.images:
        targets = PackagingSpec.from_config(image, ctx.config).build()
        if isinstance(targets, Err):
            exit_on_stage_error(StageError(stage="decide", error=targets.error), ctx)

        decision = resolve_publish(git_ref, repository=targets.value.push.repository, policy=policy)
        if decision.push:
            tags = ", ".join(sorted(decision.tags))
            ctx.console.success(f"publish {image.name}: {decision.repository or '<no registry>'} [{tags}]")
        else:
            ctx.console.info(f"publish {image.name}: skipped ({decision.reason})")

    release = decide_release(git_ref)
    if release.cut:
        flags = [f for f, on in (("draft", release.draft), ("prerelease", release.prerelease)) if on]
        ctx.console.success(f"release {release.tag} ({', '.join(flags)})")
        for f in ctx.config.release.files:
            ctx.console.print(f"  {f.source} -> {ctx.config.release.staging_dir}/{f.name}", Style.DIM)
    else:
        ctx.console.info(f"release: skipped ({release.reason})")
