from __future__ import annotations

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
from ocigate.core.config import ConfigError
from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err
from ocigate.output.errors import print_push_failures
from ocigate.services.pipeline import StageError, package_images
from ocigate.services.publish.pusher import PushRequest, push_all
from ocigate.services.publish.registry import CraneRegistry
from ocigate.services.publish.resolver import PublishPolicy, resolve_publish


def publish(
    names: list[str] | None = typer.Argument(None, help="Images to publish (default: all)"),
    ref: str | None = typer.Option(None, "--ref", help=REF_HELP),
    sha: str | None = typer.Option(None, "--sha", help=SHA_HELP),
    build_root: Path | None = typer.Option(None, "--build-root", help=BUILD_ROOT_HELP),
) -> None:
    """Package images and push them under the tags the ref allows."""
    ctx = build_context()
    git_ref = resolve_ref(ctx, ref=ref, sha=sha)

    packaged = package_images(
        config=ctx.config,
        workspace=ctx.workspace,
        build_root=build_root_for(ctx, build_root),
        console=ctx.console,
        names=names,
    )
    if isinstance(packaged, Err):
        exit_on_stage_error(packaged.error, ctx)

    policy = PublishPolicy.from_config(ctx.config.publish)
    requests: list[PushRequest] = []
    for p in packaged.value:
        decision = resolve_publish(git_ref, repository=p.targets.push.repository, policy=policy)
        if not decision.push:
            ctx.console.info(f"not pushing {p.targets.binary}: {decision.reason}")
            continue
        if not decision.repository:
            error = ConfigError("publish.registry is not set", path=ctx.workspace.config_path)
            exit_on_stage_error(StageError(stage="decide", error=error), ctx)
        requests.append(PushRequest(image=p.image, repository=decision.repository, tags=decision.tags))

    if not requests:
        return

    layer_paths = {
        layer.digest: p.layer_path for p in packaged.value for layer in p.image.layers if layer.digest
    }
    client = CraneRegistry(workspace_root=ctx.workspace.root, layer_paths=layer_paths)
    report = push_all(requests, client=client, console=ctx.console)
    if not report.ok:
        print_push_failures(report.failed, ctx.console)
        raise typer.Exit(code=int(ErrorCode.NETWORK_ERROR))
