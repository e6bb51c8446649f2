from __future__ import annotations

from pathlib import Path

import typer

from ocigate.cli.commands._helpers import BUILD_ROOT_HELP, build_root_for, exit_on_stage_error
from ocigate.cli.context import build_context
from ocigate.core.result import Err
from ocigate.output.console import Style
from ocigate.services.pipeline import package_images


def package(
    names: list[str] | None = typer.Argument(None, help="Images to package (default: all)"),
    build_root: Path | None = typer.Option(None, "--build-root", help=BUILD_ROOT_HELP),
) -> None:
    """Assemble layers and compose images for the configured binaries."""
    ctx = build_context()
    if not ctx.config.images:
        ctx.console.warning(f"no [[images]] configured in {ctx.workspace.config_path}")
        return

    result = package_images(
        config=ctx.config,
        workspace=ctx.workspace,
        build_root=build_root_for(ctx, build_root),
        console=ctx.console,
        names=names,
    )
    if isinstance(result, Err):
        exit_on_stage_error(result.error, ctx)

    for packaged in result.value:
        t = packaged.targets
        ctx.console.print(f"{t.layer.name}: {packaged.layer_path}", Style.DIM)
        ctx.console.print(f"{t.image.name}: {packaged.config_path}", Style.DIM)
        ctx.console.print(f"{t.tarball.name}: {', '.join(t.tarball.repo_tags)}", Style.DIM)
