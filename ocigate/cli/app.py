from __future__ import annotations

import os
from pathlib import Path

import typer

from ocigate import __version__
from ocigate.cli.commands.cache import cache_app
from ocigate.cli.commands.decide import decide
from ocigate.cli.commands.git_hash import git_hash
from ocigate.cli.commands.package import package
from ocigate.cli.commands.publish import publish
from ocigate.cli.commands.release import release
from ocigate.cli.commands.run import run
from ocigate.core.errors import ErrorCode
from ocigate.core.workspace import WORKSPACE_ENV_VAR, is_workspace_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(package)
app.command()(decide)
app.command("git-hash")(git_hash)
app.command()(publish)
app.command()(release)
app.command()(run)

# Sub-apps
app.add_typer(cache_app, name="cache", help="Build cache keys and entries.")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Workspace root (overrides auto detection)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if workspace is not None:
        try:
            root = workspace.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --workspace: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

        if not root.is_dir() or not is_workspace_root(root):
            typer.echo(
                f"error: --workspace '{root}' is not a valid workspace (missing ocigate.toml)",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[WORKSPACE_ENV_VAR] = str(root)


def main() -> None:
    app()
