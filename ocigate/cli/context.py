from __future__ import annotations

from dataclasses import dataclass

import typer

from ocigate.core.config import Config, load_config
from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err
from ocigate.core.workspace import Workspace, detect_workspace
from ocigate.output.console import ConsoleProtocol, RichConsole, Style


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace: Workspace
    config: Config
    console: ConsoleProtocol


def build_context() -> CLIContext:
    workspace_result = detect_workspace()
    if isinstance(workspace_result, Err):
        typer.echo(f"error: {workspace_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    workspace = workspace_result.value
    console = RichConsole()

    config = Config()
    if workspace.config_path.exists():
        config_result = load_config(workspace.config_path)
        if isinstance(config_result, Err):
            console.error(config_result.error.message)
            console.print(f"config: {workspace.config_path}", Style.DIM)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        config = config_result.value

    return CLIContext(workspace=workspace, config=config, console=console)
