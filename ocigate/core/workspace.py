"""Workspace detection and paths.

The workspace is the repository being packaged. It is identified by the
presence of an `ocigate.toml` manifest at its root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILE_NAME
from .result import Err, Ok, Result

__all__ = [
    "Workspace",
    "WorkspaceError",
    "WORKSPACE_ENV_VAR",
    "detect_workspace",
    "find_workspace_upward",
    "is_workspace_root",
]

WORKSPACE_ENV_VAR = "OCIGATE_WORKSPACE"


@dataclass(frozen=True)
class WorkspaceError:
    """Error when workspace cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    """A repository root holding an `ocigate.toml` manifest.

    Generated state (layers, image configs, cache entries) lives under
    `.ocigate/`, which should be gitignored.
    """

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE_NAME

    @property
    def state_dir(self) -> Path:
        return self.root / ".ocigate"

    @property
    def out_dir(self) -> Path:
        """Default output directory for packaged layers and image configs."""
        return self.state_dir / "out"

    def __str__(self) -> str:
        return str(self.root)


def is_workspace_root(path: Path) -> bool:
    return (path / CONFIG_FILE_NAME).is_file()


def find_workspace_upward(start: Path) -> Path | None:
    """Search upward from start for a directory holding the manifest."""
    for parent in (start, *start.parents):
        if is_workspace_root(parent):
            return parent
    return None


def detect_workspace(
    *,
    start_dir: Path | None = None,
    env_var: str = WORKSPACE_ENV_VAR,
) -> Result[Workspace, WorkspaceError]:
    """Detect the workspace root directory.

    Detection order:
    1. $OCIGATE_WORKSPACE (if set it must be valid)
    2. Search upward from start_dir (or cwd)
    """
    env_value = os.environ.get(env_var)
    if env_value:
        env_path = Path(env_value).expanduser().resolve()
        if env_path.is_dir() and is_workspace_root(env_path):
            return Ok(Workspace(root=env_path))
        return Err(
            WorkspaceError(
                message=f"${env_var} is set to '{env_value}' but it is not a valid workspace",
                searched_from=env_path if env_path.is_dir() else None,
            )
        )

    search_start = (start_dir or Path.cwd()).resolve()
    found = find_workspace_upward(search_start)
    if found is None:
        return Err(
            WorkspaceError(
                message=f"Could not find workspace ({CONFIG_FILE_NAME} not found)",
                searched_from=search_start,
            )
        )
    return Ok(Workspace(root=found))
