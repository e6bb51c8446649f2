"""Subprocess execution with Result-based error handling.

This is the only module allowed to call `subprocess` directly. External
collaborators (`crane`, `gh`, `git`) are all reached through `run`.

Usage:
    match run(["crane", "digest", ref], cwd=root, timeout=60):
        case Ok(stdout):
            digest = stdout.strip()
        case Err(error):
            console.error(f"{error}: {error.stderr}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from ocigate.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not be run or exited non-zero.

    `returncode` is -1 when the process never started or was killed by the
    timeout; `stderr` then carries our own description.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def _text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run an argv list (never a shell) in cwd and return its stdout.

    Output is decoded as UTF-8 with replacement characters, since registry
    and GitHub CLIs sometimes interleave progress bytes with text.
    """

    def failed(returncode: int, stdout: str, stderr: str) -> Err[ProcessError]:
        return Err(ProcessError(command=tuple(cmd), returncode=returncode, stdout=stdout, stderr=stderr))

    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return failed(-1, _text(e.stdout), f"{cmd[0]} timed out after {timeout}s")
    except FileNotFoundError as e:
        if e.filename == cmd[0]:
            return failed(-1, "", f"{cmd[0]}: command not found")
        return failed(-1, "", str(e))
    except OSError as e:
        return failed(-1, "", str(e))

    if proc.returncode != 0:
        return failed(proc.returncode, proc.stdout, proc.stderr)
    return Ok(proc.stdout)
