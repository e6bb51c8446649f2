"""Registry client.

`CraneRegistry` pushes an image by appending its layer tars onto the pinned
base with `crane append`, then setting entrypoint and env with `crane mutate`.
Registry authentication is expected to be in place already.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ocigate.core.result import Err, Ok, Result
from ocigate.platform.process import run as run_process
from ocigate.services.packaging.model import Image

__all__ = ["CraneRegistry", "PushError", "RegistryClient"]

REGISTRY_TIMEOUT_SECONDS = 10 * 60.0


@dataclass(frozen=True, slots=True)
class PushError:
    repository: str
    tag: str
    message: str
    hint: str | None = None

    @property
    def target(self) -> str:
        return f"{self.repository}:{self.tag}"


class RegistryClient(Protocol):
    def push(self, image: Image, repository: str, tag: str) -> Result[str, PushError]:
        """Push image as repository:tag and return the pushed digest."""
        ...


def _list_flag(values: Sequence[str]) -> str:
    """One CSV record, the format crane reads its list flags from."""
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow(values)
    return buf.getvalue()


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""


class CraneRegistry:
    def __init__(
        self,
        *,
        workspace_root: Path,
        layer_paths: Mapping[str, Path],
        crane: str = "crane",
        timeout: float = REGISTRY_TIMEOUT_SECONDS,
    ) -> None:
        self._root = workspace_root
        # Written layer tars keyed by digest.
        self._layer_paths = dict(layer_paths)
        self._crane = crane
        self._timeout = timeout

    def push(self, image: Image, repository: str, tag: str) -> Result[str, PushError]:
        ref = f"{repository}:{tag}"

        cmd = [self._crane, "append", "--base", image.base.pinned]
        for layer in image.layers:
            path = self._layer_paths.get(layer.digest or "")
            if path is None:
                return Err(
                    PushError(
                        repository=repository,
                        tag=tag,
                        message=f"no layer tar for {layer.digest or 'unwritten layer'}",
                        hint="run `ocigate package` first",
                    )
                )
            cmd += ["--new_layer", str(path)]
        cmd += ["--new_tag", ref]

        appended = run_process(cmd, cwd=self._root, timeout=self._timeout)
        if isinstance(appended, Err):
            return Err(
                PushError(
                    repository=repository,
                    tag=tag,
                    message=f"crane append failed: {ref}",
                    hint=appended.error.stderr.strip() or str(appended.error),
                )
            )

        mutate = [self._crane, "mutate", ref, "--tag", ref, "--entrypoint", _list_flag(image.entrypoint)]
        for key, value in sorted(image.env.items()):
            mutate += ["--env", _list_flag([f"{key}={value}"])]

        mutated = run_process(mutate, cwd=self._root, timeout=self._timeout)
        if isinstance(mutated, Err):
            return Err(
                PushError(
                    repository=repository,
                    tag=tag,
                    message=f"crane mutate failed: {ref}",
                    hint=mutated.error.stderr.strip() or str(mutated.error),
                )
            )

        return Ok(_last_line(mutated.value) or ref)
