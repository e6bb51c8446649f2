"""Filesystem helpers.

Everything ocigate publishes (layer tars, image configs, cache entries, the
release staging directory) appears on disk only through an atomic rename, so a
run aborted halfway never leaves something that looks complete.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

__all__ = [
    "TMP_SUFFIX",
    "atomic_binary_writer",
    "atomic_write_text",
    "replace_dir",
    "sha256_file",
]

TMP_SUFFIX = ".tmp"


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace."""
    with atomic_binary_writer(path) as handle:
        handle.write(content.encode(encoding))


@contextmanager
def atomic_binary_writer(path: Path, *, exclusive: bool = False) -> Iterator[BinaryIO]:
    """Yield a handle to a temp sibling of path; rename it into place on success.

    If the block raises, the temp file is removed and path is left untouched.
    With exclusive=True the temp file is hard-linked into place instead, which
    raises FileExistsError rather than replace a path that appeared meanwhile.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=TMP_SUFFIX,
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        if exclusive:
            os.link(tmp_path, path)
        else:
            os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def replace_dir(staged: Path, target: Path) -> None:
    """Move a fully populated directory over target."""
    if target.exists():
        shutil.rmtree(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    os.replace(staged, target)
