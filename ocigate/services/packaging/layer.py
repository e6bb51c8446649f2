"""Layer assembly and materialization.

`assemble` maps a built binary and its runtime closure onto image paths using
the runfiles layout:

- the binary lands at `<image_root>/<name>`
- `external/<repo>/...` lands at `<name>.runfiles/<repo>/...`
- everything else lands at `<name>.runfiles/<workspace_name>/<path>`

The mapping is pure and validated up front: collisions and malformed paths are
reported before any byte is written.

`write_layer` turns an assembled layer into an uncompressed tar with fixed
metadata, so the same inputs always produce the same digest.
"""

from __future__ import annotations

import stat
import tarfile
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path, PurePosixPath

from ocigate.core.config import DEFAULT_RESERVED_NAMES, DEFAULT_WORKSPACE_NAME
from ocigate.core.result import Err, Ok, Result
from ocigate.platform.files import atomic_binary_writer, sha256_file
from ocigate.services.packaging.errors import (
    ArtifactMissing,
    LayerWriteFailed,
    MalformedPath,
    NameCollision,
    PackagingError,
    PathCollision,
)
from ocigate.services.packaging.model import BuildArtifact, Layer, LayerEntry

__all__ = [
    "STRIP_PREFIX",
    "assemble",
    "check_sources",
    "layer_file_name",
    "runfiles_dest",
    "tar_members",
    "write_layer",
]

STRIP_PREFIX = "/"
EXTERNAL_DIR = "external"
RUNFILES_SUFFIX = ".runfiles"

_DIR_MODE = 0o755
_EXEC_MODE = 0o755
_FILE_MODE = 0o644


def _normalize_rel(path: str) -> str | MalformedPath:
    if not path or not path.strip():
        return MalformedPath(path=path, reason="empty path")
    if path.startswith("/") or PurePosixPath(path).is_absolute():
        return MalformedPath(path=path, reason="absolute path")
    parts = [p for p in PurePosixPath(path).parts if p != "."]
    if not parts:
        return MalformedPath(path=path, reason="empty path")
    if ".." in parts:
        return MalformedPath(path=path, reason="escapes the build tree")
    return "/".join(parts)


def _image_root_parts(image_root: str) -> tuple[str, ...] | MalformedPath:
    parts = tuple(p for p in PurePosixPath("/" + image_root).parts[1:] if p != ".")
    if ".." in parts:
        return MalformedPath(path=image_root, reason="image root escapes /")
    return parts


def _check_name(name: str, reserved_names: Iterable[str]) -> NameCollision | None:
    if not name or name in (".", ".."):
        return NameCollision(name=name, reason="logical name is empty")
    if "/" in name or "\\" in name:
        return NameCollision(name=name, reason="logical name must be a single path component")
    if name in set(reserved_names):
        return NameCollision(name=name, reason="logical name is a reserved top-level image path")
    return None


def runfiles_dest(path: str, *, name: str, workspace_name: str) -> str:
    """Destination of a closure file, relative to the image root."""
    parts = PurePosixPath(path).parts
    runfiles = f"{name}{RUNFILES_SUFFIX}"
    if parts[0] == EXTERNAL_DIR and len(parts) > 1:
        return "/".join((runfiles, *parts[1:]))
    return "/".join((runfiles, workspace_name, *parts))


def assemble(
    artifact: BuildArtifact,
    image_root: str = "/",
    *,
    workspace_name: str = DEFAULT_WORKSPACE_NAME,
    reserved_names: Iterable[str] = DEFAULT_RESERVED_NAMES,
) -> Result[Layer, PackagingError]:
    """Compute the layer for one artifact.

    Entries are ordered: the binary first, then closure files sorted by source
    path. Identical inputs always yield an identical layer.
    """
    name = artifact.logical_name
    name_error = _check_name(name, reserved_names)
    if name_error is not None:
        return Err(name_error)

    root = _image_root_parts(image_root)
    if isinstance(root, MalformedPath):
        return Err(root)

    binary_src = _normalize_rel(artifact.filesystem_path)
    if isinstance(binary_src, MalformedPath):
        return Err(binary_src)

    binary_dest = "/".join((*root, name))
    entries: list[LayerEntry] = [LayerEntry(source_path=binary_src, dest_path=binary_dest)]
    sources_by_dest: dict[str, str] = {binary_dest: binary_src}

    for raw in sorted(artifact.dependency_closure):
        src = _normalize_rel(raw)
        if isinstance(src, MalformedPath):
            return Err(src)

        dest = "/".join((*root, runfiles_dest(src, name=name, workspace_name=workspace_name)))
        existing = sources_by_dest.get(dest)
        if existing is not None:
            if existing == src:
                # Same file spelled twice (e.g. "a/./b" and "a/b").
                continue
            return Err(PathCollision(dest=dest, first=existing, second=src))

        sources_by_dest[dest] = src
        entries.append(LayerEntry(source_path=src, dest_path=dest))

    # A file may not also be needed as a directory.
    parent_owner: dict[str, str] = {}
    for entry in entries:
        for parent in PurePosixPath(entry.dest_path).parents:
            parent_str = parent.as_posix()
            if parent_str != ".":
                parent_owner.setdefault(parent_str, entry.source_path)
    for entry in entries:
        owner = parent_owner.get(entry.dest_path)
        if owner is None:
            continue
        if entry.dest_path == binary_dest:
            return Err(
                NameCollision(
                    name=name,
                    reason=f"{binary_dest} is also a directory needed by {owner}",
                )
            )
        return Err(PathCollision(dest=entry.dest_path, first=entry.source_path, second=owner))

    return Ok(Layer(entries=tuple(entries), strip_prefix=STRIP_PREFIX))


def _file_mode(path: Path) -> int:
    mode = path.stat().st_mode
    if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
        return _EXEC_MODE
    return _FILE_MODE


def _tar_info(name: str, *, mode: int, size: int = 0, is_dir: bool = False) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.DIRTYPE if is_dir else tarfile.REGTYPE
    info.mode = mode
    info.size = size
    info.mtime = 0
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    return info


def _write_tar(layer: Layer, *, build_root: Path, out_path: Path) -> str:
    written_dirs: set[str] = set()

    with atomic_binary_writer(out_path) as handle:
        with tarfile.open(fileobj=handle, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for entry in layer.entries:
                for parent in reversed(PurePosixPath(entry.dest_path).parents):
                    parent_str = parent.as_posix()
                    if parent_str == "." or parent_str in written_dirs:
                        continue
                    tar.addfile(_tar_info(parent_str + "/", mode=_DIR_MODE, is_dir=True))
                    written_dirs.add(parent_str)

                # Path.open and stat follow symlinks, so linked sources are stored by content.
                src = build_root / entry.source_path
                size = src.stat().st_size
                with src.open("rb") as f:
                    tar.addfile(_tar_info(entry.dest_path, mode=_file_mode(src), size=size), f)

    return sha256_file(out_path)


def check_sources(layer: Layer, *, build_root: Path) -> Result[None, ArtifactMissing]:
    for entry in layer.entries:
        src = build_root / entry.source_path
        if not src.is_file():
            return Err(ArtifactMissing(path=src))
    return Ok(None)


def write_layer(layer: Layer, *, build_root: Path, out_path: Path) -> Result[Layer, PackagingError]:
    """Write the layer tar and return the layer with its digest set.

    Every source is checked before the tar is opened; on any failure no file is
    left at out_path.
    """
    sources = check_sources(layer, build_root=build_root)
    if isinstance(sources, Err):
        return sources

    try:
        digest = _write_tar(layer, build_root=build_root, out_path=out_path)
    except FileNotFoundError as e:
        return Err(ArtifactMissing(path=Path(e.filename) if e.filename else out_path))
    except OSError as e:
        return Err(LayerWriteFailed(path=out_path, reason=e.strerror or str(e)))

    return Ok(replace(layer, digest=f"sha256:{digest}"))


def layer_file_name(name: str) -> str:
    return f"{name}_layer.tar"


def tar_members(path: Path) -> list[str]:
    """Member names of a written layer, in archive order."""
    with tarfile.open(path, mode="r") as tar:
        return [m.name.rstrip("/") for m in tar.getmembers()]

