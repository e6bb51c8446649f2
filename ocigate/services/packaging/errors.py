from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class PathCollision:
    dest: str
    first: str
    second: str


@dataclass(frozen=True, slots=True)
class NameCollision:
    name: str
    reason: str


@dataclass(frozen=True, slots=True)
class MalformedPath:
    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class BaseImageUnresolved:
    reference: str
    available: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ArtifactMissing:
    path: Path


@dataclass(frozen=True, slots=True)
class InvalidEntrypoint:
    entrypoint: tuple[object, ...]
    reason: str


@dataclass(frozen=True, slots=True)
class LayerWriteFailed:
    path: Path
    reason: str


PackagingError = (
    PathCollision
    | NameCollision
    | MalformedPath
    | BaseImageUnresolved
    | ArtifactMissing
    | InvalidEntrypoint
    | LayerWriteFailed
)
