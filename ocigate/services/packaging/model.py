from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """A built binary and the build-tree files it needs at runtime.

    All paths are relative to the build root.
    """

    logical_name: str
    filesystem_path: str
    dependency_closure: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class LayerEntry:
    source_path: str
    dest_path: str


@dataclass(frozen=True, slots=True)
class Layer:
    entries: tuple[LayerEntry, ...]
    strip_prefix: str = "/"
    digest: str | None = None

    @property
    def destinations(self) -> tuple[str, ...]:
        return tuple(e.dest_path for e in self.entries)

    def fingerprint(self) -> str:
        """Structural identity of a layer that has not been written yet."""
        h = hashlib.sha256()
        h.update(self.strip_prefix.encode("utf-8"))
        for entry in self.entries:
            h.update(b"\0")
            h.update(entry.source_path.encode("utf-8"))
            h.update(b"\0")
            h.update(entry.dest_path.encode("utf-8"))
        return f"fingerprint:{h.hexdigest()}"

    def content_id(self) -> str:
        return self.digest if self.digest is not None else self.fingerprint()


@dataclass(frozen=True, slots=True)
class BaseImage:
    name: str
    reference: str
    digest: str
    env: Mapping[str, str] = field(default_factory=dict)

    @property
    def pinned(self) -> str:
        return f"{self.reference}@{self.digest}"


@dataclass(frozen=True, slots=True)
class Image:
    base: BaseImage
    layers: tuple[Layer, ...]
    entrypoint: tuple[str, ...]
    env: Mapping[str, str]

    @property
    def identity(self) -> str:
        canonical = json.dumps(
            {
                "base": self.base.digest,
                "layers": [layer.content_id() for layer in self.layers],
                "entrypoint": list(self.entrypoint),
                "env": sorted(self.env.items()),
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def with_layer(self, layer: Layer) -> Image:
        return Image(
            base=self.base,
            layers=(*self.layers, layer),
            entrypoint=self.entrypoint,
            env=self.env,
        )
