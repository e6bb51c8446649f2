"""Packaging builder: one declaration, four named targets.

A `PackagingSpec` describes one binary to ship as a container image. `build()`
turns it into a small graph of named descriptors:

    <binary>_layer    the runfiles layer
    <binary>-image    base + layer + entrypoint + env
    <binary>-tarball  a locally loadable image tagged localhost/<binary>:latest
    push_image        the registry push of the image

Descriptors are plain data. The pipeline executes them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ocigate.core.config import DEFAULT_BASE_IMAGE, Config, ImageConfig, ImageDefaults
from ocigate.core.result import Err, Ok, Result
from ocigate.services.packaging.errors import ArtifactMissing, MalformedPath, PackagingError
from ocigate.services.packaging.model import BuildArtifact

__all__ = [
    "ImageTarget",
    "LayerTarget",
    "PUSH_TARGET_NAME",
    "PackagingSpec",
    "PackagingTargets",
    "PushTarget",
    "TarballTarget",
    "binary_name",
    "label_to_path",
    "load_artifact",
]

PUSH_TARGET_NAME = "push_image"
LOCAL_REGISTRY = "localhost"


@dataclass(frozen=True, slots=True)
class LayerTarget:
    name: str
    binary: str
    source_path: str
    image_root: str
    workspace_name: str
    reserved_names: tuple[str, ...]
    closure_file: str | None = None


@dataclass(frozen=True, slots=True)
class ImageTarget:
    name: str
    layer: str
    base: str
    entrypoint: tuple[str, ...]
    env: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class TarballTarget:
    name: str
    image: str
    repo_tags: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PushTarget:
    name: str
    image: str
    repository: str


@dataclass(frozen=True, slots=True)
class PackagingTargets:
    layer: LayerTarget
    image: ImageTarget
    tarball: TarballTarget
    push: PushTarget

    @property
    def binary(self) -> str:
        return self.layer.binary

    @property
    def names(self) -> tuple[str, ...]:
        return (self.layer.name, self.image.name, self.tarball.name, self.push.name)


def label_to_path(src: str) -> str:
    """Turn a build label (`//rs/cli:dre`, `@repo//pkg:bin`) into a build-tree path.

    Plain paths pass through unchanged.
    """
    repo = ""
    if src.startswith("@"):
        repo, _, src = src[1:].partition("//")
    elif src.startswith("//"):
        src = src[2:]
    path = src.replace(":", "/").strip("/")
    if repo:
        return f"external/{repo}/{path}"
    return path


def binary_name(src: str) -> str:
    return label_to_path(src).rsplit("/", 1)[-1]


def _expand(arg: str, *, name: str) -> str:
    return arg.replace("{name}", name)


@dataclass(frozen=True, slots=True)
class PackagingSpec:
    """Parameters of one packaged binary.

    `name` is not used to derive anything; target names come from the binary.
    """

    src: str
    name: str | None = None
    base_image: str = DEFAULT_BASE_IMAGE
    registry: str = ""
    closure_file: str | None = None
    defaults: ImageDefaults = field(default_factory=ImageDefaults)

    @classmethod
    def from_config(cls, image: ImageConfig, config: Config) -> PackagingSpec:
        return cls(
            src=image.src,
            name=image.name,
            base_image=image.base or config.image.base,
            registry=config.publish.registry,
            closure_file=image.closure,
            defaults=config.image,
        )

    @property
    def binary(self) -> str:
        return binary_name(self.src)

    def source_path(self) -> Result[str, MalformedPath]:
        template = self.defaults.source_template
        try:
            path = template.format_map({"src": label_to_path(self.src), "name": self.binary})
        except (KeyError, IndexError, ValueError) as e:
            return Err(MalformedPath(path=template, reason=f"invalid source_template: {e}"))
        if not path:
            return Err(MalformedPath(path=template, reason="source_template expands to nothing"))
        return Ok(path)

    def build(self) -> Result[PackagingTargets, PackagingError]:
        binary = self.binary
        source = self.source_path()
        if isinstance(source, Err):
            return source

        layer = LayerTarget(
            name=f"{binary}_layer",
            binary=binary,
            source_path=source.value,
            image_root=self.defaults.image_root,
            workspace_name=self.defaults.workspace_name,
            reserved_names=self.defaults.reserved_names,
            closure_file=self.closure_file,
        )
        image = ImageTarget(
            name=f"{binary}-image",
            layer=layer.name,
            base=self.base_image,
            entrypoint=tuple(_expand(a, name=binary) for a in self.defaults.entrypoint),
            env=dict(self.defaults.env),
        )
        tarball = TarballTarget(
            name=f"{binary}-tarball",
            image=image.name,
            repo_tags=(f"{LOCAL_REGISTRY}/{binary}:latest",),
        )
        push = PushTarget(
            name=PUSH_TARGET_NAME,
            image=image.name,
            repository=f"{self.registry}/{binary}" if self.registry else "",
        )
        return Ok(PackagingTargets(layer=layer, image=image, tarball=tarball, push=push))


def _read_closure(path: Path) -> list[str]:
    entries: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        entries.append(line)
    return entries


def load_artifact(target: LayerTarget, *, build_root: Path) -> Result[BuildArtifact, PackagingError]:
    """Read the artifact described by a layer target from the build tree.

    The closure file (if any) lists one build-tree path per line; blank lines
    and `#` comments are ignored. Paths are validated later by `assemble`.
    """
    closure: list[str] = []
    if target.closure_file is not None:
        closure_path = build_root / target.closure_file
        try:
            closure = _read_closure(closure_path)
        except FileNotFoundError:
            return Err(ArtifactMissing(path=closure_path))
        except (OSError, UnicodeDecodeError) as e:
            return Err(MalformedPath(path=str(closure_path), reason=f"unreadable closure file: {e}"))

    return Ok(
        BuildArtifact(
            logical_name=target.binary,
            filesystem_path=target.source_path,
            dependency_closure=frozenset(closure),
        )
    )
