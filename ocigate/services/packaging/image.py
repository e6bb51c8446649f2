"""Image composition: base + ordered layers + entrypoint + env."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from ocigate.core.config import BaseImageConfig
from ocigate.core.result import Err, Ok, Result
from ocigate.services.packaging.errors import (
    BaseImageUnresolved,
    InvalidEntrypoint,
    PackagingError,
)
from ocigate.services.packaging.model import BaseImage, Image, Layer

__all__ = ["BaseImageCatalog", "build", "image_config"]

BASE_NAME_LABEL = "org.opencontainers.image.base.name"
BASE_DIGEST_LABEL = "org.opencontainers.image.base.digest"


@dataclass(frozen=True, slots=True)
class BaseImageCatalog:
    """Known base images, keyed by name."""

    bases: Mapping[str, BaseImage] = field(default_factory=dict)

    @classmethod
    def from_config(cls, bases: Mapping[str, BaseImageConfig]) -> BaseImageCatalog:
        return cls(
            bases={
                name: BaseImage(
                    name=name,
                    reference=b.reference,
                    digest=b.digest,
                    env=dict(b.env),
                )
                for name, b in bases.items()
            }
        )

    def resolve(self, reference: str) -> Result[BaseImage, BaseImageUnresolved]:
        base = self.bases.get(reference)
        if base is not None:
            return Ok(base)
        # Also accept the registry reference, with or without the pinned digest.
        for candidate in self.bases.values():
            if reference in (candidate.reference, candidate.pinned):
                return Ok(candidate)
        return Err(BaseImageUnresolved(reference=reference, available=tuple(sorted(self.bases))))


def _check_entrypoint(entrypoint: Sequence[object]) -> Result[tuple[str, ...], InvalidEntrypoint]:
    as_tuple = tuple(entrypoint)
    if isinstance(entrypoint, str):
        return Err(InvalidEntrypoint(entrypoint=as_tuple, reason="must be an argv list, not a string"))
    if not as_tuple:
        return Err(InvalidEntrypoint(entrypoint=as_tuple, reason="is empty"))
    args: list[str] = []
    for arg in as_tuple:
        if not isinstance(arg, str):
            return Err(
                InvalidEntrypoint(
                    entrypoint=as_tuple,
                    reason=f"element {arg!r} is not a string",
                )
            )
        args.append(arg)
    return Ok(tuple(args))


def build(
    base: str,
    layers: Sequence[Layer],
    entrypoint: Sequence[object],
    env: Mapping[str, str],
    *,
    catalog: BaseImageCatalog,
) -> Result[Image, PackagingError]:
    """Compose an image.

    The entrypoint is kept verbatim as argv. Explicit env keys override the
    base image's values.
    """
    resolved = catalog.resolve(base)
    if isinstance(resolved, Err):
        return resolved

    argv = _check_entrypoint(entrypoint)
    if isinstance(argv, Err):
        return argv

    merged: dict[str, str] = dict(resolved.value.env)
    merged.update(env)

    return Ok(
        Image(
            base=resolved.value,
            layers=tuple(layers),
            entrypoint=argv.value,
            env=merged,
        )
    )


def image_config(image: Image) -> str:
    """Render the OCI image config JSON.

    Raises:
        ValueError: A layer has not been written yet (no digest).
    """
    diff_ids: list[str] = []
    for index, layer in enumerate(image.layers):
        if layer.digest is None:
            raise ValueError(f"layer {index} has no digest; write it first")
        diff_ids.append(layer.digest)

    doc = {
        "architecture": "amd64",
        "os": "linux",
        "config": {
            "Entrypoint": list(image.entrypoint),
            "Env": [f"{k}={v}" for k, v in sorted(image.env.items())],
            "Labels": {
                BASE_NAME_LABEL: image.base.reference,
                BASE_DIGEST_LABEL: image.base.digest,
            },
        },
        "rootfs": {"type": "layers", "diff_ids": diff_ids},
    }
    return json.dumps(doc, indent=2, sort_keys=True) + "\n"
