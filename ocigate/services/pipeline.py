"""The delivery pipeline.

A run is a fixed, single-threaded sequence of stages:

1. assemble  - compute and write every layer
2. image     - compose every image and write its config
3. decide    - publish and release decisions, release staging, notes
4. push      - every (image, tag), failures collected
5. release   - create the draft pre-release

Stages 1-3 can fail fatally and do so before anything leaves the machine.
Stages 4 and 5 report failures in the RunReport instead of stopping.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

from ocigate.core.config import Config, ConfigError
from ocigate.core.result import Err, Ok, Result
from ocigate.core.workspace import Workspace
from ocigate.git.ref import GitRef, GitRefError
from ocigate.output.console import ConsoleProtocol, Style
from ocigate.platform.files import atomic_write_text
from ocigate.services.packaging.builder import PackagingSpec, PackagingTargets, load_artifact
from ocigate.services.packaging.errors import LayerWriteFailed, PackagingError
from ocigate.services.packaging.image import BaseImageCatalog, build, image_config
from ocigate.services.packaging.layer import assemble, check_sources, layer_file_name, write_layer
from ocigate.services.packaging.model import Image, Layer
from ocigate.services.publish.pusher import PushReport, PushRequest, push_all
from ocigate.services.publish.registry import RegistryClient
from ocigate.services.publish.resolver import PublishDecision, PublishPolicy, resolve_publish
from ocigate.services.release.errors import ReleaseError
from ocigate.services.release.gate import decide_release, resolve_release
from ocigate.services.release.gh import ReleaseClient
from ocigate.services.release.model import ReleaseCandidate, ReleaseDecision

__all__ = [
    "Decisions",
    "NotesBuilder",
    "PackagedImage",
    "RegistryFactory",
    "RunReport",
    "Stage",
    "StageError",
    "decide",
    "package_images",
    "publish_release",
    "release_candidates",
    "run_pipeline",
]

Stage = Literal["assemble", "image", "decide", "push", "release"]

NotesBuilder = Callable[[str], Result[str, ReleaseError]]
# Built once layers are on disk; maps layer digest -> tar path.
RegistryFactory = Callable[[Mapping[str, Path]], RegistryClient]


@dataclass(frozen=True, slots=True)
class StageError:
    stage: Stage
    error: PackagingError | ReleaseError | ConfigError | GitRefError


@dataclass(frozen=True, slots=True)
class PackagedImage:
    targets: PackagingTargets
    image: Image
    layer_path: Path
    config_path: Path


@dataclass(frozen=True, slots=True)
class Decisions:
    publish: tuple[tuple[PackagedImage, PublishDecision], ...]
    release: ReleaseDecision
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class RunReport:
    images: tuple[PackagedImage, ...] = ()
    publish: tuple[PublishDecision, ...] = ()
    release: ReleaseDecision | None = None
    pushes: PushReport = field(default_factory=PushReport)
    release_url: str | None = None
    release_error: ReleaseError | None = None

    @property
    def ok(self) -> bool:
        return self.pushes.ok and self.release_error is None


def _selected(config: Config, names: Sequence[str] | None) -> Result[list[PackagingSpec], StageError]:
    if not names:
        return Ok([PackagingSpec.from_config(i, config) for i in config.images])

    specs: list[PackagingSpec] = []
    for name in names:
        image = config.image_named(name)
        if image is None:
            available = ", ".join(i.name for i in config.images) or "none"
            return Err(
                StageError(
                    stage="assemble",
                    error=ConfigError(f"unknown image: {name} (available: {available})"),
                )
            )
        specs.append(PackagingSpec.from_config(image, config))
    return Ok(specs)


def _tarball_manifest(layer_path: Path, config_path: Path, repo_tags: Sequence[str]) -> str:
    # Same shape as the manifest.json inside a `docker save` archive.
    doc = [
        {
            "Config": config_path.name,
            "RepoTags": list(repo_tags),
            "Layers": [layer_path.name],
        }
    ]
    return json.dumps(doc, indent=2) + "\n"


def package_images(
    *,
    config: Config,
    workspace: Workspace,
    build_root: Path,
    console: ConsoleProtocol,
    names: Sequence[str] | None = None,
) -> Result[list[PackagedImage], StageError]:
    """Run the assemble and image stages for the selected images."""
    specs = _selected(config, names)
    if isinstance(specs, Err):
        return specs

    out_dir = workspace.out_dir

    # Stage 1: assemble every layer; nothing is written yet.
    assembled: list[tuple[PackagingTargets, Layer, Path]] = []
    for spec in specs.value:
        targets = spec.build()
        if isinstance(targets, Err):
            return Err(StageError(stage="assemble", error=targets.error))
        t = targets.value

        artifact = load_artifact(t.layer, build_root=build_root)
        if isinstance(artifact, Err):
            return Err(StageError(stage="assemble", error=artifact.error))

        layer = assemble(
            artifact.value,
            t.layer.image_root,
            workspace_name=t.layer.workspace_name,
            reserved_names=t.layer.reserved_names,
        )
        if isinstance(layer, Err):
            return Err(StageError(stage="assemble", error=layer.error))

        sources = check_sources(layer.value, build_root=build_root)
        if isinstance(sources, Err):
            return Err(StageError(stage="assemble", error=sources.error))

        assembled.append((t, layer.value, out_dir / layer_file_name(t.binary)))

    # Stage 2: compose every image on the unwritten layers, so an unknown base
    # or a bad entrypoint fails before anything lands in out_dir.
    catalog = BaseImageCatalog.from_config(config.bases)
    drafts: list[tuple[PackagingTargets, Image, Path]] = []
    for t, layer, layer_path in assembled:
        image = build(t.image.base, [layer], t.image.entrypoint, t.image.env, catalog=catalog)
        if isinstance(image, Err):
            return Err(StageError(stage="image", error=image.error))
        drafts.append((t, image.value, layer_path))

    packaged: list[PackagedImage] = []
    for t, draft, layer_path in drafts:
        result = write_layer(draft.layers[0], build_root=build_root, out_path=layer_path)
        if isinstance(result, Err):
            return Err(StageError(stage="assemble", error=result.error))
        console.print(f"{t.layer.name}: {len(result.value.entries)} entries, {result.value.digest}", Style.DIM)
        image = replace(draft, layers=(result.value,))

        config_path = out_dir / f"{t.image.name}.json"
        try:
            atomic_write_text(config_path, image_config(image))
            atomic_write_text(
                out_dir / f"{t.tarball.name}.manifest.json",
                _tarball_manifest(layer_path, config_path, t.tarball.repo_tags),
            )
        except OSError as e:
            return Err(
                StageError(
                    stage="image",
                    error=LayerWriteFailed(path=config_path, reason=e.strerror or str(e)),
                )
            )

        console.success(f"{t.image.name} {image.identity}")
        packaged.append(
            PackagedImage(targets=t, image=image, layer_path=layer_path, config_path=config_path)
        )

    return Ok(packaged)


def release_candidates(config: Config, workspace: Workspace) -> list[ReleaseCandidate]:
    return [ReleaseCandidate(source=workspace.root / f.source, name=f.name) for f in config.release.files]


def decide(
    ref: GitRef,
    *,
    config: Config,
    workspace: Workspace,
    images: Sequence[PackagedImage],
    notes: NotesBuilder,
    console: ConsoleProtocol,
) -> Result[Decisions, StageError]:
    """Stage 3: publish and release decisions, release staging and notes."""
    policy = PublishPolicy.from_config(config.publish)
    publish: list[tuple[PackagedImage, PublishDecision]] = []
    for packaged in images:
        decision = resolve_publish(ref, repository=packaged.targets.push.repository, policy=policy)
        if decision.push and not decision.repository:
            return Err(
                StageError(
                    stage="decide",
                    error=ConfigError("publish.registry is not set", path=workspace.config_path),
                )
            )
        publish.append((packaged, decision))

    if publish and not publish[0][1].push:
        console.info(f"not pushing: {publish[0][1].reason}")

    gate = decide_release(ref)
    if not gate.cut:
        console.info(f"not releasing: {gate.reason}")
        return Ok(Decisions(publish=tuple(publish), release=gate))

    # Notes only read; staging replaces the staging dir, so it goes last.
    body = notes(gate.tag or "")
    if isinstance(body, Err):
        return Err(StageError(stage="decide", error=body.error))

    staging_dir = workspace.root / config.release.staging_dir
    staged = resolve_release(ref, release_candidates(config, workspace), staging_dir=staging_dir)
    if isinstance(staged, Err):
        return Err(StageError(stage="decide", error=staged.error))

    return Ok(Decisions(publish=tuple(publish), release=staged.value, notes=body.value))


def publish_release(
    decision: ReleaseDecision,
    notes: str,
    *,
    releases: ReleaseClient,
    console: ConsoleProtocol,
) -> tuple[str | None, ReleaseError | None]:
    tag = decision.tag or ""
    existing = releases.find_release(tag)
    if isinstance(existing, Err):
        return None, existing.error
    if existing.value is not None:
        console.info(f"release {tag} already exists: {existing.value}")
        return existing.value, None

    created = releases.create_release(
        tag,
        notes,
        decision.draft,
        decision.prerelease,
        sorted(decision.attached_files),
    )
    if isinstance(created, Err):
        return None, created.error
    console.success(f"release {tag}: {created.value}")
    return created.value, None


def run_pipeline(
    ref: GitRef,
    *,
    config: Config,
    workspace: Workspace,
    build_root: Path,
    registry_factory: RegistryFactory,
    releases: ReleaseClient,
    notes: NotesBuilder,
    console: ConsoleProtocol,
) -> Result[RunReport, StageError]:
    console.header("assemble")
    packaged = package_images(config=config, workspace=workspace, build_root=build_root, console=console)
    if isinstance(packaged, Err):
        return packaged

    console.header("decide")
    decisions = decide(
        ref,
        config=config,
        workspace=workspace,
        images=packaged.value,
        notes=notes,
        console=console,
    )
    if isinstance(decisions, Err):
        return decisions
    d = decisions.value

    requests = [
        PushRequest(image=p.image, repository=dec.repository, tags=dec.tags)
        for p, dec in d.publish
        if dec.push
    ]
    pushes = PushReport()
    if requests:
        console.header("push")
        layer_paths = {
            layer.digest: p.layer_path for p in packaged.value for layer in p.image.layers if layer.digest
        }
        pushes = push_all(requests, client=registry_factory(layer_paths), console=console)

    release_url: str | None = None
    release_error: ReleaseError | None = None
    if d.release.cut:
        console.header("release")
        release_url, release_error = publish_release(
            d.release, d.notes or "", releases=releases, console=console
        )

    return Ok(
        RunReport(
            images=tuple(packaged.value),
            publish=tuple(dec for _, dec in d.publish),
            release=d.release,
            pushes=pushes,
            release_url=release_url,
            release_error=release_error,
        )
    )
