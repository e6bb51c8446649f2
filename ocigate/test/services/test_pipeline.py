"""End-to-end tests for the delivery pipeline with fake collaborators."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from ocigate.core.config import (
    BaseImageConfig,
    Config,
    ImageConfig,
    ImageDefaults,
    PublishConfig,
    ReleaseConfig,
    ReleaseFileConfig,
)
from ocigate.core.result import Err, Ok, Result
from ocigate.core.workspace import Workspace
from ocigate.git.ref import BranchRef, TagRef
from ocigate.output.console import MockConsole
from ocigate.services.packaging.errors import ArtifactMissing, BaseImageUnresolved
from ocigate.services.packaging.layer import tar_members
from ocigate.services.packaging.model import Image
from ocigate.services.pipeline import package_images, run_pipeline
from ocigate.services.publish.registry import PushError, RegistryClient
from ocigate.services.release.errors import ReleaseError

from ._fixtures import SHA

BASE_DIGEST = "sha256:" + "9" * 64


class FakeRegistry:
    def __init__(self, layer_paths: Mapping[str, Path], fail: bool = False) -> None:
        self.layer_paths = dict(layer_paths)
        self.pushes: list[tuple[Image, str, str]] = []
        self._fail = fail

    def push(self, image: Image, repository: str, tag: str) -> Result[str, PushError]:
        self.pushes.append((image, repository, tag))
        if self._fail:
            return Err(PushError(repository=repository, tag=tag, message="denied"))
        return Ok("sha256:pushed")


class FakeReleases:
    def __init__(self, existing: str | None = None) -> None:
        self.existing = existing
        self.created: list[tuple[str, str, bool, bool, list[Path]]] = []

    def find_release(self, tag: str) -> Result[str | None, ReleaseError]:
        return Ok(self.existing)

    def create_release(
        self, tag: str, body: str, draft: bool, prerelease: bool, files: Sequence[Path]
    ) -> Result[str, ReleaseError]:
        self.created.append((tag, body, draft, prerelease, list(files)))
        return Ok(f"https://github.com/dfinity/dre/releases/tag/{tag}")


class Registries:
    def __init__(self, fail: bool = False) -> None:
        self.clients: list[FakeRegistry] = []
        self._fail = fail

    def __call__(self, layer_paths: Mapping[str, Path]) -> RegistryClient:
        client = FakeRegistry(layer_paths, fail=self._fail)
        self.clients.append(client)
        return client


def _notes(tag: str) -> Result[str, ReleaseError]:
    return Ok(f"notes for {tag}\n")


def _written(workspace: Workspace) -> list[str]:
    if not workspace.out_dir.exists():
        return []
    return sorted(p.name for p in workspace.out_dir.iterdir())


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    root = tmp_path / "repo"
    (root / "rs" / "cli").mkdir(parents=True)
    (root / "rs" / "cli" / "dre").write_text("#!/usr/bin/env python3\n")
    (root / "rs" / "cli" / "dre").chmod(0o755)
    (root / "rs" / "cli" / "lib.py").write_text("VALUE = 1\n")
    (root / "dre.closure").write_text("rs/cli/lib.py\n")
    (root / "ocigate.toml").write_text("")
    return Workspace(root=root)


@pytest.fixture
def config() -> Config:
    return Config(
        image=ImageDefaults(workspace_name="dre"),
        bases={
            "distroless_python3": BaseImageConfig(
                name="distroless_python3",
                reference="gcr.io/distroless/python3-debian12",
                digest=BASE_DIGEST,
            )
        },
        images=(ImageConfig(name="dre", src="rs/cli/dre", closure="dre.closure"),),
        publish=PublishConfig(registry="ghcr.io/dfinity/dre"),
        release=ReleaseConfig(files=(ReleaseFileConfig(source="rs/cli/dre", name="dre"),)),
    )


def test_release_tag_pushes_once_and_creates_one_release(workspace: Workspace, config: Config) -> None:
    registries = Registries()
    releases = FakeReleases()
    console = MockConsole()

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=registries,
        releases=releases,
        notes=_notes,
        console=console,
    )

    assert isinstance(result, Ok), result
    report = result.value
    assert report.ok

    (client,) = registries.clients
    assert len(client.pushes) == 1
    image, repository, tag = client.pushes[0]
    assert (repository, tag) == ("ghcr.io/dfinity/dre/dre", "v3.0.0")
    assert image.base.digest == BASE_DIGEST
    assert image.entrypoint == ("python3", "/dre")
    assert set(client.layer_paths.values()) == {workspace.out_dir / "dre_layer.tar"}

    assert len(releases.created) == 1
    tag_name, body, draft, prerelease, files = releases.created[0]
    assert (tag_name, draft, prerelease) == ("v3.0.0", True, True)
    assert body == "notes for v3.0.0\n"
    assert files == [workspace.root / "release" / "dre"]
    assert report.release_url == "https://github.com/dfinity/dre/releases/tag/v3.0.0"

    members = tar_members(workspace.out_dir / "dre_layer.tar")
    assert "dre" in members
    assert "dre.runfiles/dre/rs/cli/lib.py" in members

    manifest = json.loads((workspace.out_dir / "dre-tarball.manifest.json").read_text())
    assert manifest[0]["RepoTags"] == ["localhost/dre:latest"]
    assert manifest[0]["Layers"] == ["dre_layer.tar"]


def test_existing_release_is_not_recreated(workspace: Workspace, config: Config) -> None:
    releases = FakeReleases(existing="https://github.com/dfinity/dre/releases/tag/v3.0.0")
    console = MockConsole()

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=Registries(),
        releases=releases,
        notes=_notes,
        console=console,
    )

    assert isinstance(result, Ok)
    assert releases.created == []
    assert console.find("already exists")


def test_main_branch_neither_pushes_nor_releases(workspace: Workspace, config: Config) -> None:
    registries = Registries()
    releases = FakeReleases()
    console = MockConsole()

    result = run_pipeline(
        BranchRef(name="main", sha=SHA),
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=registries,
        releases=releases,
        notes=_notes,
        console=console,
    )

    assert isinstance(result, Ok)
    assert registries.clients == []
    assert releases.created == []
    assert (workspace.out_dir / "dre_layer.tar").is_file()
    assert console.find("info: not pushing")
    assert console.find("info: not releasing")


def test_push_failure_is_reported_not_fatal(workspace: Workspace, config: Config) -> None:
    releases = FakeReleases()

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=Registries(fail=True),
        releases=releases,
        notes=_notes,
        console=MockConsole(),
    )

    assert isinstance(result, Ok)
    assert not result.value.ok
    assert len(result.value.pushes.failed) == 1
    assert len(releases.created) == 1


def test_missing_release_candidate_stops_before_any_push(workspace: Workspace, config: Config) -> None:
    registries = Registries()
    releases = FakeReleases()
    (workspace.root / "rs" / "cli" / "dre").unlink()
    (workspace.root / "bin").mkdir()
    (workspace.root / "bin" / "dre").write_text("binary")
    cfg = Config(
        image=ImageDefaults(workspace_name="dre", source_template="bin/{name}"),
        bases=config.bases,
        images=config.images,
        publish=config.publish,
        release=config.release,
    )

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=cfg,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=registries,
        releases=releases,
        notes=_notes,
        console=MockConsole(),
    )

    assert isinstance(result, Err)
    assert result.error.stage == "decide"
    assert isinstance(result.error.error, ReleaseError)
    assert result.error.error.kind == "candidate_missing"
    assert registries.clients == []
    assert releases.created == []


def test_missing_build_output(workspace: Workspace, config: Config) -> None:
    (workspace.root / "rs" / "cli" / "lib.py").unlink()
    result = package_images(config=config, workspace=workspace, build_root=workspace.root, console=MockConsole())
    assert isinstance(result, Err)
    assert result.error.stage == "assemble"
    assert result.error.error == ArtifactMissing(path=workspace.root / "rs" / "cli" / "lib.py")
    assert not (workspace.out_dir / "dre_layer.tar").exists()


def test_unknown_base_image(workspace: Workspace, config: Config) -> None:
    cfg = Config(image=config.image, bases={}, images=config.images)
    result = package_images(config=cfg, workspace=workspace, build_root=workspace.root, console=MockConsole())
    assert isinstance(result, Err)
    assert result.error.stage == "image"
    assert isinstance(result.error.error, BaseImageUnresolved)
    assert _written(workspace) == []


def test_unknown_image_name(workspace: Workspace, config: Config) -> None:
    result = package_images(
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        console=MockConsole(),
        names=["log-fetcher"],
    )
    assert isinstance(result, Err)
    assert "unknown image: log-fetcher" in result.error.error.message  # type: ignore[union-attr]


def test_push_without_registry_is_a_config_error(workspace: Workspace, config: Config) -> None:
    cfg = Config(image=config.image, bases=config.bases, images=config.images, release=config.release)
    registries = Registries()

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=cfg,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=registries,
        releases=FakeReleases(),
        notes=_notes,
        console=MockConsole(),
    )

    assert isinstance(result, Err)
    assert result.error.stage == "decide"
    assert registries.clients == []


def test_bad_second_image_leaves_out_dir_untouched(workspace: Workspace, config: Config) -> None:
    (workspace.root / "rs" / "cli" / "fetch").write_text("#!/bin/sh\n")
    images = (*config.images, ImageConfig(name="fetch", src="rs/cli/fetch", base="busybox"))
    cfg = Config(image=config.image, bases=config.bases, images=images)

    result = package_images(config=cfg, workspace=workspace, build_root=workspace.root, console=MockConsole())

    assert isinstance(result, Err)
    assert result.error.error == BaseImageUnresolved(reference="busybox", available=("distroless_python3",))
    assert _written(workspace) == []


def test_missing_source_in_second_image_leaves_out_dir_untouched(workspace: Workspace, config: Config) -> None:
    images = (*config.images, ImageConfig(name="gone", src="rs/cli/gone"))
    cfg = Config(image=config.image, bases=config.bases, images=images)

    result = package_images(config=cfg, workspace=workspace, build_root=workspace.root, console=MockConsole())

    assert isinstance(result, Err)
    assert result.error.stage == "assemble"
    assert result.error.error == ArtifactMissing(path=workspace.root / "rs" / "cli" / "gone")
    assert _written(workspace) == []


def test_notes_failure_leaves_staging_dir_untouched(workspace: Workspace, config: Config) -> None:
    releases = FakeReleases()

    def missing_changelog(tag: str) -> Result[str, ReleaseError]:
        return Err(ReleaseError(kind="changelog_missing", message="changelog not found: CHANGELOG.md"))

    result = run_pipeline(
        TagRef(name="v3.0.0", sha=SHA),
        config=config,
        workspace=workspace,
        build_root=workspace.root,
        registry_factory=Registries(),
        releases=releases,
        notes=missing_changelog,
        console=MockConsole(),
    )

    assert isinstance(result, Err)
    assert result.error.stage == "decide"
    assert result.error.error.kind == "changelog_missing"  # type: ignore[union-attr]
    assert not (workspace.root / config.release.staging_dir).exists()
    assert releases.created == []
