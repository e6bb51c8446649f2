from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest
import typer

from ocigate.core.config import Config, TriggerConfig
from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err, Ok, Result
from ocigate.services.packaging.model import Image
from ocigate.services.publish.registry import PushError
from ocigate.services.release.errors import ReleaseError

from ._support import SHA, console_of, make_config, make_ctx


class FakeCrane:
    pushes: list[str] = []
    fail = False

    def __init__(self, *, workspace_root: Path, layer_paths: Mapping[str, Path]) -> None:
        self.layer_paths = layer_paths

    def push(self, image: Image, repository: str, tag: str) -> Result[str, PushError]:
        FakeCrane.pushes.append(f"{repository}:{tag}")
        if FakeCrane.fail:
            return Err(PushError(repository=repository, tag=tag, message="denied"))
        return Ok("sha256:pushed")


class FakeGh:
    created: list[str] = []

    def __init__(self, *, workspace_root: Path, repo: str | None = None) -> None:
        self.repo = repo

    def find_release(self, tag: str) -> Result[str | None, ReleaseError]:
        return Ok(None)

    def create_release(
        self, tag: str, body: str, draft: bool, prerelease: bool, files: Sequence[Path]
    ) -> Result[str, ReleaseError]:
        FakeGh.created.append(tag)
        return Ok(f"https://github.com/dfinity/dre/releases/tag/{tag}")


def _notes(*, workspace_root: Path, changelog: Path, tag: str) -> Result[str, ReleaseError]:
    return Ok(f"notes {tag}\n")


@pytest.fixture(autouse=True)
def _fakes(monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.run as run_cmd

    FakeCrane.pushes = []
    FakeCrane.fail = False
    FakeGh.created = []
    monkeypatch.setattr(run_cmd, "CraneRegistry", FakeCrane)
    monkeypatch.setattr(run_cmd, "GhReleaseClient", FakeGh)
    monkeypatch.setattr(run_cmd, "build_release_notes", _notes)


def _run(ref: str, *, changed: list[str] | None = None, event: str = "push") -> None:
    import ocigate.cli.commands.run as run_cmd

    run_cmd.run(ref=ref, sha=SHA, event=event, changed=changed, repo=None, build_root=None)


def test_run_release_tag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.run as run_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(run_cmd, "build_context", lambda: ctx)

    _run("refs/tags/v3.0.0")

    assert FakeCrane.pushes == ["ghcr.io/dfinity/dre/dre:v3.0.0"]
    assert FakeGh.created == ["v3.0.0"]
    assert (tmp_path / "release" / "dre").is_file()
    assert not console_of(ctx).has_error()


def test_run_push_failure_exits_with_network_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.run as run_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(run_cmd, "build_context", lambda: ctx)
    FakeCrane.fail = True

    with pytest.raises(typer.Exit) as exc:
        _run("refs/tags/v3.0.0")

    assert exc.value.exit_code == int(ErrorCode.NETWORK_ERROR)
    assert console_of(ctx).find("error: push: 1 push(es) failed")
    assert FakeGh.created == ["v3.0.0"]


def test_run_skips_when_no_trigger_matches(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.run as run_cmd

    config = make_config(triggers=(TriggerConfig(event="push", branches=("main",), paths=("rs/**",)),))
    ctx = make_ctx(tmp_path, config)
    monkeypatch.setattr(run_cmd, "build_context", lambda: ctx)

    _run("refs/heads/main", changed=["docs/README.md"])

    assert console_of(ctx).find("info: no trigger matches push branch main")
    assert not (tmp_path / ".ocigate").exists()


def test_run_unknown_base_exits_before_push(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.run as run_cmd

    base = make_config()
    config = Config(
        image=base.image,
        bases={},
        images=base.images,
        publish=base.publish,
        release=base.release,
    )
    ctx = make_ctx(tmp_path, config)
    monkeypatch.setattr(run_cmd, "build_context", lambda: ctx)

    with pytest.raises(typer.Exit) as exc:
        _run("refs/tags/v3.0.0")

    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)
    assert console_of(ctx).find("error: image: unknown base image: distroless_python3")
    assert FakeCrane.pushes == []
    assert FakeGh.created == []
