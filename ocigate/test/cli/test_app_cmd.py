from __future__ import annotations

import os
from pathlib import Path

import pytest
import typer

from ocigate import __version__
from ocigate.cli.app import _main, app  # pyright: ignore[reportPrivateUsage]
from ocigate.core.errors import ErrorCode
from ocigate.core.workspace import WORKSPACE_ENV_VAR


def test_version_exits_zero(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(typer.Exit) as exc:
        _main(version=True, workspace=None)

    assert exc.value.exit_code == 0
    assert capsys.readouterr().out.strip() == __version__


def test_workspace_option_sets_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(WORKSPACE_ENV_VAR, "")
    (tmp_path / "ocigate.toml").write_text("", encoding="utf-8")

    _main(version=False, workspace=tmp_path)

    assert os.environ[WORKSPACE_ENV_VAR] == str(tmp_path.resolve())


def test_workspace_option_rejects_non_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(WORKSPACE_ENV_VAR, raising=False)

    with pytest.raises(typer.Exit) as exc:
        _main(version=False, workspace=tmp_path)

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)


def test_commands_are_registered() -> None:
    names = {c.name or (c.callback.__name__ if c.callback else "") for c in app.registered_commands}
    assert {"package", "decide", "git-hash", "publish", "release", "run"} <= names
    assert [g.name for g in app.registered_groups] == ["cache"]
