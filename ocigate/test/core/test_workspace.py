"""Tests for ocigate.core.workspace module."""

from __future__ import annotations

from pathlib import Path

import pytest

from ocigate.core.result import Err, Ok
from ocigate.core.workspace import (
    WORKSPACE_ENV_VAR,
    Workspace,
    detect_workspace,
    find_workspace_upward,
    is_workspace_root,
)


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    (tmp_path / "ocigate.toml").write_text("", encoding="utf-8")
    return tmp_path


@pytest.fixture(autouse=True)
def _no_workspace_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(WORKSPACE_ENV_VAR, raising=False)


class TestWorkspace:
    def test_paths(self, workspace_dir: Path) -> None:
        ws = Workspace(root=workspace_dir)
        assert ws.config_path == workspace_dir / "ocigate.toml"
        assert ws.state_dir == workspace_dir / ".ocigate"
        assert ws.out_dir == workspace_dir / ".ocigate" / "out"
        assert str(ws) == str(workspace_dir)


class TestDetection:
    def test_is_workspace_root(self, workspace_dir: Path) -> None:
        assert is_workspace_root(workspace_dir)
        assert not is_workspace_root(workspace_dir / "missing")

    def test_find_upward_from_nested(self, workspace_dir: Path) -> None:
        nested = workspace_dir / "rs" / "cli" / "dre"
        nested.mkdir(parents=True)
        assert find_workspace_upward(nested) == workspace_dir

    def test_find_upward_none(self, tmp_path: Path) -> None:
        assert find_workspace_upward(tmp_path) is None

    def test_detect_from_start_dir(self, workspace_dir: Path) -> None:
        nested = workspace_dir / "k8s"
        nested.mkdir()
        result = detect_workspace(start_dir=nested)
        assert isinstance(result, Ok)
        assert result.value.root == workspace_dir.resolve()

    def test_detect_not_found(self, tmp_path: Path) -> None:
        result = detect_workspace(start_dir=tmp_path)
        assert isinstance(result, Err)
        assert "ocigate.toml" in result.error.message

    def test_env_var_wins(
        self, workspace_dir: Path, tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        elsewhere = tmp_path_factory.mktemp("elsewhere")
        monkeypatch.setenv(WORKSPACE_ENV_VAR, str(workspace_dir))
        result = detect_workspace(start_dir=elsewhere)
        assert isinstance(result, Ok)
        assert result.value.root == workspace_dir.resolve()

    def test_invalid_env_var_is_an_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(WORKSPACE_ENV_VAR, str(tmp_path))
        result = detect_workspace(start_dir=tmp_path)
        assert isinstance(result, Err)
        assert WORKSPACE_ENV_VAR in result.error.message
