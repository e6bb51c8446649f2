from __future__ import annotations

from pathlib import Path

import pytest
import typer

from ocigate.core.errors import ErrorCode

from ._support import SHA, console_of, make_ctx


def test_git_hash_for_tag_exports_to_github_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.git_hash as git_hash_cmd

    ctx = make_ctx(tmp_path)
    env_file = tmp_path / "github_env"
    env_file.write_text("EXISTING=1\n", encoding="utf-8")
    monkeypatch.setattr(git_hash_cmd, "build_context", lambda: ctx)
    monkeypatch.setenv("GITHUB_ENV", str(env_file))

    git_hash_cmd.git_hash(ref="refs/tags/v1.2.3", sha=SHA)

    assert console_of(ctx).messages == ["v1.2.3"]
    assert env_file.read_text(encoding="utf-8") == "EXISTING=1\nGIT_HASH=v1.2.3\n"


def test_git_hash_for_branch_is_the_sha(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.git_hash as git_hash_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(git_hash_cmd, "build_context", lambda: ctx)
    monkeypatch.delenv("GITHUB_ENV", raising=False)

    git_hash_cmd.git_hash(ref="refs/heads/main", sha=SHA)

    assert console_of(ctx).messages == [SHA]


def test_git_hash_from_ci_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.git_hash as git_hash_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(git_hash_cmd, "build_context", lambda: ctx)
    monkeypatch.delenv("GITHUB_ENV", raising=False)
    monkeypatch.setenv("GITHUB_REF_TYPE", "tag")
    monkeypatch.setenv("GITHUB_REF_NAME", "v0.1.0")
    monkeypatch.setenv("GITHUB_SHA", SHA)

    git_hash_cmd.git_hash(ref=None, sha=None)

    assert console_of(ctx).messages == ["v0.1.0"]


def test_git_hash_without_sha_is_an_env_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import ocigate.cli.commands.git_hash as git_hash_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(git_hash_cmd, "build_context", lambda: ctx)
    monkeypatch.delenv("GITHUB_SHA", raising=False)

    with pytest.raises(typer.Exit) as exc:
        git_hash_cmd.git_hash(ref=None, sha=None)

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert console_of(ctx).has_error()
