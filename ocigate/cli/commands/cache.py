from __future__ import annotations

import os
from pathlib import Path

import typer

from ocigate.cli.context import CLIContext, build_context
from ocigate.core.errors import ErrorCode
from ocigate.core.result import Err
from ocigate.platform.detection import runner_os
from ocigate.services.cache.key import CacheKey, derive_key
from ocigate.services.cache.store import CacheStore

cache_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _key(ctx: CLIContext, os_name: str | None) -> CacheKey:
    cache = ctx.config.cache
    return derive_key(
        [ctx.workspace.root / p for p in cache.inputs],
        runner_os=os_name or runner_os(),
        namespace=cache.namespace,
    )


def _store(ctx: CLIContext) -> CacheStore:
    return CacheStore(ctx.workspace.root / ctx.config.cache.dir)


@cache_app.command("key")
def key_cmd(
    os_name: str | None = typer.Option(None, "--runner-os", help="Override $RUNNER_OS"),
) -> None:
    """Print the cache key and its restore chain."""
    ctx = build_context()
    key = _key(ctx, os_name)

    output = os.environ.get("GITHUB_OUTPUT")
    if output:
        try:
            with Path(output).open("a", encoding="utf-8") as f:
                f.write(f"key={key.primary}\n")
                f.write(f"restore-keys={key.restore_chain[0]}\n")
        except OSError as e:
            ctx.console.error(f"failed to write {output}: {e}")
            raise typer.Exit(code=int(ErrorCode.IO_ERROR))

    ctx.console.print(f"key={key.primary}")
    for prefix in key.restore_chain:
        ctx.console.print(f"restore-key={prefix}")


@cache_app.command("restore")
def restore_cmd(
    os_name: str | None = typer.Option(None, "--runner-os", help="Override $RUNNER_OS"),
) -> None:
    """Restore the best matching cache entry into the workspace."""
    ctx = build_context()
    key = _key(ctx, os_name)
    store = _store(ctx)

    found = store.lookup(key)
    if isinstance(found, Err):
        ctx.console.warning(f"{found.error.message}; continuing with a cold cache")
        return
    entry = found.value
    if entry is None:
        ctx.console.info(f"cache miss: {key.primary}")
        return

    restored = store.restore(entry, ctx.workspace.root)
    if isinstance(restored, Err):
        ctx.console.warning(f"{restored.error.message}; continuing with a cold cache")
        return
    kind = "exact" if entry.exact else "restore-key"
    ctx.console.success(f"cache hit ({kind}): {entry.key}")


@cache_app.command("save")
def save_cmd(
    os_name: str | None = typer.Option(None, "--runner-os", help="Override $RUNNER_OS"),
) -> None:
    """Save the configured cache paths under the primary key (never overwrites)."""
    ctx = build_context()
    paths = ctx.config.cache.paths
    if not paths:
        ctx.console.warning("no [cache].paths configured; nothing to save")
        return

    key = _key(ctx, os_name)
    saved = _store(ctx).save(key, paths, base_dir=ctx.workspace.root)
    if isinstance(saved, Err):
        ctx.console.warning(saved.error.message)
        return
    if saved.value:
        ctx.console.success(f"cache saved: {key.primary}")
    else:
        ctx.console.info(f"cache entry exists, not overwriting: {key.primary}")
