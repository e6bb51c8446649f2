"""File-based cache store.

Layout:

    <root>/
      <key>.tar.gz

Entries are immutable: `save` never overwrites an existing key, not even one
another run publishes while the archive is being written. Archives are written
to a hidden temp sibling and hard-linked into place, and lookups skip anything
hidden or ending in `.tmp`.
"""

from __future__ import annotations

import tarfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ocigate.core.result import Err, Ok, Result
from ocigate.platform.files import TMP_SUFFIX, atomic_binary_writer
from ocigate.services.cache.key import CacheKey

__all__ = ["CacheEntry", "CacheError", "CacheStore"]

ENTRY_SUFFIX = ".tar.gz"


@dataclass(frozen=True, slots=True)
class CacheError:
    message: str
    path: Path | None = None
    # The run proceeds with a cold cache.
    transient: bool = True


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    path: Path
    exact: bool


class CacheStore:
    def __init__(self, root: Path) -> None:
        self.root = root

    def entry_path(self, key: str) -> Path:
        return self.root / f"{key}{ENTRY_SUFFIX}"

    def _entries(self) -> list[tuple[str, Path, int]]:
        if not self.root.is_dir():
            return []
        found: list[tuple[str, Path, int]] = []
        for p in self.root.iterdir():
            name = p.name
            if name.startswith(".") or name.endswith(TMP_SUFFIX) or not name.endswith(ENTRY_SUFFIX):
                continue
            if not p.is_file():
                continue
            found.append((name.removesuffix(ENTRY_SUFFIX), p, p.stat().st_mtime_ns))
        return found

    def lookup(self, key: CacheKey) -> Result[CacheEntry | None, CacheError]:
        """Exact key first, then the newest entry for each restore prefix in order."""
        try:
            exact = self.entry_path(key.primary)
            if exact.is_file():
                return Ok(CacheEntry(key=key.primary, path=exact, exact=True))

            entries = self._entries()
            for prefix in key.restore_chain:
                matches = [e for e in entries if e[0].startswith(prefix)]
                if matches:
                    name, path, _ = max(matches, key=lambda e: (e[2], e[0]))
                    return Ok(CacheEntry(key=name, path=path, exact=False))
        except OSError as e:
            return Err(CacheError(message=f"cache lookup failed: {e}", path=self.root))
        return Ok(None)

    def save(self, key: CacheKey, paths: Sequence[str], *, base_dir: Path) -> Result[bool, CacheError]:
        """Archive paths (relative to base_dir) under key.primary.

        Returns Ok(False) without touching anything when the key already exists.
        Missing paths are skipped.
        """
        target = self.entry_path(key.primary)
        if target.exists():
            return Ok(False)

        try:
            with atomic_binary_writer(target, exclusive=True) as handle:
                with tarfile.open(fileobj=handle, mode="w:gz") as tar:
                    for rel in paths:
                        src = base_dir / rel
                        if not src.exists():
                            continue
                        tar.add(str(src), arcname=rel)
        except FileExistsError:
            # Another run published the same key first.
            return Ok(False)
        except (OSError, tarfile.TarError) as e:
            return Err(CacheError(message=f"cache save failed: {e}", path=target))
        return Ok(True)

    def restore(self, entry: CacheEntry, dest: Path) -> Result[None, CacheError]:
        try:
            dest.mkdir(parents=True, exist_ok=True)
            with tarfile.open(entry.path, mode="r:gz") as tar:
                tar.extractall(path=dest, filter="data")
        except (OSError, tarfile.TarError) as e:
            return Err(CacheError(message=f"cache restore failed: {e}", path=entry.path))
        return Ok(None)
