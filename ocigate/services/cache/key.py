"""Cache key derivation.

Mirrors the CI expression

    ${{ runner.os }}-bazel-${{ hashFiles('.bazelversion', '.bazelrc', ...) }}

with restore key `${{ runner.os }}-bazel-`: each existing input contributes the
sha256 of its content, in order, and the key hashes those digests together.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ocigate.platform.files import sha256_file

__all__ = ["CacheKey", "derive_key", "hash_files"]

DEFAULT_NAMESPACE = "bazel"


@dataclass(frozen=True, slots=True)
class CacheKey:
    primary: str
    restore_chain: tuple[str, ...]


def hash_files(paths: Sequence[Path]) -> str:
    """Combined content hash of the existing files; "" when none exist."""
    digests = [sha256_file(p) for p in paths if p.is_file()]
    if not digests:
        return ""
    h = hashlib.sha256()
    for digest in digests:
        h.update(digest.encode("ascii"))
    return h.hexdigest()


def derive_key(
    inputs: Sequence[Path],
    *,
    runner_os: str,
    namespace: str = DEFAULT_NAMESPACE,
) -> CacheKey:
    prefix = f"{runner_os}-{namespace}-"
    return CacheKey(primary=prefix + hash_files(inputs), restore_chain=(prefix,))
