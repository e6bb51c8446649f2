"""Platform detection.

Only one question matters here: which runner OS identifier goes into cache
keys. CI runners export it as $RUNNER_OS; local runs fall back to detection
with the same spelling (`Linux`, `macOS`, `Windows`).
"""

from __future__ import annotations

import os as _os
import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "Platform",
    "detect_platform",
    "runner_os",
]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def runner_os(self) -> str:
        """Spelling used by hosted CI runners."""
        return {
            Platform.LINUX: "Linux",
            Platform.MACOS: "macOS",
            Platform.WINDOWS: "Windows",
        }.get(self, "Unknown")


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    if _sys.platform.startswith("linux"):
        return Platform.LINUX
    if _sys.platform == "darwin":
        return Platform.MACOS
    if _sys.platform in ("win32", "cygwin"):
        return Platform.WINDOWS
    return Platform.UNKNOWN


def runner_os() -> str:
    """$RUNNER_OS when running in CI, else the detected platform."""
    env = _os.environ.get("RUNNER_OS", "").strip()
    if env:
        return env
    return detect_platform().runner_os
