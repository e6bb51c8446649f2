"""Platform abstraction layer."""

from .detection import Platform, detect_platform, runner_os
from .files import atomic_binary_writer, atomic_write_text, replace_dir, sha256_file
from .process import ProcessError, run

__all__ = [
    # detection
    "Platform",
    "detect_platform",
    "runner_os",
    # files
    "atomic_binary_writer",
    "atomic_write_text",
    "replace_dir",
    "sha256_file",
    # process
    "ProcessError",
    "run",
]
