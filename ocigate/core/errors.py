"""Error codes for CLI exit status.

Every fatal condition of a pipeline run maps onto one of these codes. The
values are the process exit status and must stay stable: CI scripts branch on
them.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: Configuration error (bad path mapping, unknown base, missing candidate)
    - 2: Environment error (missing tool, malformed CI environment)
    - 4: Network error (push or release API failed)
    - 5: I/O error (disk exhausted, layer could not be written)
    """

    OK = 0
    CONFIG_ERROR = 1
    ENV_ERROR = 2
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
