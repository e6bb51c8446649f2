"""Result type for explicit error handling.

Every stage of the pipeline returns a Result instead of raising. Fatal
configuration problems travel as Err values up to the CLI, which decides the
exit code; nothing in between needs try/except.

Usage:
    def parse_ref_type(value: str) -> Result[str, str]:
        if value not in ("branch", "tag"):
            return Err(f"unknown ref type: {value}")
        return Ok(value)

    match assemble(artifact):
        case Ok(layer):
            print(f"{len(layer.entries)} entries")
        case Err(error):
            print(f"assemble failed: {error}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful result.

    Attributes:
        value: The success value.
    """

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed result.

    Attributes:
        error: The error value (usually a frozen dataclass).
    """

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Ok[T] | Err[E]
