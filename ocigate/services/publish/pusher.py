from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ocigate.core.result import Err
from ocigate.output.console import ConsoleProtocol
from ocigate.services.packaging.model import Image
from ocigate.services.publish.registry import PushError, RegistryClient

__all__ = ["PushOutcome", "PushReport", "PushRequest", "push_all"]


@dataclass(frozen=True, slots=True)
class PushRequest:
    image: Image
    repository: str
    tags: frozenset[str]


@dataclass(frozen=True, slots=True)
class PushOutcome:
    repository: str
    tag: str
    digest: str


@dataclass(frozen=True, slots=True)
class PushReport:
    pushed: tuple[PushOutcome, ...] = ()
    failed: tuple[PushError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed


def push_all(
    requests: Sequence[PushRequest],
    *,
    client: RegistryClient,
    console: ConsoleProtocol,
) -> PushReport:
    """Push every (image, tag) pair.

    Each push is independent: a failure is recorded and the remaining pushes
    still run. Nothing is retried here.
    """
    pushed: list[PushOutcome] = []
    failed: list[PushError] = []

    for request in requests:
        for tag in sorted(request.tags):
            target = f"{request.repository}:{tag}"
            console.print(f"push {target}")
            result = client.push(request.image, request.repository, tag)
            if isinstance(result, Err):
                failed.append(result.error)
                continue
            pushed.append(PushOutcome(repository=request.repository, tag=tag, digest=result.value))
            console.success(f"{target} ({result.value})")

    return PushReport(pushed=tuple(pushed), failed=tuple(failed))
