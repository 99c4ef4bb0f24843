"""Port for the remote cluster the reconciliation engine talks to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clusterseed.domain.artifacts import ArtifactKind, BulkAction, Document


@dataclass(frozen=True, slots=True)
class BulkFailure:
    """A rejected bulk entry, by position within the submitted batch."""

    doc_index: int
    reason: str


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Outcome of one bulk submission."""

    succeeded: int = 0
    failures: tuple[BulkFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures


@runtime_checkable
class ClusterProbe(Protocol):
    """Capability set over the remote cluster.

    Implementations raise ``NotFoundError`` from ``get`` when the artifact is
    absent, ``ClusterRequestError`` when the cluster rejects a call and
    ``TransportError`` when it cannot be reached in time.
    """

    async def exists(self, kind: ArtifactKind, name: str) -> bool: ...

    async def get(self, kind: ArtifactKind, name: str) -> Document: ...

    async def put(self, kind: ArtifactKind, name: str, document: Document) -> None: ...

    async def update_partial(self, kind: ArtifactKind, name: str, patch: Document) -> None: ...

    async def delete(self, kind: ArtifactKind, name: str) -> None: ...

    async def bulk_load(
        self,
        index_name: str | None,
        actions: Sequence[BulkAction],
    ) -> BulkResult: ...

    def is_dynamic_setting(self, key: str) -> bool:
        """Whether ``key`` (``index.``-prefixed) can be updated on a live index."""
        ...
