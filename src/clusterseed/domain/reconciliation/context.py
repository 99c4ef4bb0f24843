"""Run-scoped state for the reconciliation engine."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .report import ApplyReport

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from clusterseed.domain.ports.cluster import ClusterProbe

DEFAULT_MAX_WORKERS = 4


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ApplyContext:
    """Caller-supplied options for one run.

    ``force`` allows deleting and recreating existing indices. ``merge_mapping``
    controls whether existing indices receive mapping and settings updates.
    ``bulk_batch_size`` of ``None`` sends each data set as one bulk request.
    """

    force: bool = False
    merge_mapping: bool = True
    max_workers: int = DEFAULT_MAX_WORKERS
    bulk_batch_size: int | None = None
    cancel: threading.Event | None = None
    clock: Callable[[], datetime] = _utcnow

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.bulk_batch_size is not None and self.bulk_batch_size < 1:
            raise ValueError("bulk_batch_size must be at least 1")

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def now(self) -> datetime:
        return self.clock()


class FreshlyCreatedSet:
    """Names of indices created during the current run.

    Written by the index phase, sealed when that phase ends, then read by the
    data loader. Adding after sealing is a programming error.
    """

    __slots__ = ("_lock", "_names", "_sealed")

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._names: set[str] = set(names)
        self._sealed = False

    def add(self, name: str) -> None:
        with self._lock:
            if self._sealed:
                raise RuntimeError(f"Cannot mark {name!r} as created: the set is sealed")
            self._names.add(name)

    def seal(self) -> frozenset[str]:
        with self._lock:
            self._sealed = True
            return frozenset(self._names)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._names)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.snapshot()))

    def __repr__(self) -> str:
        state = "sealed" if self._sealed else "open"
        return f"FreshlyCreatedSet({sorted(self.snapshot())!r}, {state})"


@dataclass(slots=True, kw_only=True)
class RunState:
    """Mutable state threaded through the phases of one run."""

    probe: ClusterProbe
    context: ApplyContext
    now: datetime
    report: ApplyReport = field(default_factory=ApplyReport)
    freshly_created: FreshlyCreatedSet = field(default_factory=FreshlyCreatedSet)
