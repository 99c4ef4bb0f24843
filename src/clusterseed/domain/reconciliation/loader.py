"""Data loading for freshly created indices.

Data is pushed only into indices the index phase created in the current run.
An index that already existed (and was not force-recreated) is assumed to hold
its data already, so its data sets are skipped. That skip is the normal
steady-state outcome of a repeated run, not an error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from clusterseed.domain.artifacts import ArtifactKind, BulkAction
from clusterseed.domain.datemath import resolve_index_name
from clusterseed.domain.errors import ClusterSeedError, DateMathError, IngestError
from clusterseed.domain.ports.cluster import BulkFailure

from .context import ApplyContext
from .report import ApplyAction, ApplyReport

if TYPE_CHECKING:
    from collections.abc import Container, Iterator, Sequence
    from datetime import datetime

    from clusterseed.domain.artifacts import DataSet
    from clusterseed.domain.ports.cluster import ClusterProbe

log = getLogger(__name__)


@dataclass(slots=True)
class DataLoader:
    """Load data sets whose target indices were created during this run."""

    probe: ClusterProbe
    context: ApplyContext = field(default_factory=ApplyContext)

    def load(
        self,
        data_sets: Sequence[DataSet],
        freshly_created: Container[str],
        *,
        now: datetime | None = None,
    ) -> ApplyReport:
        return asyncio.run(self.load_async(data_sets, freshly_created, now=now))

    async def load_async(
        self,
        data_sets: Sequence[DataSet],
        freshly_created: Container[str],
        *,
        now: datetime | None = None,
    ) -> ApplyReport:
        report = ApplyReport()
        moment = now or self.context.now()
        semaphore = asyncio.Semaphore(self.context.max_workers)

        async def worker(data_set: DataSet) -> None:
            async with semaphore:
                await self._load_data_set(data_set, freshly_created, moment, report)

        await asyncio.gather(*(worker(data_set) for data_set in data_sets))
        return report

    async def _load_data_set(
        self,
        data_set: DataSet,
        freshly_created: Container[str],
        now: datetime,
        report: ApplyReport,
    ) -> None:
        if self.context.cancelled:
            report.cancelled = True
            report.record(
                kind=ArtifactKind.DATA_SET,
                name=data_set.name,
                action=ApplyAction.SKIPPED,
                detail="cancelled",
            )
            return

        try:
            target, selected, positions = _select_actions(data_set, freshly_created, now)
        except DateMathError as exc:
            error = IngestError(str(exc), kind=ArtifactKind.DATA_SET, name=data_set.name)
            error.__cause__ = exc
            report.record_error(error)
            return

        if not selected:
            log.debug(
                "Skipping data set %s: no target index was created in this run", data_set.name
            )
            report.record(
                kind=ArtifactKind.DATA_SET,
                name=data_set.name,
                action=ApplyAction.SKIPPED,
                detail="target already existed",
            )
            return

        loaded = 0
        failures: list[BulkFailure] = []
        for offset, batch in self._batches(selected):
            if self.context.cancelled:
                report.cancelled = True
                break
            try:
                result = await self.probe.bulk_load(target, batch)
            except ClusterSeedError as exc:
                log.error(
                    "Loading data set %s failed after %s documents: %s",
                    data_set.name,
                    loaded,
                    exc,
                )
                error = IngestError(
                    f"Failed to load data set {data_set.name}: {exc}",
                    kind=ArtifactKind.DATA_SET,
                    name=data_set.name,
                    loaded=loaded,
                    failures=(*failures, BulkFailure(positions[offset], str(exc))),
                )
                error.__cause__ = exc
                report.add_documents(data_set.name, loaded)
                report.record_error(error)
                return
            loaded += result.succeeded
            failures.extend(
                BulkFailure(positions[offset + failure.doc_index], failure.reason)
                for failure in result.failures
            )

        report.add_documents(data_set.name, loaded)
        if failures:
            log.error(
                "Data set %s: %s documents rejected by the cluster", data_set.name, len(failures)
            )
            report.record_error(
                IngestError(
                    f"{len(failures)} documents of data set {data_set.name} were rejected",
                    kind=ArtifactKind.DATA_SET,
                    name=data_set.name,
                    loaded=loaded,
                    failures=tuple(failures),
                )
            )
            return

        log.info("Loaded %s documents from data set %s", loaded, data_set.name)
        report.record(
            kind=ArtifactKind.DATA_SET,
            name=data_set.name,
            action=ApplyAction.LOADED,
            detail=f"{loaded} documents",
        )

    def _batches(
        self, actions: tuple[BulkAction, ...]
    ) -> Iterator[tuple[int, tuple[BulkAction, ...]]]:
        size = self.context.bulk_batch_size or len(actions)
        for offset in range(0, len(actions), size):
            yield offset, actions[offset : offset + size]


def _select_actions(
    data_set: DataSet,
    freshly_created: Container[str],
    now: datetime,
) -> tuple[str | None, tuple[BulkAction, ...], tuple[int, ...]]:
    """Return the bulk target, the actions that may be loaded and their positions.

    Positions index into ``data_set.actions`` so failures point back to the
    entry as written in the bulk file.
    """

    if data_set.target is not None:
        concrete = resolve_index_name(data_set.target, now)
        if concrete not in freshly_created:
            return concrete, (), ()
        actions = tuple(action.with_index(None) for action in data_set.actions)
        return concrete, actions, tuple(range(len(actions)))

    selected: list[BulkAction] = []
    positions: list[int] = []
    for position, action in enumerate(data_set.actions):
        if action.index is None:
            continue
        concrete = resolve_index_name(action.index, now)
        if concrete in freshly_created:
            selected.append(action.with_index(concrete))
            positions.append(position)
    return None, tuple(selected), tuple(positions)
