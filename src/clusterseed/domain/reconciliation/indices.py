"""Per-index check-then-act reconciliation."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from clusterseed.domain.artifacts import ArtifactKind
from clusterseed.domain.datemath import resolve_index_name
from clusterseed.domain.errors import ClusterSeedError, DateMathError, IndexApplyError

from .merge import mapping_changed, resolve_mapping, resolve_settings
from .report import ApplyAction

if TYPE_CHECKING:
    from clusterseed.domain.artifacts import IndexDefinition

    from .context import RunState

log = getLogger(__name__)


@dataclass(slots=True)
class IndexReconciler:
    """Apply index definitions, recording each outcome on the run report.

    Work for distinct indices runs concurrently, bounded by the context's
    ``max_workers``. Definitions that resolve to the same concrete name are
    serialised through a per-name lock.
    """

    state: RunState

    async def reconcile_all(self, definitions: tuple[IndexDefinition, ...]) -> None:
        semaphore = asyncio.Semaphore(self.state.context.max_workers)
        locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def worker(definition: IndexDefinition) -> None:
            async with semaphore:
                if self.state.context.cancelled:
                    return
                await self.reconcile(definition, locks=locks)

        await asyncio.gather(*(worker(definition) for definition in definitions))

    async def reconcile(
        self,
        definition: IndexDefinition,
        *,
        locks: defaultdict[str, asyncio.Lock] | None = None,
    ) -> None:
        report = self.state.report
        try:
            concrete = resolve_index_name(definition.name, self.state.now)
        except DateMathError as exc:
            error = IndexApplyError(str(exc), kind=ArtifactKind.INDEX, name=definition.name)
            error.__cause__ = exc
            report.record_error(error)
            return

        lock = locks[concrete] if locks is not None else asyncio.Lock()
        async with lock:
            try:
                action = await self._apply(definition, concrete)
            except ClusterSeedError as exc:
                log.error("Failed to apply index %s: %s", concrete, exc)
                error = IndexApplyError(
                    f"Failed to apply index {concrete}: {exc}",
                    kind=ArtifactKind.INDEX,
                    name=concrete,
                )
                error.__cause__ = exc
                report.record_error(error)
                return

        report.record(kind=ArtifactKind.INDEX, name=concrete, action=action)

    async def _apply(self, definition: IndexDefinition, concrete: str) -> ApplyAction:
        probe = self.state.probe
        context = self.state.context

        if not await probe.exists(ArtifactKind.INDEX, concrete):
            await self._create(definition, concrete)
            log.info("Index %s created", concrete)
            return ApplyAction.CREATED

        if context.force:
            log.info("Index %s exists and force is set: recreating it", concrete)
            await probe.delete(ArtifactKind.INDEX, concrete)
            await self._create(definition, concrete)
            return ApplyAction.RECREATED

        if not context.merge_mapping:
            log.debug("Index %s exists and merging is disabled: leaving it untouched", concrete)
            return ApplyAction.UNTOUCHED

        return await self._merge(definition, concrete)

    async def _create(self, definition: IndexDefinition, concrete: str) -> None:
        await self.state.probe.put(ArtifactKind.INDEX, concrete, definition.creation_body())
        self.state.freshly_created.add(concrete)

    async def _merge(self, definition: IndexDefinition, concrete: str) -> ApplyAction:
        probe = self.state.probe
        current = await probe.get(ArtifactKind.INDEX, concrete)
        changed = False

        if definition.mapping:
            existing_mapping = current.get("mappings") or {}
            merged = resolve_mapping(existing_mapping, definition.mapping)
            if mapping_changed(existing_mapping, merged):
                await probe.update_partial(ArtifactKind.INDEX, concrete, {"mappings": merged})
                log.info("Index %s: mapping updated", concrete)
                changed = True

        declared = definition.declared_settings()
        if declared:
            patch = resolve_settings(
                current.get("settings") or {},
                declared,
                is_dynamic=probe.is_dynamic_setting,
            )
            if patch:
                await probe.update_partial(ArtifactKind.INDEX, concrete, {"settings": patch})
                log.info("Index %s: settings updated (%s)", concrete, ", ".join(patch["index"]))
                changed = True

        return ApplyAction.MERGED if changed else ApplyAction.UNCHANGED
