"""Fixed sequence of reconciliation phases.

Each phase handles one step of the dependency order: templates before the
index templates composed from them, configuration before indices, indices
before the data loaded into them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from clusterseed.domain.artifacts import ArtifactKind
from clusterseed.domain.errors import ClusterSeedError, IndexApplyError, PrerequisiteApplyError

from .indices import IndexReconciler
from .loader import DataLoader
from .report import ApplyAction

if TYPE_CHECKING:
    from clusterseed.domain.artifacts import Manifest

    from .context import RunState

log = getLogger(__name__)


class Stage(IntEnum):
    """Position of a phase in the dependency order."""

    COMPONENT_TEMPLATES = 1
    INDEX_TEMPLATES = 2
    LIFECYCLE_POLICIES = 3
    INGEST_PIPELINES = 4
    INDICES = 5
    ALIASES = 6
    DATA = 7


class ReconciliationPhase(Protocol):
    """Contract implemented by each phase."""

    name: str
    stage: Stage

    async def run(self, manifest: Manifest, *, state: RunState) -> None: ...


@dataclass(slots=True, frozen=True)
class UpsertPhase:
    """Create-or-replace named documents; any failure aborts the run."""

    name: str
    stage: Stage
    kinds: tuple[ArtifactKind, ...]

    async def run(self, manifest: Manifest, *, state: RunState) -> None:
        for kind in self.kinds:
            for artifact in manifest.artifacts(kind):
                try:
                    await state.probe.put(kind, artifact.name, artifact.body)
                except ClusterSeedError as exc:
                    log.error("Failed to apply %s %s: %s", kind, artifact.name, exc)
                    raise PrerequisiteApplyError(
                        f"Failed to apply {kind} {artifact.name}: {exc}",
                        kind=kind,
                        name=artifact.name,
                    ) from exc
                log.info("%s %s applied", kind, artifact.name)
                state.report.record(kind=kind, name=artifact.name, action=ApplyAction.UPSERTED)


@dataclass(slots=True, frozen=True)
class IndexPhase:
    """Create, recreate or merge indices, then seal the freshly created set."""

    name: str = "indices"
    stage: Stage = Stage.INDICES

    async def run(self, manifest: Manifest, *, state: RunState) -> None:
        try:
            await IndexReconciler(state).reconcile_all(manifest.indices)
        finally:
            state.report.freshly_created = state.freshly_created.seal()


@dataclass(slots=True, frozen=True)
class AliasPhase:
    """Apply the root alias actions once every index exists."""

    name: str = "aliases"
    stage: Stage = Stage.ALIASES

    async def run(self, manifest: Manifest, *, state: RunState) -> None:
        aliases = manifest.aliases
        if aliases is None:
            return
        try:
            await state.probe.update_partial(ArtifactKind.ALIASES, aliases.name, aliases.body)
        except ClusterSeedError as exc:
            log.error("Failed to apply alias actions: %s", exc)
            error = IndexApplyError(
                f"Failed to apply alias actions: {exc}",
                kind=ArtifactKind.ALIASES,
                name=aliases.name,
            )
            error.__cause__ = exc
            state.report.record_error(error)
            return
        log.info("Alias actions applied")
        state.report.record(
            kind=ArtifactKind.ALIASES, name=aliases.name, action=ApplyAction.UPSERTED
        )


@dataclass(slots=True, frozen=True)
class DataPhase:
    """Hand data sets and the sealed freshly created set to the data loader."""

    name: str = "data"
    stage: Stage = Stage.DATA

    async def run(self, manifest: Manifest, *, state: RunState) -> None:
        if not manifest.data_sets:
            return
        loader = DataLoader(state.probe, state.context)
        loaded = await loader.load_async(
            manifest.data_sets,
            state.freshly_created.seal(),
            now=state.now,
        )
        state.report.absorb(loaded)


def default_phases() -> tuple[ReconciliationPhase, ...]:
    return (
        UpsertPhase(
            name="component templates",
            stage=Stage.COMPONENT_TEMPLATES,
            kinds=(ArtifactKind.COMPONENT_TEMPLATE,),
        ),
        UpsertPhase(
            name="index templates",
            stage=Stage.INDEX_TEMPLATES,
            kinds=(ArtifactKind.INDEX_TEMPLATE, ArtifactKind.LEGACY_TEMPLATE),
        ),
        UpsertPhase(
            name="lifecycle policies",
            stage=Stage.LIFECYCLE_POLICIES,
            kinds=(ArtifactKind.LIFECYCLE_POLICY,),
        ),
        UpsertPhase(
            name="ingest pipelines",
            stage=Stage.INGEST_PIPELINES,
            kinds=(ArtifactKind.INGEST_PIPELINE,),
        ),
        IndexPhase(),
        AliasPhase(),
        DataPhase(),
    )
