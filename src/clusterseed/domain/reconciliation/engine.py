"""Orchestrator for the reconciliation subsystem.

The engine runs a manifest through a fixed, ordered sequence of phases against
one cluster probe. Phases never overlap; parallelism, where allowed, happens
inside a phase.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from clusterseed.domain.errors import RunCancelledError

from .context import ApplyContext, RunState
from .phases import default_phases

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clusterseed.domain.artifacts import Manifest
    from clusterseed.domain.ports.cluster import ClusterProbe

    from .phases import ReconciliationPhase
    from .report import ApplyReport

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationEngine:
    """Apply a manifest to the cluster behind ``probe``."""

    probe: ClusterProbe
    phases: Sequence[ReconciliationPhase] = field(default_factory=default_phases)

    def __post_init__(self) -> None:
        check_phase_order(self.phases)

    def apply(self, manifest: Manifest, context: ApplyContext | None = None) -> ApplyReport:
        """Run all phases for ``manifest`` and return the run report."""

        return asyncio.run(self.apply_async(manifest, context))

    async def apply_async(
        self,
        manifest: Manifest,
        context: ApplyContext | None = None,
    ) -> ApplyReport:
        active_context = context or ApplyContext()
        state = RunState(probe=self.probe, context=active_context, now=active_context.now())
        log.info(
            "Applying model %s: force=%s, merge_mapping=%s",
            manifest.root,
            active_context.force,
            active_context.merge_mapping,
        )

        for phase in self.phases:
            _raise_if_cancelled(state, before=phase.name)
            log.debug("Starting phase: %s", phase.name)
            await phase.run(manifest, state=state)
        _raise_if_cancelled(state, before=None)

        state.report.freshly_created = state.freshly_created.seal()
        log.info(
            "Model applied: %s",
            ", ".join(f"{action}={count}" for action, count in state.report.summary().items())
            or "nothing to do",
        )
        return state.report


def check_phase_order(phases: Sequence[ReconciliationPhase]) -> None:
    """Reject phase sequences that break the dependency order."""

    previous: ReconciliationPhase | None = None
    for phase in phases:
        if previous is not None and phase.stage < previous.stage:
            raise ValueError(
                f"Phase {phase.name!r} ({phase.stage.name}) cannot run after "
                f"{previous.name!r} ({previous.stage.name})"
            )
        previous = phase


def _raise_if_cancelled(state: RunState, *, before: str | None) -> None:
    if not (state.context.cancelled or state.report.cancelled):
        return
    state.report.cancelled = True
    state.report.freshly_created = state.freshly_created.seal()
    where = f"before phase {before!r}" if before else "during the last phase"
    log.warning("Run cancelled %s", where)
    raise RunCancelledError(f"Run cancelled {where}", report=state.report)
