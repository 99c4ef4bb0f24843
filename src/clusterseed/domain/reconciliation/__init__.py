"""Reconciliation core: apply a scanned manifest to a cluster.

Phases, in order:
1) component templates
2) composable and legacy index templates
3) lifecycle policies
4) ingest pipelines
5) indices (create, force-recreate, merge or leave untouched)
6) alias actions
7) data sets, only for indices created in this run
"""

from __future__ import annotations

from .context import ApplyContext, FreshlyCreatedSet, RunState
from .engine import ReconciliationEngine, check_phase_order
from .loader import DataLoader
from .merge import resolve_mapping, resolve_settings
from .phases import ReconciliationPhase, Stage, default_phases
from .report import ApplyAction, ApplyReport, ArtifactOutcome

__all__ = [
    "ApplyAction",
    "ApplyContext",
    "ApplyReport",
    "ArtifactOutcome",
    "DataLoader",
    "FreshlyCreatedSet",
    "ReconciliationEngine",
    "ReconciliationPhase",
    "RunState",
    "Stage",
    "check_phase_order",
    "default_phases",
    "resolve_mapping",
    "resolve_settings",
]
