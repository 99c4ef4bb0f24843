"""Per-run report types shared by the engine phases and the data loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clusterseed.domain.artifacts import ArtifactKind
    from clusterseed.domain.errors import ArtifactApplyError


class ApplyAction(StrEnum):
    """What happened to one artifact during a run."""

    UPSERTED = "upserted"
    CREATED = "created"
    RECREATED = "recreated"
    MERGED = "merged"
    UNCHANGED = "unchanged"
    UNTOUCHED = "untouched"
    LOADED = "loaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True, kw_only=True)
class ArtifactOutcome:
    kind: ArtifactKind
    name: str
    action: ApplyAction
    detail: str | None = None


@dataclass(slots=True)
class ApplyReport:
    """Aggregate outcome of one run.

    Isolated failures (``IndexApplyError``, ``IngestError``) are collected in
    ``errors`` with a matching ``FAILED`` outcome; the run carries on past them.
    """

    outcomes: list[ArtifactOutcome] = field(default_factory=list["ArtifactOutcome"])
    errors: list[ArtifactApplyError] = field(default_factory=list["ArtifactApplyError"])
    documents_loaded: dict[str, int] = field(default_factory=dict[str, int])
    freshly_created: frozenset[str] = frozenset()
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def record(
        self,
        *,
        kind: ArtifactKind,
        name: str,
        action: ApplyAction,
        detail: str | None = None,
    ) -> ArtifactOutcome:
        outcome = ArtifactOutcome(kind=kind, name=name, action=action, detail=detail)
        self.outcomes.append(outcome)
        return outcome

    def record_error(self, error: ArtifactApplyError) -> None:
        self.errors.append(error)
        self.record(kind=error.kind, name=error.name, action=ApplyAction.FAILED, detail=str(error))

    def add_documents(self, name: str, count: int) -> None:
        self.documents_loaded[name] = self.documents_loaded.get(name, 0) + count

    def absorb(self, other: ApplyReport) -> None:
        """Fold a sub-report (for example the data loader's) into this one."""

        self.outcomes.extend(other.outcomes)
        self.errors.extend(other.errors)
        for name, count in other.documents_loaded.items():
            self.add_documents(name, count)
        self.cancelled = self.cancelled or other.cancelled

    def outcome_for(self, kind: ArtifactKind, name: str) -> ArtifactOutcome | None:
        for outcome in reversed(self.outcomes):
            if outcome.kind == kind and outcome.name == name:
                return outcome
        return None

    def actions(self, kind: ArtifactKind) -> dict[str, ApplyAction]:
        return {outcome.name: outcome.action for outcome in self.outcomes if outcome.kind == kind}

    def summary(self) -> dict[ApplyAction, int]:
        counts: dict[ApplyAction, int] = {}
        for outcome in self.outcomes:
            counts[outcome.action] = counts.get(outcome.action, 0) + 1
        return counts
