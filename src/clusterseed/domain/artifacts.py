"""Typed artifacts discovered in a model root.

A model root declares cluster configuration as a set of named documents. The
scanner turns them into the immutable types below and groups them into a
``Manifest`` in the order the reconciliation engine applies them.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from pathlib import Path

type Document = dict[str, Any]


class ArtifactKind(StrEnum):
    """Kinds of declared configuration, one namespace of names per kind."""

    COMPONENT_TEMPLATE = "component_template"
    INDEX_TEMPLATE = "index_template"
    LEGACY_TEMPLATE = "legacy_template"
    LIFECYCLE_POLICY = "lifecycle_policy"
    INGEST_PIPELINE = "ingest_pipeline"
    INDEX = "index"
    ALIASES = "aliases"
    DATA_SET = "data_set"


class BulkOp(StrEnum):
    """Bulk API operations accepted in data files."""

    INDEX = "index"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True, kw_only=True)
class Artifact:
    """A named, wholesale-replaceable configuration document."""

    kind: ArtifactKind
    name: str
    body: Document = field(default_factory=dict)
    source: Path | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class IndexDefinition:
    """Declared shape of one index.

    ``name`` may be a date-math expression such as ``<logs-{now/d}>``; it is
    resolved to a concrete name when the index is applied. ``implicit`` marks
    definitions synthesised for data that has no settings or mapping files.
    """

    kind: ClassVar[ArtifactKind] = ArtifactKind.INDEX

    name: str
    settings: Document = field(default_factory=dict)
    mapping: Document = field(default_factory=dict)
    aliases: Document = field(default_factory=dict)
    update_settings: Document | None = None
    implicit: bool = False
    source: Path | None = None

    def creation_body(self) -> Document:
        body: Document = {}
        if self.settings:
            body["settings"] = deepcopy(self.settings)
        if self.mapping:
            body["mappings"] = deepcopy(self.mapping)
        if self.aliases:
            body["aliases"] = deepcopy(self.aliases)
        return body

    def declared_settings(self) -> Document:
        """Settings to reconcile against a live index."""

        if self.update_settings is not None:
            return self.update_settings
        return self.settings


@dataclass(frozen=True, slots=True, kw_only=True)
class BulkAction:
    """One entry of a bulk request: an action line plus an optional source."""

    op: BulkOp = BulkOp.INDEX
    index: str | None = None
    id: str | None = None
    source: Document | None = None
    metadata: Document = field(default_factory=dict)

    def with_index(self, index: str | None) -> BulkAction:
        return replace(self, index=index)

    def action_line(self) -> Document:
        meta: Document = dict(self.metadata)
        if self.index is not None:
            meta["_index"] = self.index
        if self.id is not None:
            meta["_id"] = self.id
        return {str(self.op): meta}


@dataclass(frozen=True, slots=True, kw_only=True)
class DataSet:
    """Ordered documents destined for one index, or routed per entry.

    A ``target`` of ``None`` marks a global data set whose actions each carry
    their own ``_index``.
    """

    kind: ClassVar[ArtifactKind] = ArtifactKind.DATA_SET

    name: str
    target: str | None
    actions: tuple[BulkAction, ...] = ()
    source: Path | None = None

    @property
    def is_global(self) -> bool:
        return self.target is None

    def targets(self) -> tuple[str, ...]:
        """Declared index names this data set writes to, in first-seen order."""

        if self.target is not None:
            return (self.target,)
        seen: dict[str, None] = {}
        for action in self.actions:
            if action.index is not None:
                seen.setdefault(action.index, None)
        return tuple(seen)


@dataclass(frozen=True, slots=True, kw_only=True)
class Manifest:
    """Everything declared under one model root, grouped by kind."""

    root: Path | None = None
    component_templates: tuple[Artifact, ...] = ()
    index_templates: tuple[Artifact, ...] = ()
    legacy_templates: tuple[Artifact, ...] = ()
    lifecycle_policies: tuple[Artifact, ...] = ()
    ingest_pipelines: tuple[Artifact, ...] = ()
    indices: tuple[IndexDefinition, ...] = ()
    aliases: Artifact | None = None
    data_sets: tuple[DataSet, ...] = ()

    def artifacts(self, kind: ArtifactKind) -> tuple[Artifact, ...]:
        """Return the wholesale-replaceable artifacts of ``kind``."""

        match kind:
            case ArtifactKind.COMPONENT_TEMPLATE:
                return self.component_templates
            case ArtifactKind.INDEX_TEMPLATE:
                return self.index_templates
            case ArtifactKind.LEGACY_TEMPLATE:
                return self.legacy_templates
            case ArtifactKind.LIFECYCLE_POLICY:
                return self.lifecycle_policies
            case ArtifactKind.INGEST_PIPELINE:
                return self.ingest_pipelines
            case ArtifactKind.ALIASES:
                return (self.aliases,) if self.aliases is not None else ()
            case _:
                raise ValueError(f"{kind} artifacts are not stored as plain documents")

    def index(self, name: str) -> IndexDefinition | None:
        for definition in self.indices:
            if definition.name == name:
                return definition
        return None
