"""Model root scanner.

Layout::

    <root>/
        _component_templates/<name>.json     component templates
        _index_templates/<name>.json         composable index templates
        _templates/<name>.json               legacy templates
        _index_lifecycles/<name>.json        lifecycle policies
        _pipelines/<name>.json               ingest pipelines
        _aliases.json                        alias actions, applied after indices
        *.ndjson                             global bulk data, routed by _index
        <index>/                             one index, name percent-decoded
            _settings.json                   settings (or a full creation body)
            _mapping.json                    mapping
            _update_settings.json            settings patch for a live index
            *.ndjson                         bulk data for this index
            <doc-id>.json                    one document for this index

YAML (``.yaml``/``.yml``) is accepted wherever JSON is. Hidden entries are
ignored. Anything else makes the scan fail before the cluster is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final
from urllib.parse import unquote

from pydantic import ValidationError

from clusterseed.domain.artifacts import (
    Artifact,
    ArtifactKind,
    BulkAction,
    BulkOp,
    DataSet,
    IndexDefinition,
    Manifest,
)
from clusterseed.domain.datemath import is_date_math, resolve_index_name
from clusterseed.domain.errors import DateMathError, ScanError

from .documents import BULK_SUFFIXES, DOCUMENT_SUFFIXES, load_document, read_bulk_file
from .schema import AliasActionsDocument

if TYPE_CHECKING:
    from collections.abc import Iterator

    from clusterseed.domain.artifacts import Document

log = getLogger(__name__)

NAMED_DOCUMENT_DIRECTORIES: Final[dict[str, ArtifactKind]] = {
    "_component_templates": ArtifactKind.COMPONENT_TEMPLATE,
    "_index_templates": ArtifactKind.INDEX_TEMPLATE,
    "_templates": ArtifactKind.LEGACY_TEMPLATE,
    "_index_lifecycles": ArtifactKind.LIFECYCLE_POLICY,
    "_pipelines": ArtifactKind.INGEST_PIPELINE,
}
SETTINGS_STEM: Final = "_settings"
MAPPING_STEM: Final = "_mapping"
UPDATE_SETTINGS_STEM: Final = "_update_settings"
ALIASES_STEM: Final = "_aliases"
ALIASES_NAME: Final = "_aliases"
_CREATION_BODY_KEYS: Final = frozenset({"settings", "mappings", "aliases"})


@dataclass(slots=True)
class _NameRegistry:
    """Fail fast when two files declare the same name within a kind."""

    seen: dict[tuple[ArtifactKind, str], Path] = field(
        default_factory=dict[tuple[ArtifactKind, str], Path]
    )

    def claim(self, kind: ArtifactKind, name: str, source: Path) -> None:
        previous = self.seen.get((kind, name))
        if previous is not None:
            raise ScanError(
                f"Duplicate {kind} {name!r}: declared by {previous} and {source}",
                path=source,
            )
        self.seen[(kind, name)] = source


@dataclass(slots=True)
class _IndexFiles:
    settings: Document | None = None
    mapping: Document | None = None
    aliases: Document | None = None
    update_settings: Document | None = None
    documents: list[BulkAction] = field(default_factory=list[BulkAction])
    bulk_sets: list[DataSet] = field(default_factory=list[DataSet])


@dataclass(slots=True)
class ModelScanner:
    """Turn a model root into a ``Manifest``. Read-only."""

    root: Path

    def scan(self) -> Manifest:
        root = self.root
        if not root.is_dir():
            raise ScanError(f"Model root is not a directory: {root}", path=root)

        log.info("Scanning model root %s", root)
        registry = _NameRegistry()
        named: dict[ArtifactKind, list[Artifact]] = {
            kind: [] for kind in NAMED_DOCUMENT_DIRECTORIES.values()
        }
        indices: list[IndexDefinition] = []
        data_sets: list[DataSet] = []
        aliases: Artifact | None = None

        for entry in _visible_entries(root):
            if entry.is_dir():
                kind = NAMED_DOCUMENT_DIRECTORIES.get(entry.name)
                if kind is not None:
                    named[kind].extend(_scan_named_documents(entry, kind, registry))
                elif entry.name.startswith("_"):
                    raise ScanError(f"Unknown reserved directory: {entry}", path=entry)
                else:
                    definition, index_data = _scan_index_directory(entry, registry)
                    indices.append(definition)
                    data_sets.extend(index_data)
            elif entry.stem == ALIASES_STEM and entry.suffix.lower() in DOCUMENT_SUFFIXES:
                registry.claim(ArtifactKind.ALIASES, ALIASES_NAME, entry)
                aliases = Artifact(
                    kind=ArtifactKind.ALIASES,
                    name=ALIASES_NAME,
                    body=_validate_aliases(entry),
                    source=entry,
                )
            elif entry.suffix.lower() in BULK_SUFFIXES and not entry.name.startswith("_"):
                registry.claim(ArtifactKind.DATA_SET, entry.name, entry)
                data_sets.append(
                    DataSet(
                        name=entry.name,
                        target=None,
                        actions=read_bulk_file(entry, require_index=True),
                        source=entry,
                    )
                )
            else:
                raise ScanError(f"Cannot classify model root entry: {entry}", path=entry)

        indices.extend(_implicit_indices(indices, data_sets))

        manifest = Manifest(
            root=root,
            component_templates=tuple(named[ArtifactKind.COMPONENT_TEMPLATE]),
            index_templates=tuple(named[ArtifactKind.INDEX_TEMPLATE]),
            legacy_templates=tuple(named[ArtifactKind.LEGACY_TEMPLATE]),
            lifecycle_policies=tuple(named[ArtifactKind.LIFECYCLE_POLICY]),
            ingest_pipelines=tuple(named[ArtifactKind.INGEST_PIPELINE]),
            indices=tuple(indices),
            aliases=aliases,
            data_sets=tuple(data_sets),
        )
        log.info(
            "Found %s templates, %s policies, %s pipelines, %s indices, %s data sets",
            len(manifest.component_templates)
            + len(manifest.index_templates)
            + len(manifest.legacy_templates),
            len(manifest.lifecycle_policies),
            len(manifest.ingest_pipelines),
            len(manifest.indices),
            len(manifest.data_sets),
        )
        return manifest


def scan_model_root(root: Path | str) -> Manifest:
    return ModelScanner(Path(root)).scan()


def _visible_entries(directory: Path) -> Iterator[Path]:
    for entry in sorted(directory.iterdir(), key=lambda path: path.name):
        if not entry.name.startswith("."):
            yield entry


def _scan_named_documents(
    directory: Path,
    kind: ArtifactKind,
    registry: _NameRegistry,
) -> list[Artifact]:
    artifacts: list[Artifact] = []
    for entry in _visible_entries(directory):
        if not entry.is_file() or entry.suffix.lower() not in DOCUMENT_SUFFIXES:
            raise ScanError(f"Cannot classify {kind} entry: {entry}", path=entry)
        registry.claim(kind, entry.stem, entry)
        artifacts.append(
            Artifact(kind=kind, name=entry.stem, body=load_document(entry), source=entry)
        )
    return artifacts


def _scan_index_directory(
    directory: Path,
    registry: _NameRegistry,
) -> tuple[IndexDefinition, list[DataSet]]:
    # Percent-decoded so date math such as <logs-{now%2Fd}> can name a directory.
    name = unquote(directory.name)
    registry.claim(ArtifactKind.INDEX, name, directory)
    _check_index_name(name, directory)

    files = _IndexFiles()
    seen_stems: dict[str, Path] = {}
    for entry in _visible_entries(directory):
        if not entry.is_file():
            raise ScanError(f"Unexpected directory inside index {name}: {entry}", path=entry)
        suffix = entry.suffix.lower()
        if suffix in BULK_SUFFIXES:
            data_set_name = f"{name}/{entry.name}"
            registry.claim(ArtifactKind.DATA_SET, data_set_name, entry)
            actions = read_bulk_file(entry, require_index=False)
            _check_bulk_targets(actions, name, entry)
            files.bulk_sets.append(
                DataSet(name=data_set_name, target=name, actions=actions, source=entry)
            )
            continue
        if suffix not in DOCUMENT_SUFFIXES:
            raise ScanError(f"Cannot classify file inside index {name}: {entry}", path=entry)

        stem = entry.stem
        if stem in seen_stems:
            raise ScanError(
                f"Duplicate entry {stem!r} in index {name}: {seen_stems[stem]} and {entry}",
                path=entry,
            )
        seen_stems[stem] = entry
        _classify_index_file(files, entry, name)

    has_definition = any(
        value is not None
        for value in (files.settings, files.mapping, files.aliases, files.update_settings)
    )
    if not has_definition and not files.documents and not files.bulk_sets:
        raise ScanError(f"Cannot classify empty index directory: {directory}", path=directory)

    data_sets = list(files.bulk_sets)
    if files.documents:
        documents_name = f"{name}/documents"
        registry.claim(ArtifactKind.DATA_SET, documents_name, directory)
        data_sets.insert(
            0,
            DataSet(
                name=documents_name,
                target=name,
                actions=tuple(files.documents),
                source=directory,
            ),
        )

    definition = IndexDefinition(
        name=name,
        settings=files.settings or {},
        mapping=files.mapping or {},
        aliases=files.aliases or {},
        update_settings=files.update_settings,
        implicit=not has_definition,
        source=directory,
    )
    return definition, data_sets


def _classify_index_file(files: _IndexFiles, entry: Path, name: str) -> None:
    stem = entry.stem
    if stem == SETTINGS_STEM:
        document = load_document(entry)
        if _CREATION_BODY_KEYS & document.keys():
            unknown = document.keys() - _CREATION_BODY_KEYS
            if unknown:
                raise ScanError(
                    f"Unexpected keys {sorted(unknown)} in index creation body {entry}",
                    path=entry,
                )
            files.settings = document.get("settings") or {}
            if "mappings" in document:
                _set_mapping(files, document["mappings"] or {}, entry)
            files.aliases = document.get("aliases") or None
        else:
            files.settings = document
    elif stem == MAPPING_STEM:
        _set_mapping(files, load_document(entry), entry)
    elif stem == UPDATE_SETTINGS_STEM:
        files.update_settings = load_document(entry)
    elif stem.startswith("_"):
        raise ScanError(f"Unknown reserved file in index {name}: {entry}", path=entry)
    else:
        files.documents.append(
            BulkAction(op=BulkOp.INDEX, id=stem, source=load_document(entry))
        )


def _set_mapping(files: _IndexFiles, mapping: Document, entry: Path) -> None:
    if files.mapping is not None:
        raise ScanError(f"Mapping declared twice for index at {entry.parent}", path=entry)
    files.mapping = mapping


def _check_index_name(name: str, directory: Path) -> None:
    if not is_date_math(name):
        return
    try:
        resolve_index_name(name, datetime.now(UTC))
    except DateMathError as exc:
        raise ScanError(str(exc), path=directory) from exc


def _check_bulk_targets(actions: tuple[BulkAction, ...], name: str, entry: Path) -> None:
    for action in actions:
        if action.index is not None and action.index != name:
            raise ScanError(
                f"Bulk file {entry} inside index {name} targets another index: {action.index}",
                path=entry,
            )


def _validate_aliases(entry: Path) -> Document:
    try:
        document = AliasActionsDocument.model_validate(load_document(entry))
    except ValidationError as exc:
        raise ScanError(f"Invalid alias actions in {entry}: {exc}", path=entry) from exc
    return document.model_dump()


def _implicit_indices(
    indices: list[IndexDefinition],
    data_sets: list[DataSet],
) -> list[IndexDefinition]:
    """Synthesise definitions for global data targets without a directory."""

    declared = {definition.name for definition in indices}
    implicit: dict[str, IndexDefinition] = {}
    for data_set in data_sets:
        if not data_set.is_global:
            continue
        for target in data_set.targets():
            if target in declared or target in implicit:
                continue
            implicit[target] = IndexDefinition(name=target, implicit=True, source=data_set.source)
    return list(implicit.values())
