"""Readers for the file formats found in a model root."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final

import yaml

from clusterseed.domain.artifacts import BulkAction, BulkOp
from clusterseed.domain.errors import ScanError

if TYPE_CHECKING:
    from pathlib import Path

    from clusterseed.domain.artifacts import Document

JSON_SUFFIXES: Final = frozenset({".json"})
YAML_SUFFIXES: Final = frozenset({".yaml", ".yml"})
DOCUMENT_SUFFIXES: Final = JSON_SUFFIXES | YAML_SUFFIXES
BULK_SUFFIXES: Final = frozenset({".ndjson"})


def load_document(path: Path) -> Document:
    """Read a JSON or YAML file holding a single object."""

    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ScanError(f"Cannot read {path}: {exc}", path=path) from exc

    payload: Any
    if suffix in JSON_SUFFIXES:
        try:
            payload = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise ScanError(f"Invalid JSON in {path}: {exc}", path=path) from exc
    elif suffix in YAML_SUFFIXES:
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ScanError(f"Invalid YAML in {path}: {exc}", path=path) from exc
        if payload is None:
            payload = {}
    else:
        raise ScanError(f"Unsupported document format: {path}", path=path)

    if not isinstance(payload, dict):
        raise ScanError(f"Expected an object in {path}, got {type(payload).__name__}", path=path)
    return payload


def read_bulk_file(path: Path, *, require_index: bool) -> tuple[BulkAction, ...]:
    """Parse a bulk-format (NDJSON) file into actions, keeping file order.

    Every action line except ``delete`` is followed by a source line. With
    ``require_index`` each action must name its target ``_index``.
    """

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise ScanError(f"Cannot read {path}: {exc}", path=path) from exc

    numbered = [(number, line) for number, line in enumerate(lines, start=1) if line.strip()]
    actions: list[BulkAction] = []
    cursor = iter(numbered)
    for number, line in cursor:
        header = _parse_line(line, path, number)
        if len(header) != 1:
            raise ScanError(f"{path}:{number}: expected exactly one bulk action", path=path)
        ((op_name, raw_meta),) = header.items()
        try:
            op = BulkOp(op_name)
        except ValueError:
            message = f"{path}:{number}: unknown bulk action {op_name!r}"
            raise ScanError(message, path=path) from None
        if not isinstance(raw_meta, dict):
            raise ScanError(f"{path}:{number}: bulk action metadata must be an object", path=path)

        meta: Document = dict(raw_meta)
        index = meta.pop("_index", None)
        doc_id = meta.pop("_id", None)
        if require_index and index is None:
            raise ScanError(f"{path}:{number}: bulk action has no _index", path=path)

        source: Document | None = None
        if op is not BulkOp.DELETE:
            try:
                source_number, source_line = next(cursor)
            except StopIteration:
                raise ScanError(
                    f"{path}:{number}: bulk action is missing its source line", path=path
                ) from None
            source = _parse_line(source_line, path, source_number)

        actions.append(
            BulkAction(
                op=op,
                index=str(index) if index is not None else None,
                id=str(doc_id) if doc_id is not None else None,
                source=source,
                metadata=meta,
            )
        )
    return tuple(actions)


def _parse_line(line: str, path: Path, number: int) -> Document:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ScanError(f"{path}:{number}: invalid JSON: {exc}", path=path) from exc
    if not isinstance(payload, dict):
        raise ScanError(f"{path}:{number}: expected a JSON object", path=path)
    return payload
