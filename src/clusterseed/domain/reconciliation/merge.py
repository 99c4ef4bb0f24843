"""Merge rules for live indices.

Both functions are pure: they never mutate their inputs and always return a
fresh document.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from clusterseed.domain.artifacts import Document

INDEX_PREFIX = "index."


def resolve_mapping(existing: Mapping[str, Any], declared: Mapping[str, Any]) -> Document:
    """Deep-merge ``declared`` into ``existing``.

    Keys only present in ``existing`` survive untouched, keys in ``declared``
    win, and nested objects are merged key by key. Lists are values, not
    containers: a declared list replaces the existing one.
    """

    merged: Document = deepcopy(dict(existing))
    for key, value in declared.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = resolve_mapping(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def mapping_changed(existing: Mapping[str, Any], merged: Mapping[str, Any]) -> bool:
    """Whether ``merged`` differs from the live mapping ``existing``.

    Scalars are compared as the cluster echoes them, so a declared
    ``"dynamic": false`` matches a live ``"dynamic": "false"``.
    """

    return _mapping_text(existing) != _mapping_text(merged)


def resolve_settings(
    existing: Mapping[str, Any],
    declared: Mapping[str, Any],
    *,
    is_dynamic: Callable[[str], bool],
) -> Document:
    """Compute the settings patch to send to a live index.

    Only declared keys that ``is_dynamic`` accepts and whose value differs from
    the live one are kept. The result is ``{"index": {...}}`` with dotted keys
    below ``index``, or ``{}`` when nothing needs updating.
    """

    current = {
        normalize_setting_key(key): value for key, value in flatten_settings(existing).items()
    }
    patch: Document = {}
    for raw_key, value in flatten_settings(declared).items():
        key = normalize_setting_key(raw_key)
        if not is_dynamic(key):
            continue
        if key in current and _setting_text(current[key]) == _setting_text(value):
            continue
        patch[key.removeprefix(INDEX_PREFIX)] = deepcopy(value)
    return {"index": patch} if patch else {}


def flatten_settings(settings: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested settings into dotted keys."""

    flat: dict[str, Any] = {}
    for key, value in settings.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_settings(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def normalize_setting_key(key: str) -> str:
    return key if key.startswith(INDEX_PREFIX) else f"{INDEX_PREFIX}{key}"


def _mapping_text(value: object) -> object:
    if isinstance(value, Mapping):
        return {key: _mapping_text(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_mapping_text(item) for item in value]
    return _setting_text(value)


def _setting_text(value: object) -> object:
    # The cluster reports every setting value as a string.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return [_setting_text(item) for item in value]
    if value is None:
        return None
    return str(value)
