"""Classification of index settings that can change on a live index.

Static settings only take effect at index creation (or on a closed index);
private settings are managed by the cluster itself. Everything else is
treated as dynamic.
"""

from __future__ import annotations

from typing import Final

STATIC_INDEX_SETTINGS: Final = frozenset(
    {
        "index.number_of_shards",
        "index.number_of_routing_shards",
        "index.routing_partition_size",
        "index.codec",
        "index.mode",
        "index.soft_deletes.enabled",
        "index.load_fixed_bitset_filters_eagerly",
        "index.shard.check_on_startup",
        "index.routing_path",
    }
)
STATIC_INDEX_SETTING_PREFIXES: Final = (
    "index.analysis.",
    "index.sort.",
    "index.similarity.",
    "index.store.",
    "index.time_series.",
)
PRIVATE_INDEX_SETTINGS: Final = frozenset(
    {
        "index.uuid",
        "index.creation_date",
        "index.creation_date_string",
        "index.provided_name",
        "index.history_uuid",
    }
)
PRIVATE_INDEX_SETTING_PREFIXES: Final = ("index.version.", "index.resize.")


def is_dynamic_index_setting(key: str) -> bool:
    """Whether ``key`` (``index.``-prefixed) may be sent to ``PUT /<index>/_settings``."""

    if key in STATIC_INDEX_SETTINGS or key in PRIVATE_INDEX_SETTINGS:
        return False
    return not key.startswith(STATIC_INDEX_SETTING_PREFIXES + PRIVATE_INDEX_SETTING_PREFIXES)
