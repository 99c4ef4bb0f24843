from __future__ import annotations

import pytest

from clusterseed.adapters.elasticsearch import is_dynamic_index_setting


@pytest.mark.parametrize(
    "key",
    [
        "index.number_of_replicas",
        "index.refresh_interval",
        "index.max_result_window",
        "index.blocks.write",
        "index.lifecycle.name",
    ],
)
def test_dynamic_settings(key: str) -> None:
    assert is_dynamic_index_setting(key)


@pytest.mark.parametrize(
    "key",
    [
        "index.number_of_shards",
        "index.codec",
        "index.analysis.analyzer.folded.tokenizer",
        "index.sort.field",
        "index.uuid",
        "index.creation_date",
        "index.version.created",
    ],
)
def test_static_and_private_settings(key: str) -> None:
    assert not is_dynamic_index_setting(key)
