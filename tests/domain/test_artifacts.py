from __future__ import annotations

import pytest

from clusterseed.domain.artifacts import (
    Artifact,
    ArtifactKind,
    BulkAction,
    BulkOp,
    DataSet,
    IndexDefinition,
    Manifest,
)
from clusterseed.domain.errors import IngestError
from clusterseed.domain.reconciliation import ApplyAction, ApplyReport


def test_index_definition_creation_body_omits_empty_sections() -> None:
    definition = IndexDefinition(name="twitter", mapping={"properties": {}})

    assert definition.creation_body() == {"mappings": {"properties": {}}}
    assert IndexDefinition(name="empty").creation_body() == {}


def test_declared_settings_prefers_update_settings() -> None:
    definition = IndexDefinition(
        name="twitter",
        settings={"number_of_shards": 1},
        update_settings={"refresh_interval": "5s"},
    )

    assert definition.declared_settings() == {"refresh_interval": "5s"}


def test_global_data_set_targets_in_first_seen_order() -> None:
    data_set = DataSet(
        name="seed.ndjson",
        target=None,
        actions=(
            BulkAction(index="b", id="1", source={}),
            BulkAction(index="a", id="2", source={}),
            BulkAction(op=BulkOp.DELETE, index="b", id="3"),
        ),
    )

    assert data_set.is_global
    assert data_set.targets() == ("b", "a")


def test_manifest_artifacts_by_kind() -> None:
    pipeline = Artifact(kind=ArtifactKind.INGEST_PIPELINE, name="strip")
    manifest = Manifest(ingest_pipelines=(pipeline,))

    assert manifest.artifacts(ArtifactKind.INGEST_PIPELINE) == (pipeline,)
    assert manifest.artifacts(ArtifactKind.ALIASES) == ()
    with pytest.raises(ValueError, match="not stored as plain documents"):
        manifest.artifacts(ArtifactKind.INDEX)


def test_report_summary_and_absorb() -> None:
    report = ApplyReport()
    report.record(kind=ArtifactKind.INDEX, name="twitter", action=ApplyAction.CREATED)
    loaded = ApplyReport()
    loaded.add_documents("twitter/tweets.ndjson", 10)
    loaded.record_error(
        IngestError("rejected", kind=ArtifactKind.DATA_SET, name="person/documents", loaded=2)
    )

    report.absorb(loaded)

    assert not report.ok
    assert report.documents_loaded == {"twitter/tweets.ndjson": 10}
    assert report.summary() == {ApplyAction.CREATED: 1, ApplyAction.FAILED: 1}
