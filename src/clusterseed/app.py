"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from clusterseed.adapters.elasticsearch import ElasticsearchProbe
from clusterseed.adapters.filesystem import scan_model_root
from clusterseed.config import get_elasticsearch_config
from clusterseed.config.provisioning import DEFAULT_MODEL_ROOT, DEFAULT_WORKERS
from clusterseed.domain.errors import ProvisioningFailedError
from clusterseed.domain.reconciliation import ApplyContext, ReconciliationEngine

if TYPE_CHECKING:
    import threading

    from clusterseed.config import ElasticsearchConfig
    from clusterseed.domain.artifacts import Manifest
    from clusterseed.domain.ports.cluster import ClusterProbe
    from clusterseed.domain.reconciliation import ApplyReport


log = getLogger(__name__)


def provision(
    model_root: Path | str = DEFAULT_MODEL_ROOT,
    *,
    force: bool = False,
    merge_mapping: bool = True,
    workers: int = DEFAULT_WORKERS,
    bulk_batch_size: int | None = None,
    cancel: threading.Event | None = None,
    config: ElasticsearchConfig | None = None,
    probe: ClusterProbe | None = None,
    strict: bool = False,
) -> ApplyReport:
    """Scan ``model_root`` and apply it to the configured cluster.

    The model root is scanned completely before any cluster call, so a broken
    model never touches the cluster. ``probe`` replaces the HTTP probe built
    from ``config`` (or the environment). With ``strict=True`` isolated index
    or ingest failures raise ``ProvisioningFailedError`` instead of only being
    reported.
    """

    context = ApplyContext(
        force=force,
        merge_mapping=merge_mapping,
        max_workers=workers,
        bulk_batch_size=bulk_batch_size,
        cancel=cancel,
    )
    manifest = scan_model_root(Path(model_root))

    report = asyncio.run(
        provision_async(manifest, context=context, config=config, probe=probe)
    )

    log.info(
        "Finished provisioning: documents=%s, created=%s, errors=%s",
        sum(report.documents_loaded.values()),
        len(report.freshly_created),
        len(report.errors),
    )
    if strict and not report.ok:
        raise ProvisioningFailedError(
            f"{len(report.errors)} artifact(s) failed to apply", report=report
        )
    return report


async def provision_async(
    manifest: Manifest,
    *,
    context: ApplyContext,
    config: ElasticsearchConfig | None = None,
    probe: ClusterProbe | None = None,
) -> ApplyReport:
    """Apply an already scanned manifest inside a running event loop."""

    if probe is not None:
        return await ReconciliationEngine(probe).apply_async(manifest, context)

    effective_config = config or get_elasticsearch_config()
    async with ElasticsearchProbe(config=effective_config) as es_probe:
        info = await es_probe.info()
        log.info(
            "Connected to %s (cluster=%s, version=%s)",
            effective_config.url,
            info.cluster_name,
            info.version.number,
        )
        return await ReconciliationEngine(es_probe).apply_async(manifest, context)
