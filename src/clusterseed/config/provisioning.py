"""Provisioning defaults, overridable from the environment."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_bool, optional_env_int, optional_env_str

DEFAULT_MODEL_ROOT: Final[str] = "elasticsearch"
DEFAULT_WORKERS: Final[int] = 4


@dataclass(frozen=True, slots=True)
class ProvisionConfig:
    model_root: Path = Path(DEFAULT_MODEL_ROOT)
    force: bool = False
    merge_mapping: bool = True
    workers: int = DEFAULT_WORKERS
    bulk_batch_size: int | None = None


def get_provision_config() -> ProvisionConfig:
    model_root = optional_env_str("CLUSTERSEED_MODEL_ROOT") or DEFAULT_MODEL_ROOT
    return ProvisionConfig(
        model_root=Path(model_root).expanduser(),
        force=optional_env_bool("CLUSTERSEED_FORCE", False),
        merge_mapping=optional_env_bool("CLUSTERSEED_MERGE_MAPPING", True),
        workers=optional_env_int("CLUSTERSEED_WORKERS", DEFAULT_WORKERS, minimum=1)
        or DEFAULT_WORKERS,
        bulk_batch_size=optional_env_int("CLUSTERSEED_BULK_BATCH_SIZE", None, minimum=1),
    )
