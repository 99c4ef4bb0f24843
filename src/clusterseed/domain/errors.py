"""Error taxonomy for scanning and reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .artifacts import ArtifactKind
    from .ports.cluster import BulkFailure
    from .reconciliation.report import ApplyReport


class ClusterSeedError(RuntimeError):
    """Base class for provisioning failures."""


class ScanError(ClusterSeedError):
    """Raised when a model root is malformed or ambiguous."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class DateMathError(ScanError):
    """Raised when a date-math index name cannot be resolved."""


class TransportError(ClusterSeedError):
    """Raised when the cluster cannot be reached or a call timed out."""


class ClusterRequestError(ClusterSeedError):
    """Raised when the cluster rejects a request."""

    def __init__(self, message: str, *, status_code: int, reason: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class NotFoundError(ClusterRequestError):
    """Raised when a requested artifact does not exist on the cluster."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message, status_code=404, reason=reason)


class ArtifactApplyError(ClusterSeedError):
    """Failure to apply one named artifact."""

    def __init__(self, message: str, *, kind: ArtifactKind, name: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.name = name


class PrerequisiteApplyError(ArtifactApplyError):
    """A template, policy or pipeline could not be created; the run stops."""


class IndexApplyError(ArtifactApplyError):
    """An index could not be checked or mutated; other indices continue."""


class IngestError(ArtifactApplyError):
    """A data set could not be loaded; other data sets continue."""

    def __init__(
        self,
        message: str,
        *,
        kind: ArtifactKind,
        name: str,
        loaded: int = 0,
        failures: tuple[BulkFailure, ...] = (),
    ) -> None:
        super().__init__(message, kind=kind, name=name)
        self.loaded = loaded
        self.failures = failures


class RunCancelledError(ClusterSeedError):
    """The run was cancelled before it completed."""

    def __init__(self, message: str, *, report: ApplyReport) -> None:
        super().__init__(message)
        self.report = report


class ProvisioningFailedError(ClusterSeedError):
    """The run finished but recorded isolated failures."""

    def __init__(self, message: str, *, report: ApplyReport) -> None:
        super().__init__(message)
        self.report = report
