"""Outcome values for collection cycles.

Failures below the cycle level are recorded here rather than raised, so a
flaky target or sub-resource never unwinds past its own scope.
"""

from dataclasses import dataclass, field
from typing import Optional

from .models import CollectionError

# Resource kinds
KIND_CONTAINERS = "containers"
KIND_STATS = "stats"
KIND_NETWORKS = "networks"
KIND_VOLUMES = "volumes"
KIND_IMAGES = "images"

# Target-level failure codes
ERROR_CONFIG = "config"
ERROR_CONNECT = "connect"
ERROR_PING = "ping"
ERROR_UNEXPECTED = "unexpected"
ERROR_STAMP = "stamp"


@dataclass
class ResourceResult:
    """Outcome of collecting one sub-resource of a target."""
    kind: str
    count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class TargetResult:
    """Outcome of one collection pass over a target."""
    target_id: str
    name: str = ""
    skipped: bool = False
    error_code: Optional[str] = None
    error: Optional[str] = None
    api_version: Optional[str] = None
    os_type: Optional[str] = None
    resources: list[ResourceResult] = field(default_factory=list)
    stamp_error: Optional[str] = None

    def resource(self, kind: str) -> ResourceResult:
        """Get the result for a resource kind, creating it on first use."""
        for resource in self.resources:
            if resource.kind == kind:
                return resource
        resource = ResourceResult(kind=kind)
        self.resources.append(resource)
        return resource

    def fail(self, code: str, message: str):
        self.error_code = code
        self.error = message

    @property
    def records(self) -> int:
        return sum(r.count for r in self.resources)

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.resources)

    @property
    def errors(self) -> list[CollectionError]:
        """All failures of this pass as loggable collection errors."""
        errors = []
        if self.error:
            errors.append(CollectionError(errorCode=self.error_code or ERROR_UNEXPECTED, errorMessages=self.error))
        for resource in self.resources:
            for message in resource.errors:
                errors.append(CollectionError(errorCode=resource.kind, errorMessages=message))
        return errors


@dataclass
class CycleReport:
    """Outcome of one complete collection cycle."""
    started_at: float
    collector_id: Optional[str] = None
    duration: float = 0.0
    targets: list[TargetResult] = field(default_factory=list)
    summary_error: Optional[str] = None

    @property
    def records(self) -> int:
        return sum(t.records for t in self.targets)

    @property
    def errors(self) -> list[CollectionError]:
        errors = []
        for target in self.targets:
            errors.extend(target.errors)
            if target.stamp_error:
                errors.append(CollectionError(errorCode=ERROR_STAMP, errorMessages=target.stamp_error))
        return errors

    @property
    def attempted(self) -> list[TargetResult]:
        return [t for t in self.targets if not t.skipped]

    @property
    def failed(self) -> list[TargetResult]:
        return [t for t in self.attempted if not t.success]
