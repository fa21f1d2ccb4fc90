"""
Docker Collector - scheduled inventory and utilization collection.

Polls remote Docker engines for containers, per-container stats, networks,
volumes and images, and stores them in a document store together with
run metadata for dashboards.
"""

from .orchestrator import Collector, RegistrationState
from .report import CycleReport, ResourceResult, TargetResult
from .scheduler import CollectionScheduler
from .store import AsyncDocumentStore, DocumentStore, Sink

__all__ = [
    "Collector",
    "RegistrationState",
    "CycleReport",
    "ResourceResult",
    "TargetResult",
    "CollectionScheduler",
    "AsyncDocumentStore",
    "DocumentStore",
    "Sink",
]
