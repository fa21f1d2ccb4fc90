"""Document models for collector bookkeeping and inventory."""

import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

# Collection names
COLLECTORS = "collectors"
COLLECTOR_ITEMS = "collector_items"
CONTAINERS = "containers"
CONTAINER_STATS = "container_stats"
NETWORKS = "networks"
VOLUMES = "volumes"
IMAGES = "images"

INVENTORY_COLLECTIONS = [CONTAINERS, CONTAINER_STATS, NETWORKS, VOLUMES, IMAGES]

# Natural key of each inventory collection, as assigned by the remote runtime
NATURAL_KEYS = {
    CONTAINERS: "Id",
    CONTAINER_STATS: "id",
    NETWORKS: "Id",
    VOLUMES: "Name",
    IMAGES: "Id",
}

# Required connection options on a collector item
OPTION_HOST = "host"
OPTION_API_VERSION = "apiVersion"
OPTION_PORT = "port"
REQUIRED_OPTIONS = (OPTION_HOST, OPTION_API_VERSION)


def new_id() -> str:
    """Generate an opaque document id."""
    return uuid.uuid4().hex


@dataclass
class CollectionError:
    """A single logged collection failure."""
    errorCode: str
    errorMessages: str
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    @classmethod
    def from_document(cls, doc: dict) -> "CollectionError":
        return cls(
            errorCode=doc.get("errorCode", ""),
            errorMessages=doc.get("errorMessages", ""),
            timestamp=doc.get("timestamp", 0),
        )


@dataclass
class CollectorRecord:
    """Identity record the collector registers itself under."""
    name: str
    collectorType: str = "Docker"
    id: str = field(default_factory=new_id)
    enabled: bool = True
    online: bool = True
    errors: list[CollectionError] = field(default_factory=list)
    lastExecuted: int = 0
    lastExecutedTime: Optional[str] = None
    lastExecutedSeconds: float = 0.0
    lastExecutionRecordCount: int = 0

    def to_document(self) -> dict:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: dict) -> "CollectorRecord":
        return cls(
            name=doc["name"],
            collectorType=doc.get("collectorType", "Docker"),
            id=doc["id"],
            enabled=doc.get("enabled", True),
            online=doc.get("online", True),
            errors=[CollectionError.from_document(e) for e in doc.get("errors") or []],
            lastExecuted=doc.get("lastExecuted", 0),
            lastExecutedTime=doc.get("lastExecutedTime"),
            lastExecutedSeconds=doc.get("lastExecutedSeconds", 0.0),
            lastExecutionRecordCount=doc.get("lastExecutionRecordCount", 0),
        )

    def apply_run(
        self,
        duration: float,
        record_count: int,
        errors: list[CollectionError],
        max_errors: int,
        now: Optional[float] = None,
    ):
        """Fold one completed cycle into the run summary."""
        now = time.time() if now is None else now
        self.lastExecuted = int(now)
        self.lastExecutedTime = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
        self.lastExecutedSeconds = duration
        self.lastExecutionRecordCount += record_count
        self.errors.extend(errors)
        if max_errors == 0:
            self.errors = []
        elif len(self.errors) > max_errors:
            self.errors = self.errors[-max_errors:]


@dataclass
class CollectorItem:
    """A configured collection target (one remote runtime endpoint)."""
    id: str = field(default_factory=new_id)
    description: str = ""
    niceName: str = ""
    environment: str = ""
    enabled: bool = True
    errors: list[CollectionError] = field(default_factory=list)
    pushed: bool = False
    collectorId: Optional[str] = None
    lastUpdated: int = 0
    # Expecting: {"host": "tcp://localhost:2375", "apiVersion": "1.41", "port": "2375"}
    options: dict[str, str] = field(default_factory=dict)
    refreshLink: str = ""
    altIdentifier: str = ""

    @property
    def host(self) -> Optional[str]:
        return self.options.get(OPTION_HOST) or None

    @property
    def api_version(self) -> Optional[str]:
        return self.options.get(OPTION_API_VERSION) or None

    @property
    def display_name(self) -> str:
        return self.niceName or self.description or self.id

    def missing_options(self) -> list[str]:
        """Required connection options that are absent or empty."""
        return [key for key in REQUIRED_OPTIONS if not self.options.get(key)]

    def to_document(self) -> dict:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: dict) -> "CollectorItem":
        return cls(
            id=doc["id"],
            description=doc.get("description", ""),
            niceName=doc.get("niceName", ""),
            environment=doc.get("environment", ""),
            enabled=doc.get("enabled", True),
            errors=[CollectionError.from_document(e) for e in doc.get("errors") or []],
            pushed=doc.get("pushed", False),
            collectorId=doc.get("collectorId"),
            lastUpdated=doc.get("lastUpdated", 0),
            options={str(k): str(v) for k, v in (doc.get("options") or {}).items()},
            refreshLink=doc.get("refreshLink", ""),
            altIdentifier=doc.get("altIdentifier", ""),
        )


def stamp_document(doc: dict, target_id: str, timestamp: Optional[int] = None) -> dict:
    """Attach the owning target and collection time to a runtime document."""
    stamped = dict(doc)
    stamped["collectorItemId"] = target_id
    stamped["timestamp"] = int(time.time() * 1000) if timestamp is None else timestamp
    return stamped
