"""Remote container runtime access."""

from .base import ClientFactory, RemoteClient, StatsStream
from .client import DockerEngineClient, connect, parse_host

__all__ = [
    "ClientFactory",
    "RemoteClient",
    "StatsStream",
    "DockerEngineClient",
    "connect",
    "parse_host",
]
