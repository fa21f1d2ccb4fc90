"""Remote container runtime contract consumed by the collector."""

from typing import AsyncContextManager, AsyncIterator, Callable, Protocol


class StatsStream(Protocol):
    """A streamed stats payload; must be fully consumed before release."""

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...


class RemoteClient(Protocol):
    """Typed client for one remote container runtime endpoint.

    Clients are async context managers; leaving the context releases the
    underlying connection. Failures raise ``RemoteRuntimeError``.
    """

    async def __aenter__(self) -> "RemoteClient":
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        ...

    async def ping(self) -> tuple[str, str]:
        """Return ``(api_version, os_type)`` reported by the runtime."""
        ...

    async def list_containers(self) -> list[dict]:
        ...

    def stream_stats(self, container_id: str) -> AsyncContextManager[StatsStream]:
        """Open a single-sample stats stream for a container."""
        ...

    async def list_networks(self) -> list[dict]:
        ...

    async def list_volumes(self) -> tuple[list[dict], list]:
        """Return ``(volumes, warnings)``."""
        ...

    async def list_images(self) -> list[dict]:
        ...


# connect(host, api_version) -> RemoteClient
ClientFactory = Callable[[str, str], RemoteClient]
