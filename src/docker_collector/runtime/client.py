"""Docker Engine API client over HTTP."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ..config import settings
from ..errors import RemoteRuntimeError

USER_AGENT = "DockerCollector/1.0"

# Base URL used for requests over a Unix socket; the host part is ignored
UNIX_BASE_URL = "http://docker"


def parse_host(host: str) -> tuple[str, Optional[str]]:
    """
    Translate a Docker host string into an HTTP base URL.

    Returns:
        ``(base_url, socket_path)``; ``socket_path`` is set for unix:// hosts
    """
    host = host.strip()
    if host.startswith("unix://"):
        socket_path = host[len("unix://"):]
        if not socket_path:
            raise RemoteRuntimeError(f"Docker host {host!r} has no socket path")
        return UNIX_BASE_URL, socket_path
    if host.startswith("tcp://"):
        address = host[len("tcp://"):].rstrip("/")
        if not address:
            raise RemoteRuntimeError(f"Docker host {host!r} has no address")
        return f"http://{address}", None
    if host.startswith(("http://", "https://")):
        return host.rstrip("/"), None
    raise RemoteRuntimeError(f"Unsupported Docker host {host!r}")


class DockerEngineClient:
    """Async client for one Docker Engine endpoint, bound to an API version."""

    def __init__(
        self,
        host: str,
        api_version: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host
        self.api_version = api_version.lstrip("v")

        base_url, socket_path = parse_host(host)
        if transport is None and socket_path:
            transport = httpx.AsyncHTTPTransport(uds=socket_path)

        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout if timeout is not None else settings.docker_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    async def __aenter__(self) -> "DockerEngineClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release the underlying connection."""
        await self._client.aclose()

    def _path(self, path: str) -> str:
        return f"/v{self.api_version}{path}"

    def _raise_for_status(self, response: httpx.Response, what: str):
        """Raise RemoteRuntimeError for non-2xx responses."""
        if not response.is_error:
            return

        message = response.text
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
        except ValueError:
            pass

        raise RemoteRuntimeError(
            f"{what} on {self.host} returned {response.status_code}: {message.strip()}",
            status_code=response.status_code,
        )

    async def _get(self, path: str, what: str, params: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._client.get(self._path(path), params=params)
        except httpx.HTTPError as e:
            raise RemoteRuntimeError(f"{what} on {self.host} failed: {e}") from e
        self._raise_for_status(response, what)
        return response

    async def _get_json(self, path: str, what: str, params: Optional[dict] = None):
        response = await self._get(path, what, params)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRuntimeError(f"{what} on {self.host} returned invalid JSON: {e}") from e

    async def ping(self) -> tuple[str, str]:
        """Check the daemon is alive; returns ``(api_version, os_type)``."""
        response = await self._get("/_ping", "Ping")
        return (
            response.headers.get("API-Version", ""),
            response.headers.get("OSType", ""),
        )

    async def list_containers(self) -> list[dict]:
        """List all containers, including stopped ones."""
        return await self._get_json("/containers/json", "Listing containers", {"all": "1"}) or []

    @asynccontextmanager
    async def stream_stats(self, container_id: str) -> AsyncIterator[httpx.Response]:
        """
        Open a single-sample stats stream for a container.

        The response is closed when the context exits, whether or not the
        caller finished decoding it.
        """
        what = f"Stats for container {container_id}"
        try:
            async with self._client.stream(
                "GET",
                self._path(f"/containers/{container_id}/stats"),
                params={"stream": "false"},
            ) as response:
                if response.is_error:
                    await response.aread()
                    self._raise_for_status(response, what)
                yield response
        except httpx.HTTPError as e:
            raise RemoteRuntimeError(f"{what} on {self.host} failed: {e}") from e

    async def list_networks(self) -> list[dict]:
        return await self._get_json("/networks", "Listing networks") or []

    async def list_volumes(self) -> tuple[list[dict], list]:
        """List volumes; returns ``(volumes, warnings)``."""
        body = await self._get_json("/volumes", "Listing volumes") or {}
        return body.get("Volumes") or [], body.get("Warnings") or []

    async def list_images(self) -> list[dict]:
        return await self._get_json("/images/json", "Listing images") or []


def connect(host: str, api_version: str) -> DockerEngineClient:
    """Create a client bound to ``(host, api_version)``."""
    return DockerEngineClient(host, api_version)
