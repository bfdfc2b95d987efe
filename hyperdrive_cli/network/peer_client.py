"""
Async HTTP client for a peer's bridge.

Implements the drive's ``Peer`` protocol over the replication routes served by
``hyperdrive_cli.network.bridge``.
"""

import asyncio
from typing import Any, Self

import httpx
import structlog

from hyperdrive_cli.exceptions import PeerError
from hyperdrive_cli.network.bridge import API_PREFIX

logger = structlog.get_logger(__name__)


class HttpPeer:
    """Peer reached through its HTTP bridge."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Root URL of the peer's bridge, e.g. ``http://10.0.0.2:3000``.
            timeout: Request timeout in seconds.
            transport: Optional transport for testing (mock transport).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def name(self) -> str:
        return self._base_url

    async def info(self) -> dict[str, Any]:
        """Fetch the peer's drive summary (key, discovery key, version)."""
        return (await self._get(f"{API_PREFIX}/info")).json()

    async def log_since(self, seq: int) -> list[dict[str, Any]]:
        response = await self._get(f"{API_PREFIX}/log", params={"since": seq})
        entries = response.json()
        if not isinstance(entries, list):
            msg = "Malformed log response"
            raise PeerError(msg, peer=self.name)
        return entries

    async def block(self, digest: str) -> bytes:
        return (await self._get(f"{API_PREFIX}/blocks/{digest}")).content

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                )
        return self._client

    async def _get(self, endpoint: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.get(endpoint, params=params)
        except httpx.HTTPError as e:
            msg = f"Request to peer failed: {e}"
            raise PeerError(msg, peer=self.name) from e
        if response.status_code != httpx.codes.OK:
            msg = f"Peer returned HTTP {response.status_code} for {endpoint}"
            raise PeerError(msg, peer=self.name)
        logger.debug("Peer request", peer=self.name, endpoint=endpoint, bytes=len(response.content))
        return response
