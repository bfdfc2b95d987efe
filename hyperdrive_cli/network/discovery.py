"""
Local-network peer discovery over mDNS.

A drive is announced under its discovery key so peers can find each other
without publishing the drive's public key.
"""

import asyncio
import secrets
import socket
from collections.abc import Awaitable, Callable

import structlog
from zeroconf import ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

logger = structlog.get_logger(__name__)

DEFAULT_SERVICE_TYPE = "_hyperdrive._tcp.local."
DKEY_PROPERTY = b"dkey"

PeerCallback = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[BaseException], None]


def _local_address() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


class Discovery:
    """
    Announce a drive and/or browse for peers holding the same drive.

    Args:
        discovery_key: Discovery key of the drive.
        on_peer: Awaited with the bridge URL of each matching peer found.
        on_error: Receives unexpected failures from background resolution.
        announce: Register our own bridge so peers can download from us.
        lookup: Browse for peers to download from.
        port: Bridge port to announce.
        service_type: mDNS service type.
        resolve_timeout: Seconds to wait for a service's details.
    """

    def __init__(
        self,
        discovery_key: bytes,
        *,
        on_peer: PeerCallback,
        on_error: ErrorCallback,
        announce: bool = False,
        lookup: bool = True,
        port: int | None = None,
        service_type: str = DEFAULT_SERVICE_TYPE,
        resolve_timeout: float = 3.0,
    ) -> None:
        if announce and port is None:
            msg = "port is required to announce"
            raise ValueError(msg)
        self._dkey = discovery_key.hex()
        self._on_peer = on_peer
        self._on_error = on_error
        self._announce = announce
        self._lookup = lookup
        self._port = port
        self._service_type = service_type
        self._resolve_timeout = resolve_timeout

        # mDNS labels are limited to 63 bytes
        self._instance = f"{self._dkey[:32]}-{secrets.token_hex(4)}"
        self._zeroconf: AsyncZeroconf | None = None
        self._browser: AsyncServiceBrowser | None = None
        self._service: AsyncServiceInfo | None = None
        self._tasks: set[asyncio.Task] = set()
        self._seen: set[str] = set()

    @property
    def service_name(self) -> str:
        return f"{self._instance}.{self._service_type}"

    async def start(self) -> None:
        self._zeroconf = AsyncZeroconf()
        if self._announce:
            address = _local_address()
            self._service = AsyncServiceInfo(
                self._service_type,
                self.service_name,
                addresses=[socket.inet_aton(address)],
                port=self._port,
                properties={DKEY_PROPERTY: self._dkey.encode()},
                server=f"{socket.gethostname()}.local.",
            )
            await self._zeroconf.async_register_service(self._service)
            logger.debug(
                "Drive announced", name=self.service_name, address=address, port=self._port
            )
        if self._lookup:
            self._browser = AsyncServiceBrowser(
                self._zeroconf.zeroconf,
                self._service_type,
                handlers=[self._on_service_state_change],
            )
            logger.debug("Browsing for peers", service_type=self._service_type)

    async def stop(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        if self._zeroconf is None:
            return
        if self._browser is not None:
            await self._browser.async_cancel()
            self._browser = None
        if self._service is not None:
            await self._zeroconf.async_unregister_service(self._service)
            self._service = None
        await self._zeroconf.async_close()
        self._zeroconf = None
        logger.debug("Discovery stopped")

    def _on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change is not ServiceStateChange.Added or name == self.service_name:
            return
        task = asyncio.ensure_future(self._resolve(zeroconf, service_type, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        try:
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(zeroconf, int(self._resolve_timeout * 1000)):
                logger.debug("Service did not resolve", name=name)
                return
            if info.properties.get(DKEY_PROPERTY) != self._dkey.encode():
                return
            addresses = info.parsed_addresses()
            if not addresses or info.port is None:
                return
            url = f"http://{_format_host(addresses[0])}:{info.port}"
            if url in self._seen:
                return
            self._seen.add(url)
            logger.debug("Peer discovered", name=name, url=url)
            await self._on_peer(url)
        except Exception as e:
            self._on_error(e)


def _format_host(address: str) -> str:
    return f"[{address}]" if ":" in address else address
