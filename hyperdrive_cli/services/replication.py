"""
Replication orchestration.

Starts discovery sessions in one of three directional modes and implements the
fetch-if-missing policy used by downloads.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self

import structlog

from hyperdrive_cli.config import HyperdriveConfig
from hyperdrive_cli.drive.drive import ROOT, Drive
from hyperdrive_cli.exceptions import (
    BlockNotAvailableError,
    IntegrityError,
    PathNotFoundError,
    ReplicationError,
)
from hyperdrive_cli.network.bridge import BridgeServer
from hyperdrive_cli.network.discovery import Discovery
from hyperdrive_cli.network.peer_client import HttpPeer

logger = structlog.get_logger(__name__)

DiscoveryFactory = Callable[..., Any]
PeerFactory = Callable[[str], Any]
BridgeFactory = Callable[..., Any]


@dataclass(frozen=True, kw_only=True)
class SessionOptions:
    """
    Direction of a replication session.

    A live session both uploads and downloads and keeps syncing with every peer
    it finds.
    """

    live: bool = False
    upload: bool = False
    download: bool = False

    @property
    def announces(self) -> bool:
        return self.live or self.upload

    @property
    def looks_up(self) -> bool:
        return self.live or self.download


class ReplicationSession:
    """
    A discovery session bound to one drive.

    Use as an async context manager; discovery is stopped and every peer is
    detached and closed on exit, whatever the exit path.

    Failures raised by background peer handling that are not ordinary peer
    errors are re-raised from ``wait()`` and ``download()``.
    """

    def __init__(
        self,
        drive: Drive,
        options: SessionOptions,
        *,
        config: HyperdriveConfig,
        port: int | None = None,
        discovery_factory: DiscoveryFactory = Discovery,
        peer_factory: PeerFactory = HttpPeer,
    ) -> None:
        self._drive = drive
        self._options = options
        self._config = config
        self._port = port
        self._discovery_factory = discovery_factory
        self._peer_factory = peer_factory

        self._discovery: Any = None
        self._peers: list[Any] = []
        self._peer_added = asyncio.Event()
        self._failed = asyncio.Event()
        self._error: BaseException | None = None

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def peers(self) -> tuple[Any, ...]:
        return tuple(self._peers)

    async def open(self) -> None:
        self._discovery = self._discovery_factory(
            self._drive.discovery_key,
            on_peer=self.add_peer,
            on_error=self.fail,
            announce=self._options.announces,
            lookup=self._options.looks_up,
            port=self._port,
            service_type=self._config.service_type,
            resolve_timeout=self._config.discovery_timeout,
        )
        await self._discovery.start()
        logger.debug(
            "Replication session opened",
            live=self._options.live,
            upload=self._options.announces,
            download=self._options.looks_up,
        )

    async def close(self) -> None:
        if self._discovery is not None:
            await self._discovery.stop()
            self._discovery = None
        for peer in self._peers:
            self._drive.detach_peer(peer)
            await peer.close()
        self._peers.clear()
        logger.debug("Replication session closed")

    async def add_peer(self, url: str) -> None:
        """Attach a discovered peer; live sessions sync with it immediately."""
        peer = self._peer_factory(url)
        self._peers.append(peer)
        self._drive.attach_peer(peer)
        self._peer_added.set()
        if self._options.live:
            await self._sync(peer)

    def fail(self, error: BaseException) -> None:
        """Record an unexpected background failure; waiters re-raise it."""
        logger.debug("Replication session failed", exc_info=error)
        if self._error is None:
            self._error = error
        self._failed.set()

    async def wait(self, shutdown: asyncio.Event) -> None:
        """
        Hold the session open until ``shutdown`` is set.

        Raises:
            Exception: The first unexpected background failure, if any.
        """
        await self._until(shutdown)

    async def download(self, path: str) -> int:
        """
        Download a path once a peer is attached.

        Waits only while no peer is attached; the download itself is attempted
        once and never retried.

        Returns:
            Number of blocks fetched.

        Raises:
            ReplicationError: If no attached peer could provide the path.
        """
        while not self._drive.peers:
            self._peer_added.clear()
            logger.info("Waiting for peers", path=path)
            await self._until(self._peer_added)
        return await self._drive.download(path)

    async def _sync(self, peer: Any) -> None:
        options = self._drive.options
        try:
            if not options.sparse_metadata or not options.sparse:
                await self._drive.sync_log(peer)
            if not options.sparse:
                await self._drive.fetch_blocks(peer, ROOT)
        except (ReplicationError, IntegrityError) as e:
            logger.warning("Sync with peer failed", peer=peer.name, error=str(e))

    async def _until(self, event: asyncio.Event) -> None:
        waiters = {
            asyncio.ensure_future(event.wait()),
            asyncio.ensure_future(self._failed.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        if self._error is not None:
            raise self._error


class ReplicationOrchestrator:
    """
    Sequences bridge, discovery and drive operations for the network commands.

    Args:
        drive: Ready drive.
        config: Effective configuration (port, discovery settings).
        discovery_factory: Builds the discovery collaborator.
        peer_factory: Builds a peer from its bridge URL.
        bridge_factory: Builds the HTTP bridge server.
    """

    def __init__(
        self,
        drive: Drive,
        config: HyperdriveConfig,
        *,
        discovery_factory: DiscoveryFactory = Discovery,
        peer_factory: PeerFactory = HttpPeer,
        bridge_factory: BridgeFactory = BridgeServer,
    ) -> None:
        self._drive = drive
        self._config = config
        self._discovery_factory = discovery_factory
        self._peer_factory = peer_factory
        self._bridge_factory = bridge_factory

    def session(self, options: SessionOptions, *, port: int | None = None) -> ReplicationSession:
        return ReplicationSession(
            self._drive,
            options,
            config=self._config,
            port=port,
            discovery_factory=self._discovery_factory,
            peer_factory=self._peer_factory,
        )

    @asynccontextmanager
    async def serve(self) -> AsyncIterator[tuple[Any, ReplicationSession]]:
        """
        Run the HTTP bridge with a live session announcing it.

        Yields:
            ``(bridge, session)`` while both are running.
        """
        async with self._bridge_factory(self._drive, port=self._config.port) as bridge:
            async with self.session(SessionOptions(live=True), port=bridge.port) as session:
                yield bridge, session

    @asynccontextmanager
    async def upload(self) -> AsyncIterator[ReplicationSession]:
        """
        Seed the drive: serve replication requests and announce, never download.

        Yields:
            The upload-only session.
        """
        async with self._bridge_factory(self._drive, port=self._config.port) as bridge:
            options = SessionOptions(live=False, upload=True, download=False)
            async with self.session(options, port=bridge.port) as session:
                yield session

    async def download(self, path: str = ROOT) -> bool:
        """
        Fetch a path unless it is already fully available locally.

        Returns:
            True if a network download happened, False if the path was present.

        Raises:
            ReplicationError: If the download fails.
        """
        try:
            await self._drive.access(path)
        except (PathNotFoundError, BlockNotAvailableError) as e:
            logger.debug("Path not available locally, downloading", path=path, reason=str(e))
        else:
            logger.debug("Path already available", path=path)
            return False

        options = SessionOptions(live=False, upload=False, download=True)
        async with self.session(options) as session:
            await session.download(path)
        return True
