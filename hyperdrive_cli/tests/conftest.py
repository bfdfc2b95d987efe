from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio

from hyperdrive_cli.config import HyperdriveConfig
from hyperdrive_cli.drive.drive import Drive, DriveOptions, open_drive
from hyperdrive_cli.exceptions import PeerError
from hyperdrive_cli.models.drive import TransferRange
from hyperdrive_cli.storage.backends import VOLATILE

# Small blocks so short test payloads span several of them.
BLOCK_SIZE = 4


class DrivePeer:
    """Peer backed directly by another drive instance."""

    def __init__(self, source: Drive, name: str = "peer-1") -> None:
        self._source = source
        self._name = name
        self.closed = False
        self.block_requests: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def log_since(self, seq: int) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._source.log_since(seq)]

    async def block(self, digest: str) -> bytes:
        self.block_requests.append(digest)
        data = self._source.get_block(digest)
        if data is None:
            raise PeerError("block not available", peer=self._name)
        return data

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def options() -> DriveOptions:
    return DriveOptions(block_size=BLOCK_SIZE)


@pytest.fixture
def config() -> HyperdriveConfig:
    return HyperdriveConfig(block_size=BLOCK_SIZE)


@pytest_asyncio.fixture
async def drive(options: DriveOptions) -> AsyncIterator[Drive]:
    writable = open_drive(VOLATILE, options=options)
    await writable.ready()
    yield writable
    await writable.close()


@pytest_asyncio.fixture
async def replica(drive: Drive, options: DriveOptions) -> AsyncIterator[Drive]:
    read_only = open_drive(VOLATILE, key=drive.key, options=options)
    await read_only.ready()
    yield read_only
    await read_only.close()


@pytest.fixture
def make_peer() -> Callable[..., DrivePeer]:
    def _make(source: Drive, name: str = "peer-1") -> DrivePeer:
        return DrivePeer(source, name)

    return _make


@pytest.fixture
def write_file() -> Callable[..., Awaitable[None]]:
    async def _write(drive: Drive, path: str, data: bytes, start: int = 0) -> None:
        async with drive.create_write_stream(path, start=start) as writer:
            await writer.write(data)

    return _write


@pytest.fixture
def read_file() -> Callable[..., Awaitable[bytes]]:
    async def _read(drive: Drive, path: str, rng: TransferRange | None = None) -> bytes:
        return b"".join([chunk async for chunk in drive.create_read_stream(path, rng)])

    return _read
