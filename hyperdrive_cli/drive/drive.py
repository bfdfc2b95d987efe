"""
Versioned, content-addressable drive.

A drive is an append-only log of signed metadata entries plus a store of
content blocks named by their SHA-256 digest. The latest ``put`` for a path is
its current content; a ``del`` removes it. Directories are implicit.
"""

import asyncio
import hashlib
import posixpath
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self

import structlog

from hyperdrive_cli.drive.keys import KeyPair, discovery_key
from hyperdrive_cli.drive.log import Entry, Op
from hyperdrive_cli.drive.protocol import Peer
from hyperdrive_cli.exceptions import (
    BlockNotAvailableError,
    DirectoryMismatchError,
    IntegrityError,
    PathNotFoundError,
    PeerError,
    ReadinessError,
    ReadOnlyDriveError,
    ReplicationError,
)
from hyperdrive_cli.models.drive import NodeType, Stat, TransferRange
from hyperdrive_cli.storage.backends import BackendDescriptor, create_storage
from hyperdrive_cli.storage.protocol import Storage

logger = structlog.get_logger(__name__)

ROOT = "/"


def normalize_path(path: str) -> str:
    """Normalise a drive path to an absolute POSIX path without trailing slash."""
    normalized = posixpath.normpath("/" + path.strip())
    # normpath keeps a leading '//' as-is
    return "/" + normalized.lstrip("/")


def block_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True, kw_only=True)
class DriveOptions:
    """
    Attributes:
        sparse: Fetch content blocks only for explicitly downloaded paths.
        sparse_metadata: Fetch the remote log only when a download needs it.
        block_size: Size of content blocks written by this process.
    """

    sparse: bool = True
    sparse_metadata: bool = True
    block_size: int = 64 * 1024

    def __post_init__(self) -> None:
        if self.block_size <= 0:
            msg = "block_size must be positive"
            raise ValueError(msg)


class Drive:
    """
    A drive bound to one storage backend and one keypair.

    Every operation other than ``ready()`` requires the drive to be ready.

    Example:
        ```python
        drive = open_drive(select_storage(use_volatile=True))
        await drive.ready()

        async with drive.create_write_stream("/hello.txt") as writer:
            await writer.write(b"hello")

        async for chunk in drive.create_read_stream("/hello.txt"):
            print(chunk)
        ```
    """

    def __init__(
        self,
        storage: Storage,
        backend: BackendDescriptor,
        *,
        key: bytes | None = None,
        options: DriveOptions | None = None,
    ) -> None:
        """
        Args:
            storage: Storage implementation.
            backend: Descriptor the storage was created from.
            key: Public key of an existing drive to open read-only. A new
                writable drive is created when omitted and storage is empty.
            options: Drive options.
        """
        self._storage = storage
        self._backend = backend
        self._requested_key = key
        self._options = options or DriveOptions()

        self._keypair: KeyPair | None = None
        self._log: list[Entry] = []
        self._files: dict[str, Entry] = {}
        self._peers: dict[str, Peer] = {}

        self._ready = False
        self._ready_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self.ready()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def storage(self) -> BackendDescriptor:
        """Descriptor of the backend holding this drive."""
        return self._backend

    @property
    def options(self) -> DriveOptions:
        return self._options

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def key(self) -> bytes:
        """Public key of the drive."""
        return self._require_ready().public_key

    @property
    def discovery_key(self) -> bytes:
        return discovery_key(self.key)

    @property
    def writable(self) -> bool:
        return self._require_ready().writable

    @property
    def version(self) -> int:
        """Number of entries in the log."""
        return len(self._log)

    @property
    def peers(self) -> tuple[Peer, ...]:
        return tuple(self._peers.values())

    async def ready(self) -> None:
        """
        Bootstrap the drive: load or create its keypair and load its log.

        Safe to call more than once.

        Raises:
            ReadinessError: If the stored data is unreadable, tampered with, or
                belongs to a different drive than the requested key.
        """
        async with self._ready_lock:
            if self._ready:
                return
            try:
                self._bootstrap()
            except ReadinessError:
                raise
            except (OSError, ValueError, IntegrityError) as e:
                msg = f"Failed to open drive: {e}"
                raise ReadinessError(msg, storage=self._backend.describe()) from e
            self._ready = True
            logger.debug(
                "Drive ready",
                storage=self._backend.describe(),
                version=self.version,
                writable=self.writable,
            )

    async def close(self) -> None:
        """Detach peers and release the storage."""
        self._peers.clear()
        self._storage.close()
        self._ready = False

    def _bootstrap(self) -> None:
        public_key, secret_key = self._storage.read_keys()
        if public_key is None:
            if self._requested_key is not None:
                keypair = KeyPair(public_key=self._requested_key)
            else:
                keypair = KeyPair.generate()
            self._storage.write_keys(keypair.public_key, keypair.secret_key)
        else:
            if self._requested_key is not None and self._requested_key != public_key:
                msg = "Storage already holds a different drive"
                raise ReadinessError(
                    msg, storage=self._backend.describe(), key=public_key.hex()
                )
            keypair = KeyPair(public_key=public_key, secret_key=secret_key)
        self._keypair = keypair

        self._log = []
        self._files = {}
        for record in self._storage.read_log():
            entry = Entry.from_record(record)
            self._check_entry(entry, len(self._log))
            self._index(entry)

    async def stat(self, path: str) -> Stat:
        """
        Raises:
            PathNotFoundError: If nothing exists at ``path``.
        """
        self._require_ready()
        path = normalize_path(path)
        if (entry := self._files.get(path)) is not None:
            return Stat(
                path=path,
                node_type=NodeType.FILE,
                size=entry.size,
                blocks=len(entry.blocks),
                mtime=entry.mtime,
                version=entry.seq + 1,
            )
        children = self._entries_under(path)
        if path != ROOT and not children:
            msg = f"Path not found: {path}"
            raise PathNotFoundError(msg, path=path)
        return Stat(
            path=path,
            node_type=NodeType.DIRECTORY,
            mtime=max((e.mtime for e in children), default=None),
            version=max((e.seq + 1 for e in children), default=0),
        )

    async def readdir(self, path: str = ROOT) -> list[str]:
        """
        List the names directly under a directory.

        Raises:
            PathNotFoundError: If the directory does not exist.
            DirectoryMismatchError: If ``path`` is a file.
        """
        stat = await self.stat(path)
        if stat.is_file:
            msg = f"Not a directory: {stat.path}"
            raise DirectoryMismatchError(msg, path=stat.path)
        prefix = stat.path.rstrip("/") + "/"
        names = {e.path[len(prefix) :].split("/", 1)[0] for e in self._entries_under(stat.path)}
        return sorted(names)

    async def create_read_stream(
        self, path: str, rng: TransferRange | None = None
    ) -> AsyncGenerator[bytes, None]:
        """
        Stream a file's content.

        Args:
            path: File path in the drive.
            rng: Optional byte window.

        Yields:
            Content chunks, at most one block each.

        Raises:
            PathNotFoundError: If the file doesn't exist.
            DirectoryMismatchError: If the path is a directory.
            BlockNotAvailableError: If a needed block is not stored locally.
        """
        entry = self._file_entry(path)
        begin, stop = (rng or TransferRange()).resolve(entry.size)
        if begin >= stop:
            return
        first, last = begin // entry.block_size, (stop - 1) // entry.block_size
        for index in range(first, last + 1):
            data = self._storage.get_block(entry.blocks[index])
            if data is None:
                msg = f"Block {index} of {entry.path} not available locally"
                raise BlockNotAvailableError(msg, path=entry.path)
            offset = index * entry.block_size
            yield data[max(begin - offset, 0) : stop - offset]
            await asyncio.sleep(0)

    def create_write_stream(self, path: str, start: int = 0) -> "DriveWriter":
        """
        Open a writer replacing a file's content from ``start`` onwards.

        The first ``start`` bytes of the existing file are kept (zero-padded
        when the file is shorter); anything after them is replaced by what is
        written. The new version is committed when the writer is closed.

        Raises:
            ReadOnlyDriveError: If the drive has no secret key.
        """
        self._require_writable()
        return DriveWriter(self, normalize_path(path), start)

    async def access(self, path: str) -> None:
        """
        Check that a path and all of its content are available locally.

        Raises:
            PathNotFoundError: If the path doesn't exist, or the drive is empty.
            BlockNotAvailableError: If some content blocks are missing.
        """
        self._require_ready()
        path = normalize_path(path)
        if self.version == 0:
            msg = f"Path not found: {path} (drive is empty)"
            raise PathNotFoundError(msg, path=path)
        await self.stat(path)
        for entry in self._entries_under(path):
            missing = [d for d in entry.blocks if not self._storage.has_block(d)]
            if missing:
                msg = f"{len(missing)} block(s) of {entry.path} not available locally"
                raise BlockNotAvailableError(msg, path=entry.path)

    async def unlink(self, path: str) -> None:
        """
        Remove a file.

        Raises:
            PathNotFoundError: If the file doesn't exist.
            DirectoryMismatchError: If the path is a directory.
            ReadOnlyDriveError: If the drive has no secret key.
        """
        self._require_writable()
        entry = self._file_entry(path)
        self._append(Entry(seq=self.version, op=Op.DEL, path=entry.path, mtime=time.time()))
        logger.debug("File unlinked", path=entry.path, version=self.version)

    def attach_peer(self, peer: Peer) -> None:
        self._peers[peer.name] = peer
        logger.debug("Peer attached", peer=peer.name)

    def detach_peer(self, peer: Peer) -> None:
        if self._peers.pop(peer.name, None) is not None:
            logger.debug("Peer detached", peer=peer.name)

    async def download(self, path: str = ROOT) -> int:
        """
        Fetch a path and its content from the attached peers.

        Peers are tried in attach order until one provides everything.

        Returns:
            Number of blocks fetched.

        Raises:
            ReplicationError: If no attached peer could provide the path.
        """
        self._require_ready()
        path = normalize_path(path)
        if not self._peers:
            msg = "No peers connected"
            raise ReplicationError(msg, path=path)

        last_error: Exception | None = None
        for peer in self.peers:
            try:
                await self.sync_log(peer)
                fetched = await self.fetch_blocks(peer, path)
                await self.access(path)
            except (PeerError, IntegrityError, PathNotFoundError, BlockNotAvailableError) as e:
                logger.warning("Download from peer failed", peer=peer.name, path=path, error=str(e))
                last_error = e
                continue
            logger.debug("Path downloaded", peer=peer.name, path=path, blocks=fetched)
            return fetched

        msg = f"Could not download {path} from any peer"
        raise ReplicationError(msg, path=path) from last_error

    async def sync_log(self, peer: Peer) -> int:
        """
        Pull the entries the peer has beyond our version.

        Returns:
            Number of entries appended.
        """
        return self.apply_remote_entries(await peer.log_since(self.version))

    async def fetch_blocks(self, peer: Peer, path: str = ROOT) -> int:
        """
        Fetch the missing blocks of every file at or below ``path``.

        Raises:
            IntegrityError: If a block doesn't match its digest.
        """
        fetched = 0
        for entry in self._entries_under(normalize_path(path)):
            for digest in entry.blocks:
                if self._storage.has_block(digest):
                    continue
                self.put_block(digest, await peer.block(digest))
                fetched += 1
        return fetched

    def apply_remote_entries(self, records: list[dict[str, Any]]) -> int:
        """
        Verify and append entries received from a peer.

        Entries we already have are skipped.

        Raises:
            IntegrityError: On a bad signature or a gap in the sequence.
        """
        self._require_ready()
        entries = [Entry.from_dict(record) for record in records]
        fresh = [e for e in sorted(entries, key=lambda e: e.seq) if e.seq >= self.version]
        for offset, entry in enumerate(fresh):
            self._check_entry(entry, self.version + offset)
        if fresh:
            self._storage.append_log([e.to_record() for e in fresh])
            for entry in fresh:
                self._index(entry)
            logger.debug("Remote entries applied", count=len(fresh), version=self.version)
        return len(fresh)

    def log_since(self, seq: int) -> list[Entry]:
        self._require_ready()
        return self._log[max(seq, 0) :]

    def get_block(self, digest: str) -> bytes | None:
        self._require_ready()
        return self._storage.get_block(digest)

    def put_block(self, digest: str, data: bytes) -> None:
        """
        Raises:
            IntegrityError: If ``data`` doesn't hash to ``digest``.
        """
        computed = block_digest(data)
        if computed != digest:
            msg = f"Block hash mismatch: expected {digest}, got {computed}"
            raise IntegrityError(msg)
        self._storage.put_block(digest, data)

    def _require_ready(self) -> KeyPair:
        if not self._ready or self._keypair is None:
            msg = "Drive not ready. Await ready() first."
            raise RuntimeError(msg)
        return self._keypair

    def _require_writable(self) -> None:
        if not self._require_ready().writable:
            msg = "Drive is read-only (no secret key)"
            raise ReadOnlyDriveError(msg, key=self.key.hex())

    def _file_entry(self, path: str) -> Entry:
        self._require_ready()
        path = normalize_path(path)
        if (entry := self._files.get(path)) is not None:
            return entry
        if path == ROOT or self._entries_under(path):
            msg = f"Path is a directory: {path}"
            raise DirectoryMismatchError(msg, path=path)
        msg = f"Path not found: {path}"
        raise PathNotFoundError(msg, path=path)

    def _entries_under(self, path: str) -> list[Entry]:
        if path in self._files:
            return [self._files[path]]
        prefix = path.rstrip("/") + "/"
        return [entry for p, entry in self._files.items() if p.startswith(prefix)]

    def _check_entry(self, entry: Entry, expected_seq: int) -> None:
        if entry.seq != expected_seq:
            msg = f"Log entry out of sequence: expected {expected_seq}, got {entry.seq}"
            raise IntegrityError(msg)
        if not entry.verify(self._keypair):
            msg = f"Invalid signature on log entry {entry.seq}"
            raise IntegrityError(msg)

    def _index(self, entry: Entry) -> None:
        self._log.append(entry)
        if entry.op == Op.DEL:
            self._files.pop(entry.path, None)
        else:
            self._files[entry.path] = entry

    def _append(self, entry: Entry) -> Entry:
        signed = entry.signed(self._require_ready())
        self._storage.append_log([signed.to_record()])
        self._index(signed)
        return signed


class DriveWriter:
    """
    Buffered writer for one drive file.

    Use as an async context manager; the file is committed on a clean exit and
    discarded if the block raises.
    """

    def __init__(self, drive: Drive, path: str, start: int = 0) -> None:
        self._drive = drive
        self._path = path
        self._start = start
        self._block_size = drive.options.block_size
        self._buffer = bytearray()
        self._blocks: list[str] = []
        self._size = 0
        self._opened = False
        self._closed = False

    async def __aenter__(self) -> Self:
        await self._open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.close()
        else:
            self._closed = True

    async def write(self, data: bytes) -> None:
        if self._closed:
            msg = "Writer is closed"
            raise RuntimeError(msg)
        await self._open()
        self._buffer += data
        self._flush(final=False)

    async def close(self) -> Stat:
        """
        Commit the file as a new version.

        Returns:
            Stat of the written file.
        """
        if self._closed:
            msg = "Writer is closed"
            raise RuntimeError(msg)
        await self._open()
        self._flush(final=True)
        self._closed = True
        self._drive._append(
            Entry(
                seq=self._drive.version,
                op=Op.PUT,
                path=self._path,
                size=self._size,
                block_size=self._block_size,
                blocks=tuple(self._blocks),
                mtime=time.time(),
            )
        )
        logger.debug("File written", path=self._path, size=self._size, blocks=len(self._blocks))
        return await self._drive.stat(self._path)

    async def _open(self) -> None:
        if self._opened:
            return
        self._opened = True
        if self._start == 0:
            return
        kept = bytearray()
        try:
            async for chunk in self._drive.create_read_stream(
                self._path, TransferRange(length=self._start)
            ):
                kept += chunk
        except PathNotFoundError:
            pass
        kept += bytes(self._start - len(kept))
        self._buffer[:0] = kept
        self._flush(final=False)

    def _flush(self, *, final: bool) -> None:
        while len(self._buffer) >= self._block_size or (final and self._buffer):
            chunk = bytes(self._buffer[: self._block_size])
            del self._buffer[: self._block_size]
            digest = block_digest(chunk)
            self._drive.put_block(digest, chunk)
            self._blocks.append(digest)
            self._size += len(chunk)


def open_drive(
    backend: BackendDescriptor,
    key: bytes | None = None,
    options: DriveOptions | None = None,
) -> Drive:
    """
    Create a drive handle for a backend. Await ``ready()`` before using it.

    Args:
        backend: Storage backend descriptor.
        key: Public key of an existing drive, or None.
        options: Drive options.
    """
    return Drive(create_storage(backend), backend, key=key, options=options)
