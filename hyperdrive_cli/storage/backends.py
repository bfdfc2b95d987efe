"""
Storage backend selection.
"""

import os
import shutil
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import structlog

from hyperdrive_cli.storage.file import CONTENT_DIR, METADATA_DIR, FileStorage
from hyperdrive_cli.storage.memory import MemoryStorage
from hyperdrive_cli.storage.protocol import Storage

logger = structlog.get_logger(__name__)


class BackendKind(StrEnum):
    """Kind of storage medium."""

    VOLATILE = "volatile"
    PERSISTENT = "persistent"


@dataclass(frozen=True, kw_only=True)
class BackendDescriptor:
    """
    Where a drive keeps its data.

    A volatile backend has no identity beyond the process; a persistent one is
    rooted at ``path``.
    """

    kind: BackendKind
    path: Path | None = None

    @property
    def is_volatile(self) -> bool:
        return self.kind == BackendKind.VOLATILE

    def describe(self) -> str:
        """Human-readable location."""
        return "memory" if self.is_volatile else str(self.path)


VOLATILE = BackendDescriptor(kind=BackendKind.VOLATILE)


def select_storage(
    use_volatile: bool, explicit_path: str | os.PathLike | None = None
) -> BackendDescriptor:
    """
    Choose the backend for a drive. Performs no I/O.

    Args:
        use_volatile: Select the in-memory backend; any path is ignored.
        explicit_path: Root of the persistent backend, defaults to the cwd.

    Returns:
        The backend descriptor.
    """
    if use_volatile:
        return VOLATILE
    root = Path(explicit_path) if explicit_path is not None else Path(os.getcwd())
    return BackendDescriptor(kind=BackendKind.PERSISTENT, path=root.absolute())


def create_storage(backend: BackendDescriptor) -> Storage:
    """Instantiate the storage implementation for a descriptor."""
    if backend.is_volatile:
        return MemoryStorage()
    return FileStorage(backend.path)


def destroy_storage(backend: BackendDescriptor) -> list[Path]:
    """
    Remove a persistent backend's metadata and content directories.

    Idempotent: missing directories and volatile backends are a no-op.

    Returns:
        The directories that were actually removed.
    """
    if backend.is_volatile:
        return []
    removed = []
    for name in (METADATA_DIR, CONTENT_DIR):
        target = backend.path / name
        if not target.exists():
            continue
        shutil.rmtree(target)
        removed.append(target)
        logger.debug("Removed storage directory", path=str(target))
    return removed
