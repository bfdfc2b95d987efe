"""
Drive-related domain models.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum


class NodeType(IntEnum):
    """Type of drive node."""

    DIRECTORY = 1
    FILE = 2


@dataclass(frozen=True, kw_only=True)
class TransferRange:
    """
    Optional byte window constraining a read or write stream.

    ``end`` is an inclusive offset. When both ``end`` and ``length`` are given,
    ``length`` wins.
    """

    start: int | None = None
    end: int | None = None
    length: int | None = None

    def __post_init__(self) -> None:
        for name in ("start", "end", "length"):
            value = getattr(self, name)
            if value is not None and value < 0:
                msg = f"{name} must be non-negative"
                raise ValueError(msg)

    @property
    def offset(self) -> int:
        """Start offset, 0 when unset."""
        return self.start or 0

    def resolve(self, size: int) -> tuple[int, int]:
        """
        Resolve the window against a file of ``size`` bytes.

        Args:
            size: File size in bytes.

        Returns:
            Half-open ``(begin, stop)`` offsets clipped to the file. An inverted
            window resolves to an empty one.
        """
        begin = min(self.offset, size)
        if self.length is not None:
            stop = begin + self.length
        elif self.end is not None:
            stop = self.end + 1
        else:
            stop = size
        return begin, max(begin, min(stop, size))


@dataclass(frozen=True, kw_only=True)
class Stat:
    """Metadata of a file or directory in the drive."""

    path: str
    node_type: NodeType
    size: int = 0
    blocks: int = 0
    mtime: float | None = None
    version: int = 0

    @property
    def is_directory(self) -> bool:
        """Check if this node is a directory."""
        return self.node_type == NodeType.DIRECTORY

    @property
    def is_file(self) -> bool:
        """Check if this node is a file."""
        return self.node_type == NodeType.FILE

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary representation."""
        result: dict[str, object] = {
            "path": self.path,
            "type": "directory" if self.is_directory else "file",
            "version": self.version,
        }
        if self.is_file:
            result["size"] = self.size
            result["blocks"] = self.blocks
        if self.mtime is not None:
            result["mtime"] = datetime.fromtimestamp(self.mtime, tz=timezone.utc).isoformat()
        return result
