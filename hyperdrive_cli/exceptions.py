"""
Hyperdrive CLI exception hierarchy.

All exceptions inherit from HyperdriveError for easy catching.
"""

from typing import Any


class HyperdriveError(Exception):
    """Base exception for all hyperdrive_cli errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class MissingArgumentError(HyperdriveError):
    """A required command argument was not supplied."""

    def __init__(self, message: str = "path required") -> None:
        super().__init__(message)


class ConfigError(HyperdriveError):
    """Configuration could not be loaded or is invalid."""


class DuplicateAliasError(HyperdriveError):
    """The same alias is registered under two commands."""

    def __init__(self, message: str, *, alias: str) -> None:
        super().__init__(message, alias=alias)
        self.alias = alias


class ReadinessError(HyperdriveError):
    """The drive backend failed to bootstrap."""


class ReadOnlyDriveError(HyperdriveError):
    """A mutation was attempted without the drive's secret key."""


class IntegrityError(HyperdriveError):
    """Data integrity verification failed (bad signature, hash mismatch)."""


class PathError(HyperdriveError):
    """Path-related error."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message, path=path)
        self.path = path


class PathNotFoundError(PathError):
    """Path does not exist in the drive."""


class DirectoryMismatchError(PathError):
    """Expected a file but got a directory."""


class BlockNotAvailableError(PathError):
    """Path is known but some of its content blocks are not stored locally."""


class ReplicationError(HyperdriveError):
    """Replication with peers failed."""


class PeerError(ReplicationError):
    """A single peer could not be reached or returned bad data."""

    def __init__(self, message: str, *, peer: str) -> None:
        super().__init__(message, peer=peer)
        self.peer = peer
