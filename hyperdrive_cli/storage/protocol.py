"""
Storage backend protocol definition.

A drive keeps three things in its backend: its keypair, an append-only log of
signed metadata entries, and content blocks addressed by their SHA-256 digest.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """Abstract interface for drive storage."""

    def read_keys(self) -> tuple[bytes | None, bytes | None]:
        """
        Load the stored keypair.

        Returns:
            ``(public_key, secret_key)``, each None when absent.
        """
        ...

    def write_keys(self, public_key: bytes, secret_key: bytes | None) -> None:
        """Persist the keypair. ``secret_key`` is None for read-only drives."""
        ...

    def read_log(self) -> list[str]:
        """Return every metadata log record in append order."""
        ...

    def append_log(self, records: list[str]) -> None:
        """Append serialized metadata records to the log."""
        ...

    def has_block(self, digest: str) -> bool:
        """Check whether a content block is stored locally."""
        ...

    def get_block(self, digest: str) -> bytes | None:
        """Return a content block, or None when it is not stored locally."""
        ...

    def put_block(self, digest: str, data: bytes) -> None:
        """Store a content block under its digest."""
        ...

    def close(self) -> None:
        """Release any resources held by the backend."""
        ...
