"""
Remote peer protocol definition.

A drive replicates from any object exposing the peer's log and blocks; the
network layer provides an HTTP implementation.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Peer(Protocol):
    """A remote copy of the same drive."""

    @property
    def name(self) -> str:
        """Identifier used in logs and errors."""
        ...

    async def log_since(self, seq: int) -> list[dict[str, Any]]:
        """
        Fetch the peer's log entries starting at ``seq``.

        Raises:
            PeerError: If the peer cannot be reached.
        """
        ...

    async def block(self, digest: str) -> bytes:
        """
        Fetch one content block.

        Raises:
            PeerError: If the peer cannot be reached or lacks the block.
        """
        ...
