"""
Domain models for the drive.

These are immutable (frozen) dataclasses representing the core domain concepts.
"""

from hyperdrive_cli.models.drive import NodeType, Stat, TransferRange

__all__ = [
    "NodeType",
    "Stat",
    "TransferRange",
]
