"""
Business logic services for the CLI commands.
"""

from hyperdrive_cli.services.mirror import copy_file, mirror
from hyperdrive_cli.services.replication import (
    ReplicationOrchestrator,
    ReplicationSession,
    SessionOptions,
)
from hyperdrive_cli.services.transfer import TransferService

__all__ = [
    "ReplicationOrchestrator",
    "ReplicationSession",
    "SessionOptions",
    "TransferService",
    "copy_file",
    "mirror",
]
