"""
Hyperdrive CLI.

Command-line front end over a versioned, content-addressable drive that can be
replicated between peers on the local network.

Example:
    ```python
    from hyperdrive_cli import TransferRange, open_drive, select_storage

    async with open_drive(select_storage(use_volatile=True)) as drive:
        async with drive.create_write_stream("/notes/todo.txt") as writer:
            await writer.write(b"buy milk")

        async for chunk in drive.create_read_stream("/notes/todo.txt", TransferRange(length=3)):
            print(chunk)  # b"buy"
    ```
"""

__version__ = "0.1.0"

from hyperdrive_cli.commands import CommandRouter
from hyperdrive_cli.config import HyperdriveConfig, load_config
from hyperdrive_cli.drive.drive import Drive, DriveOptions, open_drive
from hyperdrive_cli.exceptions import (
    BlockNotAvailableError,
    ConfigError,
    DirectoryMismatchError,
    DuplicateAliasError,
    HyperdriveError,
    IntegrityError,
    MissingArgumentError,
    PathError,
    PathNotFoundError,
    PeerError,
    ReadinessError,
    ReadOnlyDriveError,
    ReplicationError,
)
from hyperdrive_cli.models.drive import NodeType, Stat, TransferRange
from hyperdrive_cli.storage.backends import BackendDescriptor, destroy_storage, select_storage

__all__ = [
    # Drive
    "Drive",
    "DriveOptions",
    "open_drive",
    "BackendDescriptor",
    "select_storage",
    "destroy_storage",
    # CLI plumbing
    "CommandRouter",
    "HyperdriveConfig",
    "load_config",
    # Models
    "NodeType",
    "Stat",
    "TransferRange",
    # Exceptions
    "HyperdriveError",
    "MissingArgumentError",
    "ConfigError",
    "DuplicateAliasError",
    "ReadinessError",
    "ReadOnlyDriveError",
    "IntegrityError",
    "PathError",
    "PathNotFoundError",
    "DirectoryMismatchError",
    "BlockNotAvailableError",
    "ReplicationError",
    "PeerError",
]
