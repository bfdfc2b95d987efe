"""
Storage backends for drives.
"""

from hyperdrive_cli.storage.backends import (
    VOLATILE,
    BackendDescriptor,
    BackendKind,
    create_storage,
    destroy_storage,
    select_storage,
)
from hyperdrive_cli.storage.file import FileStorage
from hyperdrive_cli.storage.memory import MemoryStorage
from hyperdrive_cli.storage.protocol import Storage

__all__ = [
    "VOLATILE",
    "BackendDescriptor",
    "BackendKind",
    "FileStorage",
    "MemoryStorage",
    "Storage",
    "create_storage",
    "destroy_storage",
    "select_storage",
]
