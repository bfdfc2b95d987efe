"""
The versioned drive and its building blocks.
"""

from hyperdrive_cli.drive.drive import (
    ROOT,
    Drive,
    DriveOptions,
    DriveWriter,
    normalize_path,
    open_drive,
)
from hyperdrive_cli.drive.keys import KeyPair, discovery_key, parse_key
from hyperdrive_cli.drive.log import Entry, Op
from hyperdrive_cli.drive.protocol import Peer

__all__ = [
    "ROOT",
    "Drive",
    "DriveOptions",
    "DriveWriter",
    "Entry",
    "KeyPair",
    "Op",
    "Peer",
    "discovery_key",
    "normalize_path",
    "open_drive",
    "parse_key",
]
