"""
Networking: HTTP bridge, peer client and mDNS discovery.
"""

from hyperdrive_cli.network.bridge import BridgeServer, create_app
from hyperdrive_cli.network.discovery import Discovery
from hyperdrive_cli.network.peer_client import HttpPeer

__all__ = [
    "BridgeServer",
    "Discovery",
    "HttpPeer",
    "create_app",
]
