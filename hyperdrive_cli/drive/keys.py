"""
Ed25519 keypairs identifying a drive.
"""

import hashlib
from dataclasses import dataclass
from typing import Self

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from hyperdrive_cli.exceptions import ReadOnlyDriveError

KEY_SIZE = 32
_DISCOVERY_NAMESPACE = b"hyperdrive"


@dataclass(frozen=True, slots=True)
class KeyPair:
    """A drive's public key and, for writable drives, its secret key."""

    public_key: bytes
    secret_key: bytes | None = None

    def __post_init__(self) -> None:
        if len(self.public_key) != KEY_SIZE:
            msg = f"public key must be {KEY_SIZE} bytes"
            raise ValueError(msg)
        if self.secret_key is None:
            return
        derived = (
            Ed25519PrivateKey.from_private_bytes(self.secret_key)
            .public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
        )
        if derived != self.public_key:
            msg = "secret key does not match public key"
            raise ValueError(msg)

    @classmethod
    def generate(cls) -> Self:
        """Create a fresh writable keypair."""
        private = Ed25519PrivateKey.generate()
        return cls(
            public_key=private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw),
            secret_key=private.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()),
        )

    @property
    def writable(self) -> bool:
        return self.secret_key is not None

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message with the secret key.

        Raises:
            ReadOnlyDriveError: If the secret key is not available.
        """
        if self.secret_key is None:
            msg = "Drive is read-only (no secret key)"
            raise ReadOnlyDriveError(msg, key=self.public_key.hex())
        return Ed25519PrivateKey.from_private_bytes(self.secret_key).sign(message)

    def verify(self, signature: bytes, message: bytes) -> bool:
        try:
            Ed25519PublicKey.from_public_bytes(self.public_key).verify(signature, message)
        except InvalidSignature:
            return False
        return True


def parse_key(value: str) -> bytes:
    """
    Parse a hex-encoded public key.

    Raises:
        ValueError: If the value is not 32 bytes of hex.
    """
    try:
        key = bytes.fromhex(value.strip())
    except ValueError as e:
        msg = "key must be hex encoded"
        raise ValueError(msg) from e
    if len(key) != KEY_SIZE:
        msg = f"key must be {KEY_SIZE} bytes, got {len(key)}"
        raise ValueError(msg)
    return key


def discovery_key(public_key: bytes) -> bytes:
    """Key announced to peers; does not reveal the public key itself."""
    return hashlib.sha256(_DISCOVERY_NAMESPACE + public_key).digest()
