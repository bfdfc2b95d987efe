"""
Signed append-only metadata log entries.
"""

import json
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Self

from hyperdrive_cli.drive.keys import KeyPair
from hyperdrive_cli.exceptions import IntegrityError


class Op(StrEnum):
    """Kind of log entry."""

    PUT = "put"
    DEL = "del"


@dataclass(frozen=True, kw_only=True)
class Entry:
    """
    One version of the drive.

    Entry ``seq`` is its position in the log; the drive version is the log
    length. A ``put`` names the content blocks of a whole file, a ``del``
    removes a path.
    """

    seq: int
    op: Op
    path: str
    size: int = 0
    block_size: int = 0
    blocks: tuple[str, ...] = ()
    mtime: float = 0.0
    signature: str = ""

    def payload(self) -> bytes:
        """Canonical bytes covered by the signature."""
        data = self.to_dict()
        del data["signature"]
        return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()

    def signed(self, keypair: KeyPair) -> Self:
        return replace(self, signature=keypair.sign(self.payload()).hex())

    def verify(self, keypair: KeyPair) -> bool:
        try:
            signature = bytes.fromhex(self.signature)
        except ValueError:
            return False
        return keypair.verify(signature, self.payload())

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "op": str(self.op),
            "path": self.path,
            "size": self.size,
            "block_size": self.block_size,
            "blocks": list(self.blocks),
            "mtime": self.mtime,
            "signature": self.signature,
        }

    def to_record(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Raises:
            IntegrityError: If the record is malformed.
        """
        try:
            return cls(
                seq=int(data["seq"]),
                op=Op(data["op"]),
                path=str(data["path"]),
                size=int(data.get("size", 0)),
                block_size=int(data.get("block_size", 0)),
                blocks=tuple(str(b) for b in data.get("blocks", ())),
                mtime=float(data.get("mtime", 0.0)),
                signature=str(data.get("signature", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed log entry: {e}"
            raise IntegrityError(msg) from e

    @classmethod
    def from_record(cls, record: str) -> Self:
        try:
            data = json.loads(record)
        except json.JSONDecodeError as e:
            msg = f"Malformed log record: {e}"
            raise IntegrityError(msg) from e
        if not isinstance(data, dict):
            msg = "Malformed log record: not an object"
            raise IntegrityError(msg)
        return cls.from_dict(data)
