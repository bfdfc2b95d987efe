"""
Persistent storage rooted at a directory.

Layout::

    <root>/metadata/key          public key, raw bytes
    <root>/metadata/secret_key   secret key, raw bytes (mode 0600, writable drives only)
    <root>/metadata/log          one JSON record per line
    <root>/content/<ab>/<abcdef...>  content block named by its SHA-256 hex digest
"""

import os
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

METADATA_DIR = "metadata"
CONTENT_DIR = "content"


class FileStorage:
    """Storage backed by files under ``root``."""

    def __init__(self, root: Path) -> None:
        """
        Args:
            root: Directory holding the ``metadata`` and ``content`` folders.
                Created lazily on first write.
        """
        self._root = root
        self._metadata = root / METADATA_DIR
        self._content = root / CONTENT_DIR

    @property
    def root(self) -> Path:
        return self._root

    def read_keys(self) -> tuple[bytes | None, bytes | None]:
        return self._read(self._metadata / "key"), self._read(self._metadata / "secret_key")

    def write_keys(self, public_key: bytes, secret_key: bytes | None) -> None:
        self._metadata.mkdir(parents=True, exist_ok=True)
        (self._metadata / "key").write_bytes(public_key)
        if secret_key is not None:
            path = self._metadata / "secret_key"
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(secret_key)
        logger.debug("Keys written", root=str(self._root), writable=secret_key is not None)

    def read_log(self) -> list[str]:
        path = self._metadata / "log"
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f if line.strip()]

    def append_log(self, records: list[str]) -> None:
        self._metadata.mkdir(parents=True, exist_ok=True)
        with (self._metadata / "log").open("a", encoding="utf-8") as f:
            for record in records:
                f.write(record + "\n")

    def has_block(self, digest: str) -> bool:
        return self._block_path(digest).is_file()

    def get_block(self, digest: str) -> bytes | None:
        return self._read(self._block_path(digest))

    def put_block(self, digest: str, data: bytes) -> None:
        path = self._block_path(digest)
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def close(self) -> None:
        """Nothing is held open between calls."""

    def _block_path(self, digest: str) -> Path:
        return self._content / digest[:2] / digest

    @staticmethod
    def _read(path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
