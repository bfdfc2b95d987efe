"""Volatile in-memory storage."""


class MemoryStorage:
    """Storage that lives only as long as the process."""

    def __init__(self) -> None:
        self._public_key: bytes | None = None
        self._secret_key: bytes | None = None
        self._log: list[str] = []
        self._blocks: dict[str, bytes] = {}

    def read_keys(self) -> tuple[bytes | None, bytes | None]:
        return self._public_key, self._secret_key

    def write_keys(self, public_key: bytes, secret_key: bytes | None) -> None:
        self._public_key = public_key
        self._secret_key = secret_key

    def read_log(self) -> list[str]:
        return list(self._log)

    def append_log(self, records: list[str]) -> None:
        self._log.extend(records)

    def has_block(self, digest: str) -> bool:
        return digest in self._blocks

    def get_block(self, digest: str) -> bytes | None:
        return self._blocks.get(digest)

    def put_block(self, digest: str, data: bytes) -> None:
        self._blocks[digest] = data

    def close(self) -> None:
        self._blocks.clear()
        self._log.clear()
