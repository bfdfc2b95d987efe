import os
from pathlib import Path

import pytest

from hyperdrive_cli.storage.backends import (
    VOLATILE,
    BackendKind,
    create_storage,
    destroy_storage,
    select_storage,
)
from hyperdrive_cli.storage.file import FileStorage
from hyperdrive_cli.storage.memory import MemoryStorage
from hyperdrive_cli.storage.protocol import Storage


def test_volatile_wins_over_explicit_path(tmp_path: Path) -> None:
    assert select_storage(True, tmp_path) is VOLATILE
    assert VOLATILE.describe() == "memory"


def test_default_path_is_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    backend = select_storage(False)

    assert backend.kind == BackendKind.PERSISTENT
    assert backend.path == tmp_path.absolute()


def test_explicit_absolute_path(tmp_path: Path) -> None:
    backend = select_storage(False, tmp_path / "x")

    assert backend.kind == BackendKind.PERSISTENT
    assert backend.path == tmp_path / "x"
    assert backend.describe() == str(tmp_path / "x")


def test_relative_path_is_made_absolute(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert select_storage(False, "drives/a").path == tmp_path.absolute() / "drives" / "a"


def test_select_storage_creates_nothing(tmp_path: Path) -> None:
    select_storage(False, tmp_path / "new")

    assert not (tmp_path / "new").exists()


def test_create_storage_matches_backend_kind(tmp_path: Path) -> None:
    assert isinstance(create_storage(VOLATILE), MemoryStorage)
    assert isinstance(create_storage(select_storage(False, tmp_path)), FileStorage)
    assert isinstance(create_storage(VOLATILE), Storage)


def test_destroy_removes_metadata_and_content(tmp_path: Path) -> None:
    (tmp_path / "metadata").mkdir()
    (tmp_path / "content" / "ab").mkdir(parents=True)
    (tmp_path / "notes.txt").write_text("keep me")

    removed = destroy_storage(select_storage(False, tmp_path))

    assert removed == [tmp_path / "metadata", tmp_path / "content"]
    assert not (tmp_path / "metadata").exists()
    assert not (tmp_path / "content").exists()
    assert (tmp_path / "notes.txt").read_text() == "keep me"


def test_destroy_is_idempotent(tmp_path: Path) -> None:
    backend = select_storage(False, tmp_path)
    (tmp_path / "metadata").mkdir()

    destroy_storage(backend)

    assert destroy_storage(backend) == []


def test_destroy_volatile_is_noop() -> None:
    assert destroy_storage(VOLATILE) == []


def test_file_storage_round_trips_keys_log_and_blocks(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)

    storage.write_keys(b"p" * 32, b"s" * 32)
    storage.append_log(['{"seq":0}', '{"seq":1}'])
    storage.put_block("abcdef", b"data")

    reopened = FileStorage(tmp_path)
    assert reopened.read_keys() == (b"p" * 32, b"s" * 32)
    assert reopened.read_log() == ['{"seq":0}', '{"seq":1}']
    assert reopened.get_block("abcdef") == b"data"
    assert (tmp_path / "content" / "ab" / "abcdef").is_file()


def test_file_storage_secret_key_is_private(tmp_path: Path) -> None:
    FileStorage(tmp_path).write_keys(b"p" * 32, b"s" * 32)

    mode = os.stat(tmp_path / "metadata" / "secret_key").st_mode & 0o777
    assert mode == 0o600


def test_file_storage_read_only_keys(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)

    storage.write_keys(b"p" * 32, None)

    assert storage.read_keys() == (b"p" * 32, None)


def test_file_storage_missing_block(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)

    assert storage.get_block("ffff") is None
    assert not storage.has_block("ffff")
    assert storage.read_log() == []
