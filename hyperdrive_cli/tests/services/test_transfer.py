import io
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

from hyperdrive_cli.drive.drive import Drive, open_drive
from hyperdrive_cli.exceptions import (
    DirectoryMismatchError,
    MissingArgumentError,
    PathNotFoundError,
    ReadOnlyDriveError,
)
from hyperdrive_cli.models.drive import TransferRange
from hyperdrive_cli.services.mirror import copy_file, mirror
from hyperdrive_cli.services.transfer import TransferService
from hyperdrive_cli.storage.backends import VOLATILE, select_storage

WriteFile = Callable[..., Awaitable[None]]
ReadFile = Callable[..., Awaitable[bytes]]


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    source = tmp_path / "site"
    (source / "css").mkdir(parents=True)
    (source / "index.html").write_bytes(b"<h1>hi</h1>")
    (source / "css" / "main.css").write_bytes(b"body {}")
    return source


@pytest.mark.asyncio
async def test_read_streams_file_to_sink(drive: Drive, write_file: WriteFile) -> None:
    await write_file(drive, "/a.txt", b"hello world")
    sink = io.BytesIO()

    written = await TransferService(drive).read("/a.txt", TransferRange(start=6), sink)

    assert written == 5
    assert sink.getvalue() == b"world"


@pytest.mark.asyncio
async def test_read_directory_writes_nothing(drive: Drive, write_file: WriteFile) -> None:
    await write_file(drive, "/docs/a.txt", b"a")
    sink = io.BytesIO()

    with pytest.raises(DirectoryMismatchError, match="cannot read directory"):
        await TransferService(drive).read("/docs", TransferRange(), sink)

    assert sink.getvalue() == b""


@pytest.mark.asyncio
async def test_read_root_is_a_directory(drive: Drive) -> None:
    with pytest.raises(DirectoryMismatchError):
        await TransferService(drive).read("/", TransferRange(), io.BytesIO())


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [None, ""])
async def test_read_requires_path(drive: Drive, path: str | None) -> None:
    with pytest.raises(MissingArgumentError):
        await TransferService(drive).read(path, TransferRange(), io.BytesIO())


@pytest.mark.asyncio
async def test_read_missing_path(drive: Drive) -> None:
    with pytest.raises(PathNotFoundError):
        await TransferService(drive).read("/nope", TransferRange(), io.BytesIO())


@pytest.mark.asyncio
async def test_write_file_relative_to_cwd(
    drive: Drive, tmp_path: Path, read_file: ReadFile
) -> None:
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "todo.txt").write_bytes(b"buy milk")

    written = await TransferService(drive, cwd=tmp_path).write("notes/todo.txt", TransferRange())

    assert written == ["/notes/todo.txt"]
    assert await read_file(drive, "/notes/todo.txt") == b"buy milk"


@pytest.mark.asyncio
async def test_write_file_with_start_offset(
    drive: Drive, tmp_path: Path, write_file: WriteFile, read_file: ReadFile
) -> None:
    await write_file(drive, "/a.txt", b"AAAAAAAAAA")
    (tmp_path / "a.txt").write_bytes(b"0123456789")

    await TransferService(drive, cwd=tmp_path).write("a.txt", TransferRange(start=6))

    assert await read_file(drive, "/a.txt") == b"AAAAAA6789"


@pytest.mark.asyncio
async def test_write_directory_mirrors_into_root(
    drive: Drive, tree: Path, read_file: ReadFile
) -> None:
    written = await TransferService(drive, cwd=tree.parent).write("site", TransferRange())

    assert written == ["/css/main.css", "/index.html"]
    assert await drive.readdir("/") == ["css", "index.html"]
    assert await read_file(drive, "/css/main.css") == b"body {}"


@pytest.mark.asyncio
async def test_write_missing_local_path(drive: Drive, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="missing.txt"):
        await TransferService(drive, cwd=tmp_path).write("missing.txt", TransferRange())


@pytest.mark.asyncio
async def test_write_requires_path(drive: Drive) -> None:
    with pytest.raises(MissingArgumentError):
        await TransferService(drive).write(None, TransferRange())


@pytest.mark.asyncio
async def test_write_to_read_only_drive(replica: Drive, tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_bytes(b"a")

    with pytest.raises(ReadOnlyDriveError):
        await TransferService(replica, cwd=tmp_path).write("a.txt", TransferRange())


def test_drive_path_outside_cwd_uses_basename(tmp_path: Path) -> None:
    source = tmp_path / "elsewhere" / "report.pdf"

    assert TransferService.drive_path_for(source, tmp_path / "cwd") == "/report.pdf"


def test_drive_path_inside_cwd_is_relative(tmp_path: Path) -> None:
    source = tmp_path / "a" / "b.txt"

    assert TransferService.drive_path_for(source, tmp_path) == "/a/b.txt"


@pytest.mark.asyncio
async def test_copy_file_spans_several_chunks(tmp_path: Path, read_file: ReadFile) -> None:
    source = tmp_path / "big.bin"
    data = bytes(range(256)) * 800
    source.write_bytes(data)

    async with open_drive(VOLATILE) as drive:
        assert await copy_file(drive, source, "/big.bin") == len(data)
        assert (await drive.stat("/big.bin")).blocks == 4
        assert await read_file(drive, "/big.bin") == data


@pytest.mark.asyncio
async def test_mirror_into_subdirectory(drive: Drive, tree: Path) -> None:
    written = await mirror(tree, drive, "/www")

    assert written == ["/www/css/main.css", "/www/index.html"]
    assert await drive.readdir("/www") == ["css", "index.html"]


@pytest.mark.asyncio
async def test_mirror_skips_drive_storage(tmp_path: Path) -> None:
    (tmp_path / "page.html").write_bytes(b"<p>")
    async with open_drive(select_storage(False, tmp_path)) as drive:
        written = await mirror(tmp_path, drive)

        assert written == ["/page.html"]
        assert await drive.readdir("/") == ["page.html"]
