"""
Copy local files and directory trees into a drive.
"""

import posixpath
from pathlib import Path

import structlog

from hyperdrive_cli.drive.drive import ROOT, Drive, normalize_path
from hyperdrive_cli.storage.file import CONTENT_DIR, METADATA_DIR

logger = structlog.get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


async def copy_file(drive: Drive, source: Path, target: str, start: int = 0) -> int:
    """
    Stream a local file into a drive file.

    Args:
        drive: Ready, writable drive.
        source: Local file.
        target: Drive path to write.
        start: Offset applied to both the local reader and the drive writer.

    Returns:
        Number of bytes copied.
    """
    copied = 0
    with source.open("rb") as f:
        f.seek(start)
        async with drive.create_write_stream(target, start=start) as writer:
            while chunk := f.read(_CHUNK_SIZE):
                await writer.write(chunk)
                copied += len(chunk)
    return copied


async def mirror(source: Path, drive: Drive, name: str = ROOT) -> list[str]:
    """
    Recursively copy a local directory into a drive, preserving structure.

    The drive's own ``metadata`` and ``content`` directories are skipped when
    the drive is stored inside ``source``.

    Args:
        source: Local directory.
        drive: Ready, writable drive.
        name: Drive directory the tree is copied into.

    Returns:
        Drive paths written, in walk order.
    """
    skip = set()
    if not drive.storage.is_volatile:
        skip = {drive.storage.path / METADATA_DIR, drive.storage.path / CONTENT_DIR}

    written = []
    for path in sorted(source.rglob("*")):
        if not path.is_file() or any(path.is_relative_to(s) for s in skip):
            continue
        target = normalize_path(posixpath.join(name, path.relative_to(source).as_posix()))
        await copy_file(drive, path, target)
        written.append(target)
        logger.debug("Mirrored file", source=str(path), target=target)
    return written
