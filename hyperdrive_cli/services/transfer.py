"""
Byte-range aware transfers between local streams/files and a drive.
"""

import os
from pathlib import Path
from typing import BinaryIO

import structlog

from hyperdrive_cli.drive.drive import ROOT, Drive, normalize_path
from hyperdrive_cli.exceptions import DirectoryMismatchError, MissingArgumentError
from hyperdrive_cli.models.drive import TransferRange
from hyperdrive_cli.services.mirror import copy_file, mirror

logger = structlog.get_logger(__name__)


class TransferService:
    """
    Service for streaming file content in and out of a drive.

    Args:
        drive: Ready drive.
        cwd: Directory local paths are resolved against, defaults to the cwd.
    """

    def __init__(self, drive: Drive, *, cwd: Path | None = None) -> None:
        self._drive = drive
        self._cwd = cwd

    async def read(self, path: str | None, rng: TransferRange, sink: BinaryIO) -> int:
        """
        Stream a drive file to ``sink``.

        Args:
            path: Drive path of the file.
            rng: Byte window to read.
            sink: Binary output stream.

        Returns:
            Number of bytes written to ``sink``.

        Raises:
            MissingArgumentError: If no path is given.
            PathNotFoundError: If the path doesn't exist.
            DirectoryMismatchError: If the path is a directory. Nothing is
                written in that case.
        """
        if not path:
            raise MissingArgumentError("path required for read")
        stat = await self._drive.stat(path)
        if stat.is_directory:
            msg = "cannot read directory"
            raise DirectoryMismatchError(msg, path=stat.path)

        written = 0
        async for chunk in self._drive.create_read_stream(stat.path, rng):
            sink.write(chunk)
            written += len(chunk)
        sink.flush()
        logger.debug("File read", path=stat.path, bytes=written)
        return written

    async def write(self, local_path: str | None, rng: TransferRange) -> list[str]:
        """
        Copy a local file, or mirror a local directory, into the drive.

        A directory is mirrored into the drive root and ``rng`` is ignored. A
        file is read from ``rng.start`` and written at the same offset of the
        drive file named after its path relative to the working directory.

        Returns:
            Drive paths written.

        Raises:
            MissingArgumentError: If no path is given.
            FileNotFoundError: If the local path doesn't exist.
            ReadOnlyDriveError: If the drive is not writable.
        """
        if not local_path:
            raise MissingArgumentError("path required for write")
        cwd = self._cwd or Path.cwd()
        source = Path(os.path.normpath(cwd.absolute() / local_path))
        if source.is_dir():
            written = await mirror(source, self._drive, ROOT)
            logger.debug("Directory mirrored", source=str(source), files=len(written))
            return written
        if not source.exists():
            msg = f"No such file or directory: {local_path}"
            raise FileNotFoundError(msg)

        target = self.drive_path_for(source, cwd)
        copied = await copy_file(self._drive, source, target, start=rng.offset)
        logger.debug("File written", source=str(source), target=target, bytes=copied)
        return [target]

    @staticmethod
    def drive_path_for(source: Path, cwd: Path) -> str:
        """Drive path for a local file: relative to ``cwd``, else its basename."""
        try:
            relative = source.relative_to(cwd.absolute())
        except ValueError:
            return normalize_path(source.name)
        return normalize_path(relative.as_posix())
