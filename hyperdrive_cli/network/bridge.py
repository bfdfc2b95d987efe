"""
HTTP bridge serving a drive's content.

Routes:
    GET /.hyperdrive/info            drive key, discovery key and version
    GET /.hyperdrive/log?since=N     signed log entries from N onwards
    GET /.hyperdrive/blocks/{digest} raw content block
    GET /{path}                      file content (Range aware) or directory listing
"""

from types import TracebackType
from typing import Self

import structlog
from aiohttp import web

from hyperdrive_cli.drive.drive import Drive
from hyperdrive_cli.exceptions import (
    BlockNotAvailableError,
    DirectoryMismatchError,
    PathNotFoundError,
)
from hyperdrive_cli.models.drive import TransferRange

logger = structlog.get_logger(__name__)

API_PREFIX = "/.hyperdrive"
DRIVE = web.AppKey("drive", Drive)


def create_app(drive: Drive) -> web.Application:
    """
    Build the bridge application for a ready drive.

    Args:
        drive: Ready drive to serve.
    """
    app = web.Application()
    app[DRIVE] = drive
    app.router.add_get(f"{API_PREFIX}/info", handle_info)
    app.router.add_get(f"{API_PREFIX}/log", handle_log)
    app.router.add_get(f"{API_PREFIX}/blocks/{{digest}}", handle_block)
    app.router.add_get("/{path:.*}", handle_path)
    return app


async def handle_info(request: web.Request) -> web.Response:
    drive = request.app[DRIVE]
    return web.json_response(
        {
            "key": drive.key.hex(),
            "discovery_key": drive.discovery_key.hex(),
            "version": drive.version,
        }
    )


async def handle_log(request: web.Request) -> web.Response:
    try:
        since = int(request.query.get("since", "0"))
    except ValueError:
        raise web.HTTPBadRequest(text="since must be an integer") from None
    entries = request.app[DRIVE].log_since(since)
    return web.json_response([entry.to_dict() for entry in entries])


async def handle_block(request: web.Request) -> web.Response:
    data = request.app[DRIVE].get_block(request.match_info["digest"])
    if data is None:
        raise web.HTTPNotFound(text="block not available")
    return web.Response(body=data, content_type="application/octet-stream")


async def handle_path(request: web.Request) -> web.StreamResponse:
    drive = request.app[DRIVE]
    path = "/" + request.match_info["path"]
    try:
        stat = await drive.stat(path)
    except PathNotFoundError:
        raise web.HTTPNotFound(text=f"not found: {path}") from None

    if stat.is_directory:
        return web.json_response({"path": stat.path, "entries": await drive.readdir(stat.path)})

    try:
        window = request.http_range
    except ValueError:
        raise web.HTTPRequestRangeNotSatisfiable() from None
    rng, partial = _to_transfer_range(window, stat.size)
    begin, stop = rng.resolve(stat.size)
    if partial and begin >= stop:
        raise web.HTTPRequestRangeNotSatisfiable(headers={"Content-Range": f"bytes */{stat.size}"})

    response = web.StreamResponse(status=206 if partial else 200)
    response.content_type = "application/octet-stream"
    response.content_length = stop - begin
    response.headers["Accept-Ranges"] = "bytes"
    if partial:
        response.headers["Content-Range"] = f"bytes {begin}-{stop - 1}/{stat.size}"

    try:
        stream = drive.create_read_stream(stat.path, rng)
        first = await anext(stream, None)
    except (BlockNotAvailableError, DirectoryMismatchError) as e:
        raise web.HTTPServiceUnavailable(text=e.message) from None

    await response.prepare(request)
    if first is not None:
        await response.write(first)
        async for chunk in stream:
            await response.write(chunk)
    await response.write_eof()
    return response


def _to_transfer_range(window: slice, size: int) -> tuple[TransferRange, bool]:
    start, stop = window.start, window.stop
    if start is None and stop is None:
        return TransferRange(), False
    if start is not None and start < 0:
        # suffix range, "bytes=-N"
        return TransferRange(start=max(size + start, 0)), True
    end = stop - 1 if stop is not None else None
    return TransferRange(start=start or 0, end=end), True


class BridgeServer:
    """
    Runs the bridge application on a TCP port.

    Use as an async context manager; the server is stopped on exit.
    """

    def __init__(self, drive: Drive, *, host: str = "0.0.0.0", port: int = 3000) -> None:
        self._drive = drive
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    @property
    def port(self) -> int:
        """Bound port, resolved once started when 0 was requested."""
        if self._runner is not None and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    async def start(self) -> None:
        runner = web.AppRunner(create_app(self._drive), access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        logger.debug("Bridge listening", host=self._host, port=self.port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.debug("Bridge stopped")
