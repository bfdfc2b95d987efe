"""
Command-line interface.

    hyperdrive [global-flags] <command> [-- pathspec]

Each command handler is a coroutine returning an ``Outcome``; ``reporter.run``
supervises it and its exit code is the only way the process terminates.
"""

import asyncio
import json
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import click
import structlog

from hyperdrive_cli import __version__
from hyperdrive_cli.commands import CommandRouter
from hyperdrive_cli.config import PROGRAM_NAME, HyperdriveConfig, load_config, merge_config
from hyperdrive_cli.drive.drive import ROOT, Drive, DriveOptions, open_drive
from hyperdrive_cli.drive.keys import parse_key
from hyperdrive_cli.exceptions import HyperdriveError, MissingArgumentError
from hyperdrive_cli.log import configure_logging, debug_requested
from hyperdrive_cli.models.drive import TransferRange
from hyperdrive_cli.reporter import EXIT_FAILURE, SUCCESS, ErrorReporter, Outcome, run
from hyperdrive_cli.services.replication import ReplicationOrchestrator
from hyperdrive_cli.services.transfer import TransferService
from hyperdrive_cli.storage.backends import destroy_storage, select_storage

logger = structlog.get_logger(__name__)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_CONFIG_META = "hyperdrive.config"


@dataclass(kw_only=True)
class CliState:
    """Global flags and configuration shared by every command."""

    config: HyperdriveConfig
    reporter: ErrorReporter = field(default_factory=ErrorReporter)
    key: bytes | None = None
    ram: bool = False
    rng: TransferRange = field(default_factory=TransferRange)

    @property
    def drive_options(self) -> DriveOptions:
        return DriveOptions(
            sparse=self.config.sparse,
            sparse_metadata=self.config.sparse_metadata,
            block_size=self.config.block_size,
        )

    def drive(self, explicit_path: str | None = None) -> Drive:
        """Drive handle for the selected backend; ``async with`` awaits readiness."""
        backend = select_storage(self.ram, explicit_path)
        return open_drive(backend, self.key, self.drive_options)

    def run(self, handler: Callable[..., Awaitable[Outcome]], *args: Any) -> None:
        """Supervise a handler and exit with its code."""
        code = run(lambda: handler(self, *args), self.reporter)
        click.get_current_context().exit(code)


def _load_settings(ctx: click.Context) -> HyperdriveConfig:
    if _CONFIG_META not in ctx.meta:
        try:
            config = load_config(ctx.params.get("config_file"))
            if ctx.params.get("port") is not None:
                config = merge_config(config, {"port": ctx.params["port"]})
        except HyperdriveError as e:
            ErrorReporter().error("%s", e)
            ctx.exit(1)
        ctx.meta[_CONFIG_META] = config
    return ctx.meta[_CONFIG_META]


class AliasedGroup(click.Group):
    """
    Group resolving commands through the configured alias table.

    Usage errors (unknown options, bad option values) exit with 1 like every
    other failure.
    """

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        token = click.utils.make_str(args[0])
        try:
            router = CommandRouter(_load_settings(ctx).commands)
        except HyperdriveError as e:
            ErrorReporter().error("%s", e)
            ctx.exit(1)
        name = router.resolve(token)
        command = self.get_command(ctx, name) if name is not None else None
        if command is None:
            ErrorReporter().error("Unknown command: %s (see --help)", token)
            ctx.exit(1)
        return name, command, args[1:]


@click.group(
    cls=AliasedGroup,
    context_settings=CONTEXT_SETTINGS,
    invoke_without_command=True,
    no_args_is_help=False,
)
@click.version_option(__version__, "-V", "--version", prog_name=PROGRAM_NAME)
@click.option("-k", "--key", default=None, help="Public key (hex) of the drive to open.")
@click.option("-D", "--debug", is_flag=True, help="Print debug traces to stderr.")
@click.option("-S", "--start", type=click.IntRange(min=0), help="Start offset.")
@click.option("-E", "--end", type=click.IntRange(min=0), help="End offset (inclusive).")
@click.option("-L", "--length", type=click.IntRange(min=0), help="Byte count; wins over --end.")
@click.option("-p", "--port", type=click.IntRange(0, 65535), help="HTTP bridge port [3000].")
@click.option("-M", "--ram", is_flag=True, help="Use volatile in-memory storage.")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Extra configuration file (TOML).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    key: str | None,
    debug: bool,
    start: int | None,
    end: int | None,
    length: int | None,
    port: int | None,
    ram: bool,
    config_file: str | None,
) -> None:
    """Work with versioned, peer-replicated drives."""
    configure_logging(debug_requested(debug))
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(1)

    reporter = ErrorReporter()
    public_key = None
    if key is not None:
        try:
            public_key = parse_key(key)
        except ValueError as e:
            reporter.error("Invalid key: %s", e)
            ctx.exit(1)

    ctx.obj = CliState(
        config=_load_settings(ctx),
        reporter=reporter,
        key=public_key,
        ram=ram,
        rng=TransferRange(start=start, end=end, length=length),
    )


def _require(path: str | None, command: str) -> str:
    if not path:
        raise MissingArgumentError(f"path required for {command}")
    return path


def _shutdown_event() -> asyncio.Event:
    event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, event.set)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handler unavailable", signal=sig.name)
    return event


async def _init(state: CliState, path: str | None) -> Outcome:
    async with state.drive(path) as drive:
        state.reporter.info("Initialized drive in %s", drive.storage.describe())
        state.reporter.info("key: %s", drive.key.hex())
    return SUCCESS


async def _info(state: CliState, path: str | None) -> Outcome:
    async with state.drive(path) as drive:
        state.reporter.info("storage: %s", drive.storage.describe())
        state.reporter.info("key: %s", drive.key.hex())
        state.reporter.info("discovery key: %s", drive.discovery_key.hex())
        state.reporter.info("version: %d", drive.version)
        state.reporter.info("writable: %s", "yes" if drive.writable else "no")
    return SUCCESS


async def _stat(state: CliState, path: str | None) -> Outcome:
    async with state.drive() as drive:
        stat = await drive.stat(path or ROOT)
    state.reporter.info("%s", json.dumps(stat.to_dict(), indent=2))
    return SUCCESS


async def _read(state: CliState, path: str | None) -> Outcome:
    path = _require(path, "read")
    async with state.drive() as drive:
        await TransferService(drive).read(path, state.rng, click.get_binary_stream("stdout"))
    return SUCCESS


async def _write(state: CliState, path: str | None) -> Outcome:
    path = _require(path, "write")
    async with state.drive() as drive:
        written = await TransferService(drive).write(path, state.rng)
    if len(written) == 1:
        state.reporter.info("Wrote %s", written[0])
    else:
        state.reporter.info("Mirrored %d file(s) into %s", len(written), ROOT)
    return SUCCESS


async def _unlink(state: CliState, path: str | None) -> Outcome:
    path = _require(path, "unlink")
    async with state.drive() as drive:
        await drive.access(path)
        await drive.unlink(path)
    state.reporter.info("Removed %s", path)
    return SUCCESS


async def _readdir(state: CliState, path: str | None) -> Outcome:
    async with state.drive() as drive:
        names = await drive.readdir(path or ROOT)
    for name in names:
        state.reporter.info("%s", name)
    return SUCCESS


async def _upload(state: CliState) -> Outcome:
    shutdown = _shutdown_event()
    async with state.drive() as drive:
        orchestrator = ReplicationOrchestrator(drive, state.config)
        async with orchestrator.upload() as session:
            state.reporter.info("Seeding %s", drive.key.hex())
            await session.wait(shutdown)
    return SUCCESS


async def _download(state: CliState, path: str | None) -> Outcome:
    path = path or ROOT
    async with state.drive() as drive:
        state.reporter.info("Downloading %s of %s", path, drive.key.hex())
        fetched = await ReplicationOrchestrator(drive, state.config).download(path)
    if fetched:
        state.reporter.info("Downloaded %s", path)
    else:
        state.reporter.info("%s is already available", path)
    return SUCCESS


async def _serve(state: CliState) -> Outcome:
    shutdown = _shutdown_event()
    async with state.drive() as drive:
        orchestrator = ReplicationOrchestrator(drive, state.config)
        async with orchestrator.serve() as (bridge, session):
            state.reporter.info("Serving %s on http://localhost:%d", drive.key.hex(), bridge.port)
            await session.wait(shutdown)
    return SUCCESS


async def _destroy(state: CliState, path: str | None) -> Outcome:
    backend = select_storage(state.ram, path)
    removed = destroy_storage(backend)
    if removed:
        state.reporter.info("Destroyed drive in %s", backend.describe())
    else:
        state.reporter.info("No drive in %s", backend.describe())
    return SUCCESS


@cli.command()
@click.argument("directory", required=False)
@click.pass_obj
def init(state: CliState, directory: str | None) -> None:
    """Create a drive (in DIRECTORY, default cwd)."""
    state.run(_init, directory)


@cli.command()
@click.argument("directory", required=False)
@click.pass_obj
def info(state: CliState, directory: str | None) -> None:
    """Show storage location, key and version."""
    state.run(_info, directory)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def stat(state: CliState, path: str | None) -> None:
    """Show metadata of a drive path (default /)."""
    state.run(_stat, path)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def read(state: CliState, path: str | None) -> None:
    """Write a drive file to stdout."""
    state.run(_read, path)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def write(state: CliState, path: str | None) -> None:
    """Copy a local file, or mirror a local directory, into the drive."""
    state.run(_write, path)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def unlink(state: CliState, path: str | None) -> None:
    """Remove a drive file."""
    state.run(_unlink, path)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def readdir(state: CliState, path: str | None) -> None:
    """List a drive directory (default /)."""
    state.run(_readdir, path)


@cli.command()
@click.pass_obj
def upload(state: CliState) -> None:
    """Seed the drive to peers on the local network."""
    state.run(_upload)


@cli.command()
@click.argument("path", required=False)
@click.pass_obj
def download(state: CliState, path: str | None) -> None:
    """Fetch a drive path from peers unless already present."""
    state.run(_download, path)


@cli.command()
@click.pass_obj
def serve(state: CliState) -> None:
    """Serve the drive over HTTP and replicate live."""
    state.run(_serve)


@cli.command()
@click.argument("directory", required=False)
@click.pass_obj
def destroy(state: CliState, directory: str | None) -> None:
    """Delete the drive's metadata and content (in DIRECTORY, default cwd)."""
    state.run(_destroy, directory)


def main() -> None:
    cli(prog_name=PROGRAM_NAME)
