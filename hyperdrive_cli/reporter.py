"""
User-facing reporting and the command supervisor.

``info`` lines go to stdout, ``error`` lines to stderr, and ``fatal`` emits an
error and unwinds to the supervisor, which is the only place that turns a
command's result into a process exit code.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, NoReturn

import click
import structlog

logger = structlog.get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of a command handler."""

    exit_code: int = EXIT_SUCCESS

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_SUCCESS


SUCCESS = Outcome()


class FatalError(Exception):
    """Raised by ``ErrorReporter.fatal`` once the error line has been emitted."""

    def __init__(self, message: str, exit_code: int = EXIT_FAILURE) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def _render(fmt: str, args: tuple[Any, ...]) -> str:
    return fmt % args if args else fmt


class ErrorReporter:
    """Three-tier status output: info, error, fatal."""

    def info(self, fmt: str, *args: Any) -> None:
        """Print a status line to stdout."""
        click.echo(_render(fmt, args))

    def error(self, fmt: str, *args: Any) -> None:
        """Print a problem line to stderr. Processing continues."""
        click.echo(_render(fmt, args), err=True)

    def fatal(self, fmt: str, *args: Any) -> NoReturn:
        """
        Print a problem line and abort the running command.

        Raises:
            FatalError: Always; the supervisor maps it to exit code 1.
        """
        message = _render(fmt, args)
        self.error(message)
        raise FatalError(message)


def describe(error: BaseException) -> str:
    """Message used when reporting an unexpected failure."""
    return str(error) or type(error).__name__


async def supervise(
    handler: Callable[[], Awaitable[Outcome]], reporter: ErrorReporter
) -> int:
    """
    Run a command handler inside a single error boundary.

    Any exception escaping the handler, including those raised from tasks it
    awaits, is traced on the debug channel and reported as fatal.

    Args:
        handler: Zero-argument coroutine function returning an Outcome.
        reporter: Reporter used for the fatal line.

    Returns:
        Process exit code.
    """
    try:
        outcome = await handler()
    except FatalError as e:
        return e.exit_code
    except Exception as e:
        logger.debug("Command failed", exc_info=e)
        try:
            reporter.fatal("%s", describe(e))
        except FatalError as fatal:
            return fatal.exit_code
    return outcome.exit_code


def run(handler: Callable[[], Awaitable[Outcome]], reporter: ErrorReporter) -> int:
    """Run ``handler`` on a fresh event loop under ``supervise``."""
    return asyncio.run(supervise(handler, reporter))
