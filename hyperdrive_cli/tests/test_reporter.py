import pytest

from hyperdrive_cli.exceptions import MissingArgumentError
from hyperdrive_cli.reporter import (
    EXIT_FAILURE,
    SUCCESS,
    ErrorReporter,
    FatalError,
    Outcome,
    run,
    supervise,
)


def test_info_goes_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    ErrorReporter().info("Wrote %s", "/a.txt")

    captured = capsys.readouterr()
    assert captured.out == "Wrote /a.txt\n"
    assert captured.err == ""


def test_error_goes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    ErrorReporter().error("bad %d", 3)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "bad 3\n"


def test_message_without_args_is_not_formatted(capsys: pytest.CaptureFixture[str]) -> None:
    ErrorReporter().info("100% done")

    assert capsys.readouterr().out == "100% done\n"


def test_fatal_reports_and_raises(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(FatalError) as exc_info:
        ErrorReporter().fatal("cannot %s", "continue")

    assert exc_info.value.exit_code == EXIT_FAILURE
    assert capsys.readouterr().err == "cannot continue\n"


@pytest.mark.asyncio
async def test_supervise_returns_handler_exit_code() -> None:
    async def handler() -> Outcome:
        return Outcome(exit_code=3)

    assert await supervise(handler, ErrorReporter()) == 3


@pytest.mark.asyncio
async def test_supervise_reports_escaping_exception(capsys: pytest.CaptureFixture[str]) -> None:
    async def handler() -> Outcome:
        raise MissingArgumentError()

    code = await supervise(handler, ErrorReporter())

    assert code == EXIT_FAILURE
    assert capsys.readouterr().err == "path required\n"


@pytest.mark.asyncio
async def test_supervise_does_not_report_fatal_twice(capsys: pytest.CaptureFixture[str]) -> None:
    reporter = ErrorReporter()

    async def handler() -> Outcome:
        reporter.fatal("stop")

    assert await supervise(handler, reporter) == EXIT_FAILURE
    assert capsys.readouterr().err == "stop\n"


@pytest.mark.asyncio
async def test_supervise_names_exception_without_message(
    capsys: pytest.CaptureFixture[str],
) -> None:
    async def handler() -> Outcome:
        raise KeyError

    assert await supervise(handler, ErrorReporter()) == EXIT_FAILURE
    assert capsys.readouterr().err == "KeyError\n"


def test_run_executes_on_fresh_loop() -> None:
    async def handler() -> Outcome:
        return SUCCESS

    assert run(handler, ErrorReporter()) == 0
    assert SUCCESS.ok
