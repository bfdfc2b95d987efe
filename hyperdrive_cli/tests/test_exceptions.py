from hyperdrive_cli.exceptions import (
    DirectoryMismatchError,
    DuplicateAliasError,
    HyperdriveError,
    MissingArgumentError,
    PathError,
    PeerError,
    ReplicationError,
)


def test_hyperdrive_error_str_without_context() -> None:
    error = HyperdriveError("Something failed")

    assert str(error) == "Something failed"


def test_hyperdrive_error_str_with_context() -> None:
    error = HyperdriveError("Failed", path="/a", attempt=3)

    assert "Failed" in str(error)
    assert "path='/a'" in str(error)
    assert "attempt=3" in str(error)


def test_missing_argument_error_has_default_message() -> None:
    assert str(MissingArgumentError()) == "path required"


def test_directory_mismatch_error_is_a_path_error_carrying_path() -> None:
    error = DirectoryMismatchError("cannot read directory", path="/docs")

    assert isinstance(error, PathError)
    assert error.path == "/docs"
    assert str(error) == "cannot read directory (path='/docs')"


def test_peer_error_is_a_replication_error() -> None:
    error = PeerError("unreachable", peer="http://10.0.0.2:3000")

    assert isinstance(error, ReplicationError)
    assert error.peer == "http://10.0.0.2:3000"


def test_duplicate_alias_error_keeps_alias() -> None:
    assert DuplicateAliasError("clash", alias="ls").alias == "ls"
