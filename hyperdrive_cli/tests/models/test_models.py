import pytest

from hyperdrive_cli.models.drive import NodeType, Stat, TransferRange


def test_unconstrained_range_covers_whole_file() -> None:
    assert TransferRange().resolve(100) == (0, 100)


def test_start_and_length() -> None:
    assert TransferRange(start=10, length=5).resolve(100) == (10, 15)


def test_end_is_inclusive() -> None:
    assert TransferRange(start=2, end=4).resolve(100) == (2, 5)


def test_length_wins_over_end() -> None:
    assert TransferRange(start=0, end=50, length=3).resolve(100) == (0, 3)


def test_range_is_clipped_to_file_size() -> None:
    assert TransferRange(start=8, length=10).resolve(10) == (8, 10)


def test_start_past_end_of_file_is_empty() -> None:
    assert TransferRange(start=20).resolve(10) == (10, 10)


def test_inverted_window_is_empty() -> None:
    assert TransferRange(start=5, end=2).resolve(10) == (5, 5)


def test_negative_values_are_rejected() -> None:
    with pytest.raises(ValueError, match="length must be non-negative"):
        TransferRange(length=-1)


def test_offset_defaults_to_zero() -> None:
    assert TransferRange().offset == 0
    assert TransferRange(start=7).offset == 7


def test_file_stat_to_dict() -> None:
    stat = Stat(path="/a.txt", node_type=NodeType.FILE, size=12, blocks=3, mtime=0.0, version=4)

    assert stat.to_dict() == {
        "path": "/a.txt",
        "type": "file",
        "version": 4,
        "size": 12,
        "blocks": 3,
        "mtime": "1970-01-01T00:00:00+00:00",
    }


def test_directory_stat_to_dict_omits_size() -> None:
    stat = Stat(path="/", node_type=NodeType.DIRECTORY, version=2)

    assert stat.is_directory
    assert stat.to_dict() == {"path": "/", "type": "directory", "version": 2}
