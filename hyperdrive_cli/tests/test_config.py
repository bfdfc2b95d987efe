from pathlib import Path

import pytest

from hyperdrive_cli.config import (
    DEFAULT_COMMANDS,
    PROJECT_CONFIG_NAME,
    HyperdriveConfig,
    load_config,
    merge_config,
)
from hyperdrive_cli.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


def test_defaults() -> None:
    config = HyperdriveConfig()

    assert config.sparse is True
    assert config.sparse_metadata is True
    assert config.port == 3000
    assert config.block_size == 64 * 1024
    assert dict(config.commands) == DEFAULT_COMMANDS


def test_invalid_port_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="port"):
        HyperdriveConfig(port=70000)


def test_invalid_block_size_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="block_size"):
        HyperdriveConfig(block_size=0)


def test_load_config_without_files_returns_defaults(tmp_path: Path) -> None:
    assert load_config(env={}, cwd=tmp_path) == HyperdriveConfig()


def test_project_file_overrides_defaults(tmp_path: Path) -> None:
    (tmp_path / PROJECT_CONFIG_NAME).write_text("port = 4000\nsparse = false\n")

    config = load_config(env={}, cwd=tmp_path)

    assert config.port == 4000
    assert config.sparse is False


def test_user_file_is_read(tmp_path: Path, isolated_home: Path) -> None:
    user_dir = isolated_home / ".config" / "hyperdrive"
    user_dir.mkdir(parents=True)
    (user_dir / "config.toml").write_text("block_size = 1024\n")

    assert load_config(env={}, cwd=tmp_path).block_size == 1024


def test_explicit_file_beats_project_file(tmp_path: Path) -> None:
    (tmp_path / PROJECT_CONFIG_NAME).write_text("port = 4000\n")
    explicit = tmp_path / "explicit.toml"
    explicit.write_text("port = 5000\n")

    assert load_config(explicit, env={}, cwd=tmp_path).port == 5000


def test_environment_beats_files(tmp_path: Path) -> None:
    (tmp_path / PROJECT_CONFIG_NAME).write_text("port = 4000\nsparse_metadata = true\n")
    env = {"HYPERDRIVE_PORT": "6000", "HYPERDRIVE_SPARSE_METADATA": "no"}

    config = load_config(env=env, cwd=tmp_path)

    assert config.port == 6000
    assert config.sparse_metadata is False


def test_missing_explicit_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.toml", env={}, cwd=tmp_path)


def test_malformed_file_raises(tmp_path: Path) -> None:
    (tmp_path / PROJECT_CONFIG_NAME).write_text("port = = 1\n")

    with pytest.raises(ConfigError, match="Could not read config file"):
        load_config(env={}, cwd=tmp_path)


def test_invalid_environment_value_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Invalid value for port"):
        load_config(env={"HYPERDRIVE_PORT": "abc"}, cwd=tmp_path)


def test_merge_rejects_unknown_keys() -> None:
    with pytest.raises(ConfigError, match="Unknown configuration key"):
        merge_config(HyperdriveConfig(), {"colour": "blue"})


def test_merge_commands_per_command() -> None:
    config = merge_config(HyperdriveConfig(), {"commands": {"read": ["cat", "get"]}})

    assert config.commands["read"] == ("cat", "get")
    assert config.commands["write"] == DEFAULT_COMMANDS["write"]


def test_merge_rejects_string_aliases() -> None:
    with pytest.raises(ConfigError, match="list of strings"):
        merge_config(HyperdriveConfig(), {"commands": {"read": "cat"}})


def test_merge_without_overrides_returns_same_config() -> None:
    config = HyperdriveConfig()

    assert merge_config(config, {}) is config
