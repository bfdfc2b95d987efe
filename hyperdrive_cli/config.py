"""
Hyperdrive CLI configuration.

Settings are layered, lowest precedence first: built-in defaults, the user
file, the project file, an explicit ``--config`` file, then ``HYPERDRIVE_*``
environment variables. Command-line flags are applied on top by the CLI.
"""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import structlog

from hyperdrive_cli.exceptions import ConfigError

logger = structlog.get_logger(__name__)

PROGRAM_NAME = "hyperdrive"
USER_CONFIG_PATH = Path("~/.config") / PROGRAM_NAME / "config.toml"
PROJECT_CONFIG_NAME = f".{PROGRAM_NAME}rc.toml"
ENV_PREFIX = "HYPERDRIVE_"

DEFAULT_COMMANDS: dict[str, tuple[str, ...]] = {
    "init": ("create",),
    "info": ("i",),
    "stat": ("s", "st"),
    "read": ("r", "cat"),
    "write": ("w", "put"),
    "unlink": ("rm", "u"),
    "readdir": ("ls", "dir"),
    "upload": ("up", "seed"),
    "download": ("down", "dl", "fetch"),
    "serve": ("http", "host"),
    "destroy": ("nuke", "rimraf"),
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True, kw_only=True)
class HyperdriveConfig:
    """
    Attributes:
        commands: Canonical command name to its aliases.
        sparse: Only fetch content blocks when a path is explicitly downloaded.
        sparse_metadata: Only fetch the metadata log when a download needs it.
        port: HTTP bridge bind port.
        block_size: Size of content blocks in bytes.
        discovery_timeout: Seconds to wait while resolving a discovered peer.
        service_type: Zeroconf service type announced and browsed for.
    """

    commands: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_COMMANDS)
    )
    sparse: bool = True
    sparse_metadata: bool = True
    port: int = 3000
    block_size: int = 64 * 1024
    discovery_timeout: float = 3.0
    service_type: str = "_hyperdrive._tcp.local."

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            msg = "port must be between 0 and 65535"
            raise ConfigError(msg, port=self.port)
        if self.block_size <= 0:
            msg = "block_size must be positive"
            raise ConfigError(msg, block_size=self.block_size)
        if self.discovery_timeout <= 0:
            msg = "discovery_timeout must be positive"
            raise ConfigError(msg, discovery_timeout=self.discovery_timeout)
        if not self.service_type.endswith(".local."):
            msg = "service_type must end with '.local.'"
            raise ConfigError(msg, service_type=self.service_type)


def load_config(
    config_file: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> HyperdriveConfig:
    """
    Build the effective configuration from every layer.

    Args:
        config_file: Explicit configuration file, must exist when given.
        env: Environment mapping, defaults to ``os.environ``.
        cwd: Directory searched for the project file, defaults to the cwd.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If a file cannot be parsed or a value is invalid.
    """
    env = os.environ if env is None else env
    cwd = Path.cwd() if cwd is None else cwd

    config = HyperdriveConfig()
    for path in (USER_CONFIG_PATH.expanduser(), cwd / PROJECT_CONFIG_NAME):
        if path.is_file():
            config = merge_config(config, _read_toml(path))

    if config_file is not None:
        path = Path(config_file).expanduser()
        if not path.is_file():
            msg = "Config file not found"
            raise ConfigError(msg, path=str(path))
        config = merge_config(config, _read_toml(path))

    return merge_config(config, _from_env(env))


def merge_config(config: HyperdriveConfig, overrides: Mapping[str, Any]) -> HyperdriveConfig:
    """
    Apply a layer of overrides on top of ``config``.

    The ``commands`` table merges per command; other keys replace.

    Raises:
        ConfigError: On unknown keys or values of the wrong type.
    """
    known = {f.name: f for f in fields(HyperdriveConfig)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            msg = "Unknown configuration key"
            raise ConfigError(msg, key=key)
        if key == "commands":
            changes["commands"] = _merge_commands(config.commands, value)
        else:
            changes[key] = _coerce(key, value, type(getattr(config, key)))
    if not changes:
        return config
    logger.debug("Config layer applied", keys=sorted(changes))
    return replace(config, **changes)


def _merge_commands(
    current: Mapping[str, tuple[str, ...]], table: Any
) -> dict[str, tuple[str, ...]]:
    if not isinstance(table, Mapping):
        msg = "commands must be a table"
        raise ConfigError(msg)
    merged = dict(current)
    for name, aliases in table.items():
        if isinstance(aliases, str) or not all(isinstance(a, str) for a in aliases):
            msg = "command aliases must be a list of strings"
            raise ConfigError(msg, command=name)
        merged[name] = tuple(aliases)
    return merged


def _coerce(key: str, value: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
    elif kind in (int, float):
        if isinstance(value, bool):
            pass
        elif isinstance(value, int | float):
            return kind(value)
        elif isinstance(value, str):
            try:
                return kind(value)
            except ValueError:
                pass
    elif isinstance(value, kind):
        return value
    msg = f"Invalid value for {key}"
    raise ConfigError(msg, key=key, value=value)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"Could not read config file: {e}"
        raise ConfigError(msg, path=str(path)) from e
    logger.debug("Config file loaded", path=str(path))
    return data


def _from_env(env: Mapping[str, str]) -> dict[str, str]:
    result = {}
    for f in fields(HyperdriveConfig):
        if f.name == "commands":
            continue
        name = ENV_PREFIX + f.name.upper()
        if name in env:
            result[f.name] = env[name]
    return result
