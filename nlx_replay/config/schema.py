"""
Configuration schema for nlx-replay.

Supports:
- YAML file loading
- Environment variable substitution (${VAR_NAME})
- Validation with error messages

Example config (nlx-replay.yml):
    version: 1

    network:
      host: ${NLX_REPLAY_HOST}
      port: 26090

    replay:
      max_records: 1000
      speed: 1.0
      packet_size: auto
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, List, Optional, Union, get_args, get_origin, get_type_hints

import yaml

from ..core.errors import ConfigError


LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _substitute_env_vars(value: Any) -> Any:
    """
    Substitute ${VAR_NAME} with environment variable values.

    Example:
        ${NLX_REPLAY_HOST} → os.environ.get('NLX_REPLAY_HOST')
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace(match):
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                return match.group(0)  # Keep original if not found
            return env_value

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]

    return value


_TRUE_WORDS = ('true', 'yes', 'on', '1')
_FALSE_WORDS = ('false', 'no', 'off', '0')


def _convert(value: Any, kind: Any) -> Any:
    """
    Convert a config value to its field type.

    Values substituted from the environment arrive as strings, so
    "26091" becomes 26091 for an int field.

    Raises:
        ValueError: If the value cannot be converted
    """
    if get_origin(kind) is Union:
        options = [a for a in get_args(kind) if a is not type(None)]
        if value is None and len(options) < len(get_args(kind)):
            return None
        if len(options) != 1:
            # Mixed types such as int or 'auto' are checked by validate()
            return value
        kind = options[0]

    if value is None:
        raise ValueError("value is required")

    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")

    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"expected an integer, got {value!r}")
        return int(value)

    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"expected a number, got {value!r}")
        return float(value)

    if kind is str:
        if isinstance(value, (dict, list)):
            raise ValueError(f"expected a string, got {value!r}")
        return str(value)

    return value


def _build_section(cls, data: Any, section: str):
    """Build one config dataclass from its YAML mapping."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{section}: expected a mapping", {'section': section})

    unknown = sorted(str(k) for k in set(data) - {f.name for f in fields(cls)})
    if unknown:
        raise ConfigError(
            f"{section}: unknown keys {unknown}",
            {'section': section, 'keys': unknown},
        )

    hints = get_type_hints(cls)
    kwargs = {}
    for name, value in data.items():
        try:
            kwargs[name] = _convert(value, hints[name])
        except ValueError as e:
            raise ConfigError(
                f"{section}.{name}: {e}", {'key': f"{section}.{name}", 'value': value}
            ) from e
    return cls(**kwargs)


@dataclass
class NetworkConfig:
    """Packet destination."""
    host: str = '127.0.0.1'
    port: int = 26090
    ttl: int = 1


@dataclass
class ReplaySettings:
    """Replay and packet construction settings."""
    max_records: Optional[int] = None
    first_packet_id: int = 0
    speed: float = 1.0
    # Integer declared size for every packet, or 'auto' for 10 + channels
    packet_size: Union[int, str] = 1044
    fill_checksum: bool = False

    @property
    def declared_packet_size(self) -> Optional[int]:
        """packet_size for the transformer (None means derive from body)."""
        if isinstance(self.packet_size, str):
            if self.packet_size.lower() == 'auto':
                return None
            return int(self.packet_size)
        return self.packet_size


@dataclass
class ReaderConfig:
    """CSC reader settings."""
    strict: bool = False


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = 'INFO'

    @property
    def level_value(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)


@dataclass
class NlxReplayConfig:
    """Root configuration."""

    version: int = 1
    network: NetworkConfig = field(default_factory=NetworkConfig)
    replay: ReplaySettings = field(default_factory=ReplaySettings)
    reader: ReaderConfig = field(default_factory=ReaderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> 'NlxReplayConfig':
        """Load from YAML file with env var substitution."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{path}: {e}", {'path': str(path)}) from e

        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping", {'path': str(path)})

        data = _substitute_env_vars(data)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'NlxReplayConfig':
        """
        Create from dictionary, converting values to their field types.

        Raises:
            ConfigError: Unknown key, non-mapping section, or a value that
                cannot be converted
        """
        try:
            version = _convert(data.get('version', 1), int)
        except ValueError as e:
            raise ConfigError(f"version: {e}", {'key': 'version'}) from e

        return cls(
            version=version,
            network=_build_section(NetworkConfig, data.get('network'), 'network'),
            replay=_build_section(ReplaySettings, data.get('replay'), 'replay'),
            reader=_build_section(ReaderConfig, data.get('reader'), 'reader'),
            logging=_build_section(LoggingConfig, data.get('logging'), 'logging'),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate config. Returns list of errors (empty if valid)."""
        errors = []

        if not self.network.host:
            errors.append("network.host is empty")

        if not 0 < self.network.port < 65536:
            errors.append(f"Invalid port: {self.network.port}")

        if self.network.ttl < 0:
            errors.append(f"Invalid ttl: {self.network.ttl}")

        replay = self.replay
        if replay.max_records is not None and replay.max_records < 0:
            errors.append(f"Invalid max_records: {replay.max_records}")

        if replay.speed <= 0:
            errors.append(f"Invalid speed: {replay.speed}")

        try:
            size = replay.declared_packet_size
        except ValueError:
            errors.append(f"Invalid packet_size: {replay.packet_size!r} (integer or 'auto')")
        else:
            if size is not None and size < 10:
                errors.append(f"packet_size must be >= 10, got {size}")

        if self.logging.level.upper() not in LOG_LEVELS:
            errors.append(f"Invalid log level: {self.logging.level}")

        return errors


def load_config(path: Optional[Path] = None) -> NlxReplayConfig:
    """Load config from file or return defaults."""
    if path and Path(path).exists():
        return NlxReplayConfig.load(path)

    search_paths = [
        Path('./nlx-replay.yml'),
        Path('./nlx-replay.yaml'),
        Path.home() / '.nlx-replay' / 'config.yml',
    ]

    for p in search_paths:
        if p.exists():
            return NlxReplayConfig.load(p)

    return NlxReplayConfig()


def generate_default_config() -> str:
    """Generate default config as YAML."""
    return """# nlx-replay configuration
version: 1

network:
  host: 127.0.0.1
  port: 26090
  ttl: 1

replay:
  max_records: null
  first_packet_id: 0
  speed: 1.0
  packet_size: 1044     # or 'auto' for 10 + channel count
  fill_checksum: false

reader:
  strict: false

logging:
  level: INFO
"""
