"""
Configuration management for batchgate.

Loads and validates the gateway config.yaml. The configuration is read
once when a Gateway is built and is immutable afterwards.

Example config.yaml:

    max: 50
    allowed_apis:
      - "articles.*"
    forbidden_apis:
      - "internal.*"
    name: __gateway__
    path: gateway
    verb: post
    grouping: level
    invoke_timeout: 30
    logging:
      level: INFO
      format: pretty
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from batchgate.errors import ConfigError


DEFAULT_MAX_REQUESTS = 50
DEFAULT_GATEWAY_METHOD_NAME = "__gateway__"
DEFAULT_GATEWAY_ROUTE_PATH = "gateway"
DEFAULT_GATEWAY_HTTP_METHOD = "post"

GROUPING_STRATEGIES = ("level", "signature")
HTTP_VERBS = ("get", "post", "put", "patch", "delete")
LOG_FORMATS = ("pretty", "structured")


def _cast_to_tuple(value: Any, key: str) -> tuple[str, ...]:
    """Cast a pattern option to a tuple of strings (None -> (), scalar -> (scalar,))."""
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        value = [value]
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"{key}: patterns must be strings, got {item!r}")
    return tuple(value)


@dataclass(frozen=True)
class PolicyConfig:
    """
    Admission rules for a batch.

    Attributes:
        max_requests: Maximum distinct methods referenced by one batch
        allowed_apis: Allow-list glob patterns (empty = allow all)
        forbidden_apis: Deny-list glob patterns (empty = deny none); wins over allow
    """
    max_requests: int = DEFAULT_MAX_REQUESTS
    allowed_apis: tuple[str, ...] = ()
    forbidden_apis: tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int):
            raise ConfigError(f"max must be an integer, got {self.max_requests!r}")
        if self.max_requests < 1:
            raise ConfigError(f"max must be a positive integer, got {self.max_requests}")
        object.__setattr__(self, "allowed_apis", _cast_to_tuple(self.allowed_apis, "allowed_apis"))
        object.__setattr__(self, "forbidden_apis", _cast_to_tuple(self.forbidden_apis, "forbidden_apis"))


@dataclass(frozen=True)
class LoggingConfig:
    """Logging section of the config."""
    level: str = "INFO"
    format: str = "pretty"
    file: Optional[str] = None

    def __post_init__(self):
        if self.format not in LOG_FORMATS:
            raise ConfigError(
                f"logging.format must be one of {LOG_FORMATS}, got {self.format!r}"
            )
        object.__setattr__(self, "level", str(self.level).upper())


@dataclass(frozen=True)
class GatewayConfig:
    """Complete gateway configuration."""
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    name: str = DEFAULT_GATEWAY_METHOD_NAME
    path: str = DEFAULT_GATEWAY_ROUTE_PATH
    verb: str = DEFAULT_GATEWAY_HTTP_METHOD
    grouping: str = "level"
    invoke_timeout: Optional[float] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        if self.grouping not in GROUPING_STRATEGIES:
            raise ConfigError(
                f"grouping must be one of {GROUPING_STRATEGIES}, got {self.grouping!r}"
            )
        verb = str(self.verb).lower()
        if verb not in HTTP_VERBS:
            raise ConfigError(f"verb must be one of {HTTP_VERBS}, got {self.verb!r}")
        object.__setattr__(self, "verb", verb)
        if self.invoke_timeout is not None and self.invoke_timeout <= 0:
            raise ConfigError(f"invoke_timeout must be positive, got {self.invoke_timeout}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayConfig":
        """
        Build a GatewayConfig from the raw YAML mapping.

        Raises:
            ConfigError: If any value is invalid
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        policy = PolicyConfig(
            max_requests=data["max"] if data.get("max") is not None else DEFAULT_MAX_REQUESTS,
            allowed_apis=data.get("allowed_apis"),
            forbidden_apis=data.get("forbidden_apis"),
        )

        logging_data = data.get("logging") or {}
        if not isinstance(logging_data, dict):
            raise ConfigError("logging must be a mapping")

        timeout = data.get("invoke_timeout")
        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError):
                raise ConfigError(f"invoke_timeout must be a number, got {timeout!r}")

        return cls(
            policy=policy,
            name=data.get("name") or DEFAULT_GATEWAY_METHOD_NAME,
            path=data.get("path") or DEFAULT_GATEWAY_ROUTE_PATH,
            verb=data.get("verb") or DEFAULT_GATEWAY_HTTP_METHOD,
            grouping=data.get("grouping") or "level",
            invoke_timeout=timeout,
            logging=LoggingConfig(
                level=logging_data.get("level", "INFO"),
                format=logging_data.get("format", "pretty"),
                file=logging_data.get("file"),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the config.yaml shape."""
        return {
            "max": self.policy.max_requests,
            "allowed_apis": list(self.policy.allowed_apis),
            "forbidden_apis": list(self.policy.forbidden_apis),
            "name": self.name,
            "path": self.path,
            "verb": self.verb,
            "grouping": self.grouping,
            "invoke_timeout": self.invoke_timeout,
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "file": self.logging.file,
            },
        }


def get_batchgate_home() -> Path:
    """Config directory: $BATCHGATE_HOME or ~/.config/batchgate."""
    home = os.environ.get("BATCHGATE_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/batchgate").expanduser()


def _load_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")
    return data or {}


def load_config(config_path: Optional[Path] = None) -> GatewayConfig:
    """
    Load gateway configuration from a YAML file.

    Resolution order: explicit path, $BATCHGATE_CONFIG, then
    config.yaml in get_batchgate_home(). A missing default file
    yields the default configuration.

    Args:
        config_path: Path to config file

    Returns:
        GatewayConfig instance

    Raises:
        ConfigError: If an explicit config file is missing or the config is invalid
    """
    explicit = config_path or os.environ.get("BATCHGATE_CONFIG")
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
    else:
        path = get_batchgate_home() / "config.yaml"
        if not path.exists():
            return GatewayConfig()

    return GatewayConfig.from_dict(_load_yaml(path))
