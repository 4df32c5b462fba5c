"""
Config - YAML Settings

Example ~/.config/feed-rendezvous/config.yaml:

    gateway: http://localhost:8500
    key_file: ~/.config/feed-rendezvous/keys.json
    validation: accept_any       # or well_formed
    timeout: 10
    retry:
      interval: 1.0
      max_attempts: null         # poll forever
      backoff: 1.0
      max_interval: null
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .feeds import DEFAULT_GATEWAY, DEFAULT_TIMEOUT
from .keys import get_default_key_path
from .messages import VALIDATORS, UpdateValidator
from .retry import DEFAULT_INTERVAL, RetryPolicy


def get_default_config_path() -> Path:
    return Path.home() / ".config" / "feed-rendezvous" / "config.yaml"


@dataclass
class RetrySettings:
    interval: float = DEFAULT_INTERVAL
    max_attempts: Optional[int] = None
    backoff: float = 1.0
    max_interval: Optional[float] = None


@dataclass
class RendezvousConfig:
    gateway: str = DEFAULT_GATEWAY
    key_file: Path = field(default_factory=get_default_key_path)
    validation: str = "accept_any"
    timeout: float = DEFAULT_TIMEOUT
    retry: RetrySettings = field(default_factory=RetrySettings)

    def retry_policy(self) -> RetryPolicy:
        try:
            return RetryPolicy(
                interval=self.retry.interval,
                max_attempts=self.retry.max_attempts,
                backoff=self.retry.backoff,
                max_interval=self.retry.max_interval,
            )
        except ValueError as e:
            raise ConfigError(f"retry: {e}") from e

    def validator(self) -> UpdateValidator:
        try:
            return VALIDATORS[self.validation]
        except KeyError:
            raise ConfigError(
                f"validation must be one of {', '.join(sorted(VALIDATORS))}, got {self.validation!r}"
            ) from None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RendezvousConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")

        retry = data.get("retry") or {}
        if not isinstance(retry, dict):
            raise ConfigError("retry must be a mapping")
        retry_known = {f.name for f in fields(RetrySettings)}
        unknown = set(retry) - retry_known
        if unknown:
            raise ConfigError(f"unknown retry keys: {', '.join(sorted(unknown))}")

        config = cls()
        try:
            if "gateway" in data:
                config.gateway = str(data["gateway"])
            if "key_file" in data:
                config.key_file = Path(str(data["key_file"])).expanduser()
            if "validation" in data:
                config.validation = str(data["validation"])
            if "timeout" in data:
                config.timeout = float(data["timeout"])
            for name in retry_known & set(retry):
                value = retry[name]
                if value is not None:
                    value = int(value) if name == "max_attempts" else float(value)
                setattr(config.retry, name, value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid config value: {e}") from e

        # Surface bad values at load time rather than first use
        config.retry_policy()
        config.validator()
        if config.timeout <= 0:
            raise ConfigError("timeout must be positive")
        return config


def load_config(path: Optional[Path] = None) -> RendezvousConfig:
    """
    Load settings from YAML.

    Without an explicit path, a missing default file means defaults.
    """
    explicit = path is not None
    path = path or get_default_config_path()

    if not path.exists():
        if explicit:
            raise ConfigError(f"config file not found: {path}")
        return RendezvousConfig()

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return RendezvousConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return RendezvousConfig.from_dict(data)
