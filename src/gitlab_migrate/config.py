"""
Configuration loading for the GitLab migration tool.

The configuration is a small YAML document holding the base URL and access
token of both instances, plus optional credentials embedded in mirror URLs:

    source_base_url: https://gitlab.old.example.com
    source_access_token: glpat-...
    destination_base_url: https://gitlab.new.example.com
    destination_access_token: glpat-...
    auth_user: mirror-bot        # optional
    auth_password: s3cret        # optional
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal
from urllib.parse import urlparse

import yaml

from .exceptions import ConfigurationError

logger: logging.Logger = logging.getLogger(__name__)

Side = Literal["source", "destination"]

DEFAULT_CONFIG_FILENAME: Final[str] = "config.yaml"
_REQUIRED_KEYS: Final[tuple[str, ...]] = (
    "source_base_url",
    "source_access_token",
    "destination_base_url",
    "destination_access_token",
)


@dataclass(frozen=True)
class InstanceEndpoint:
    """One side of a migration: a GitLab instance reached with a token."""

    base_url: str
    token: str
    side: Side

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/v4"


@dataclass
class MigrationConfig:
    """Validated configuration for a migration run."""

    source_base_url: str
    source_access_token: str
    destination_base_url: str
    destination_access_token: str
    auth_user: str = ""
    auth_password: str = ""

    def validate(self) -> None:
        """Check that every required field is set and both URLs are usable.

        Raises:
            ConfigurationError: On the first invalid field
        """
        for key in _REQUIRED_KEYS:
            value = getattr(self, key)
            if not isinstance(value, str) or not value.strip():
                msg = f"{key} is required"
                raise ConfigurationError(msg)

        for key in ("source_base_url", "destination_base_url"):
            try:
                validate_url(getattr(self, key))
            except ValueError as e:
                msg = f"invalid {key}: {e}"
                raise ConfigurationError(msg) from e

    @property
    def source(self) -> InstanceEndpoint:
        return InstanceEndpoint(self.source_base_url, self.source_access_token, "source")

    @property
    def destination(self) -> InstanceEndpoint:
        return InstanceEndpoint(self.destination_base_url, self.destination_access_token, "destination")

    def endpoint(self, side: Side) -> InstanceEndpoint:
        """Return the endpoint for the given side."""
        return self.source if side == "source" else self.destination

    def to_dict(self) -> dict[str, str]:
        return {
            "source_base_url": self.source_base_url,
            "source_access_token": self.source_access_token,
            "destination_base_url": self.destination_base_url,
            "destination_access_token": self.destination_access_token,
            "auth_user": self.auth_user,
            "auth_password": self.auth_password,
        }


def validate_url(url: str) -> None:
    """Validate that ``url`` is an absolute http(s) URL.

    Raises:
        ValueError: If the URL is relative or uses another scheme
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        msg = "URL must be absolute"
        raise ValueError(msg)
    if parsed.scheme not in ("http", "https"):
        msg = "URL must use HTTP or HTTPS protocol"
        raise ValueError(msg)


def default_config_path() -> Path:
    """Return the config path used when --config is not given."""
    return Path.home() / DEFAULT_CONFIG_FILENAME


def load_config(path: str | Path | None) -> MigrationConfig:
    """Load and validate the configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated MigrationConfig

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    if path is None or not str(path).strip():
        msg = "config file path cannot be empty"
        raise ConfigurationError(msg)

    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"failed to read config file {config_path}: {e}"
        raise ConfigurationError(msg) from e

    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"failed to parse YAML in {config_path}: {e}"
        raise ConfigurationError(msg) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"config file {config_path} must contain a mapping"
        raise ConfigurationError(msg)

    config = MigrationConfig(
        source_base_url=_as_str(data.get("source_base_url")),
        source_access_token=_as_str(data.get("source_access_token")),
        destination_base_url=_as_str(data.get("destination_base_url")),
        destination_access_token=_as_str(data.get("destination_access_token")),
        auth_user=_as_str(data.get("auth_user")),
        auth_password=_as_str(data.get("auth_password")),
    )
    config.validate()
    logger.debug(f"Loaded configuration from {config_path}")
    return config


def save_config(config: MigrationConfig, path: str | Path) -> None:
    """Write the configuration back to a YAML file.

    Raises:
        ConfigurationError: If the file cannot be written
    """
    config_path = Path(path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        _ = config_path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False), encoding="utf-8")
    except OSError as e:
        msg = f"failed to write config file {config_path}: {e}"
        raise ConfigurationError(msg) from e
    logger.info(f"Saved configuration to {config_path}")


def _as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value)
