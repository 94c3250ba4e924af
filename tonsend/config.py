"""Shared configuration loader for tonsend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".tonsend.yaml"
DEFAULT_API_URL = "https://toncenter.com/api/v2"
DEFAULT_CREDENTIALS_PATH = Path(".env")
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class ServiceConfig:
    """Connection and retry settings for the toncenter HTTP API."""

    api_url: str = DEFAULT_API_URL
    api_key: str | None = None
    timeout: float = 60.0
    backoff_seconds: float = 60.0
    max_backoff_seconds: float = 600.0
    max_retries: int = 5
    max_attempts: int = 3
    confirm_timeout: float = 120.0
    poll_interval: float = 5.0
    credentials_path: Path = DEFAULT_CREDENTIALS_PATH

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Expected {path} to contain a YAML object with a 'toncenter' section"
        )
    return loaded


def _coerce_float(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc
    if value < 0:
        raise ConfigurationError(f"Negative value in {source}: {raw}")
    return value


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc
    if value < 1:
        raise ConfigurationError(f"Expected a positive integer in {source}: {raw}")
    return value


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_api_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid API URL: {raw}")
    return raw


def load_service_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ServiceConfig:
    """Load service configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    section = file_config.get("toncenter", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'toncenter' to be a mapping in {path}")

    override_map = dict(overrides or {})

    def pick(key: str, env_name: str) -> Any:
        return _first_value(override_map.get(key), env_map.get(env_name), section.get(key))

    api_url = _validate_api_url(str(pick("api_url", "TONSEND_API_URL") or DEFAULT_API_URL))
    credentials_raw = pick("credentials_path", "TONSEND_CREDENTIALS_PATH")

    defaults = ServiceConfig()
    return ServiceConfig(
        api_url=api_url,
        api_key=pick("api_key", "TONSEND_API_KEY") or None,
        timeout=_first_value(
            _coerce_float(pick("timeout", "TONSEND_TIMEOUT"), source="timeout"),
            default=defaults.timeout,
        ),
        backoff_seconds=_first_value(
            _coerce_float(
                pick("backoff_seconds", "TONSEND_BACKOFF_SECONDS"), source="backoff_seconds"
            ),
            default=defaults.backoff_seconds,
        ),
        max_backoff_seconds=_first_value(
            _coerce_float(
                pick("max_backoff_seconds", "TONSEND_MAX_BACKOFF_SECONDS"),
                source="max_backoff_seconds",
            ),
            default=defaults.max_backoff_seconds,
        ),
        max_retries=_first_value(
            _coerce_int(pick("max_retries", "TONSEND_MAX_RETRIES"), source="max_retries"),
            default=defaults.max_retries,
        ),
        max_attempts=_first_value(
            _coerce_int(pick("max_attempts", "TONSEND_MAX_ATTEMPTS"), source="max_attempts"),
            default=defaults.max_attempts,
        ),
        confirm_timeout=_first_value(
            _coerce_float(
                pick("confirm_timeout", "TONSEND_CONFIRM_TIMEOUT"), source="confirm_timeout"
            ),
            default=defaults.confirm_timeout,
        ),
        poll_interval=_first_value(
            _coerce_float(
                pick("poll_interval", "TONSEND_POLL_INTERVAL"), source="poll_interval"
            ),
            default=defaults.poll_interval,
        ),
        credentials_path=(
            Path(credentials_raw).expanduser() if credentials_raw else defaults.credentials_path
        ),
    )
