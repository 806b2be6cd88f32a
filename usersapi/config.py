"""Configuration management for the users service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

_ENV_PREFIX = "USERS_API_"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port value: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


@dataclass(frozen=True)
class ServiceConfig:
    """Runtime settings for the users service."""

    environment: str = "development"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    public_url: Optional[str] = None

    @staticmethod
    def from_dict(data: Mapping[str, object], base: "ServiceConfig | None" = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from raw dictionary data."""
        config = base or ServiceConfig()
        unknown = set(data.keys()) - {"environment", "version", "host", "port", "log_level", "public_url"}
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        updates: Dict[str, object] = {}
        if data.get("environment") is not None:
            updates["environment"] = str(data["environment"]).strip()
        if data.get("version") is not None:
            updates["version"] = str(data["version"]).strip()
        if data.get("host") is not None:
            updates["host"] = str(data["host"]).strip()
        if data.get("port") is not None:
            updates["port"] = _parse_port(data["port"])
        if data.get("log_level") is not None:
            updates["log_level"] = _parse_log_level(data["log_level"])
        if data.get("public_url") is not None:
            cleaned = str(data["public_url"]).strip().rstrip("/")
            updates["public_url"] = cleaned or None
        return replace(config, **updates)

    def server_url(self) -> str:
        if self.public_url:
            return f"{self.public_url}/api/v1"
        return f"http://localhost:{self.port}/api/v1"


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "service.yaml").resolve(strict=False)
    return candidate


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Read settings from a YAML file; a missing file yields no settings."""
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    service = raw.get("service", raw)
    if not isinstance(service, dict):
        raise ValueError("The 'service' section must be a mapping")
    return dict(service)


def _settings_from_env(environ: Mapping[str, str]) -> Dict[str, object]:
    settings: Dict[str, object] = {}
    for field_name in ("environment", "version", "host", "port", "log_level", "public_url"):
        key = f"{_ENV_PREFIX}{field_name.upper()}"
        if field_name == "environment":
            key = f"{_ENV_PREFIX}ENV"
        value = environ.get(key)
        if value is not None and value.strip():
            settings[field_name] = value
    return settings


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """Build the service configuration from defaults, YAML and environment."""
    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get(f"{_ENV_PREFIX}CONFIG"))
    config = ServiceConfig.from_dict(load_config_file(config_path))
    return ServiceConfig.from_dict(_settings_from_env(env), base=config)


__all__ = ["ServiceConfig", "load_config", "load_config_file", "resolve_config_path"]
