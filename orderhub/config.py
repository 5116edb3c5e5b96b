"""Configuration loading for the order notification service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .connections import DEFAULT_HANDSHAKE_MESSAGE
from .notifications import DEFAULT_BUFFER_SIZE

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


@dataclass(frozen=True)
class ServiceSettings:
    """Runtime settings for the HTTP and notification endpoints."""

    host: str = "0.0.0.0"
    port: int = 3000
    listener_buffer_size: int = DEFAULT_BUFFER_SIZE
    handshake_message: str = DEFAULT_HANDSHAKE_MESSAGE
    log_level: str = "info"

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "ServiceSettings":
        """Create settings from raw mapping data, falling back to defaults."""
        unknown = set(data.keys()) - {
            "host",
            "port",
            "listener_buffer_size",
            "handshake_message",
            "log_level",
        }
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        defaults = ServiceSettings()
        settings = ServiceSettings(
            host=str(data.get("host", defaults.host)),
            port=_parse_port(data.get("port", defaults.port)),
            listener_buffer_size=_parse_buffer_size(
                data.get("listener_buffer_size", defaults.listener_buffer_size)
            ),
            handshake_message=str(data.get("handshake_message", defaults.handshake_message)),
            log_level=_parse_log_level(data.get("log_level", defaults.log_level)),
        )
        return settings


def _parse_port(value: object) -> int:
    try:
        port = int(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if port < 1 or port > 65535:
        raise ValueError("Port must be between 1 and 65535")
    return port


def _parse_buffer_size(value: object) -> int:
    try:
        size = int(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid listener buffer size: {value!r}") from exc
    if size < 1:
        raise ValueError("Listener buffer size must be at least 1")
    return size


def _parse_log_level(value: object) -> str:
    level = str(value).strip().lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unsupported log level: {value!r}")
    return level


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "orderhub.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceSettings:
    """Load settings from YAML (when present) and apply environment overrides."""
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("ORDERHUB_CONFIG"))

    raw: Dict[str, object] = {}
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        raw = dict(loaded)

    settings = ServiceSettings.from_dict(raw)

    overrides: Dict[str, object] = {}
    host = env.get("ORDERHUB_HOST")
    if host:
        overrides["host"] = host.strip()
    port = env.get("ORDERHUB_PORT") or env.get("PORT")
    if port:
        overrides["port"] = _parse_port(port)
    buffer_size = env.get("ORDERHUB_LISTENER_BUFFER")
    if buffer_size:
        overrides["listener_buffer_size"] = _parse_buffer_size(buffer_size)
    log_level = env.get("ORDERHUB_LOG_LEVEL")
    if log_level:
        overrides["log_level"] = _parse_log_level(log_level)

    return replace(settings, **overrides) if overrides else settings


__all__ = ["ServiceSettings", "load_settings", "resolve_config_path"]
