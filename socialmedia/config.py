"""Configuration management for the socialmedia service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8081
DEFAULT_KEEP_ALIVE_TIMEOUT = 30
DEFAULT_LOG_LEVEL = "info"

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and its JSON store."""

    database_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    keep_alive_timeout: int = DEFAULT_KEEP_ALIVE_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data.

        Relative ``database_path`` values are resolved against ``base_path``
        (normally the directory holding the YAML file).
        """
        unknown = set(data) - {"database_path", "host", "port", "keep_alive_timeout", "log_level"}
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        return Settings(
            database_path=database_path,
            host=str(data.get("host") or DEFAULT_HOST),
            port=_parse_port(data.get("port", DEFAULT_PORT)),
            keep_alive_timeout=_parse_positive_int(
                "keep_alive_timeout", data.get("keep_alive_timeout", DEFAULT_KEEP_ALIVE_TIMEOUT)
            ),
            log_level=_parse_log_level(data.get("log_level", DEFAULT_LOG_LEVEL)),
        )

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with every non-``None`` override applied."""
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        if "database_path" in cleaned:
            cleaned["database_path"] = resolve_database_path(str(cleaned["database_path"]))
        if "port" in cleaned:
            cleaned["port"] = _parse_port(cleaned["port"])
        if "keep_alive_timeout" in cleaned:
            cleaned["keep_alive_timeout"] = _parse_positive_int("keep_alive_timeout", cleaned["keep_alive_timeout"])
        if "log_level" in cleaned:
            cleaned["log_level"] = _parse_log_level(cleaned["log_level"])
        return replace(self, **cleaned)


def _parse_positive_int(name: str, value: object) -> int:
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < 1:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


def _parse_port(value: object) -> int:
    port = _parse_positive_int("port", value)
    if port > 65535:
        raise ValueError(f"port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(sorted(_LOG_LEVELS))}, got {value!r}")
    return level


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "socialmedia.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build :class:`Settings` from defaults, the YAML file and the environment.

    A missing configuration file is not an error; the defaults apply.
    """
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("SOCIALMEDIA_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            try:
                loaded = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Configuration file {path} is not valid YAML: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded

    settings = Settings.from_dict(raw, base_path=path.parent)
    return settings.with_overrides(
        database_path=env.get("SOCIALMEDIA_DB_PATH") or None,
        host=env.get("SOCIALMEDIA_HOST") or None,
        port=env.get("SOCIALMEDIA_PORT") or None,
        keep_alive_timeout=env.get("SOCIALMEDIA_KEEP_ALIVE_TIMEOUT") or None,
        log_level=env.get("SOCIALMEDIA_LOG_LEVEL") or None,
    )


__all__ = ["Settings", "load_settings", "resolve_config_path"]
