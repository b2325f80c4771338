"""Configuration management for the time tracker services."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

ENV_LOCAL = "local"
ENV_DEV = "dev"
ENV_PROD = "prod"
_KNOWN_ENVS = (ENV_LOCAL, ENV_DEV, ENV_PROD)


def _section(data: Mapping[str, object], key: str) -> Dict[str, object]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section '{key}' must be a mapping")
    return value


@dataclass(frozen=True)
class DatabaseConfig:
    """Location of the SQLite database file."""

    path: Optional[Path] = None

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "DatabaseConfig":
        raw = data.get("path")
        if not raw:
            return DatabaseConfig()
        candidate = Path(str(raw)).expanduser()
        if not candidate.is_absolute() and base_path is not None:
            candidate = base_path / candidate
        return DatabaseConfig(path=candidate.resolve(strict=False))


@dataclass(frozen=True)
class HTTPServerConfig:
    """Bind settings for the tracker API."""

    host: str = "0.0.0.0"
    port: int = 8080
    timeout_keep_alive: int = 60

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "HTTPServerConfig":
        return HTTPServerConfig(
            host=str(data.get("host", "0.0.0.0")),
            port=int(data.get("port", 8080)),
            timeout_keep_alive=int(data.get("timeout_keep_alive", 60)),
        )


@dataclass(frozen=True)
class UserInfoConfig:
    """Where the user info service listens and how the tracker reaches it."""

    base_url: str = "http://localhost:8081"
    timeout: float = 4.0
    host: str = "0.0.0.0"
    port: int = 8081

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "UserInfoConfig":
        return UserInfoConfig(
            base_url=str(data.get("base_url", "http://localhost:8081")),
            timeout=float(data.get("timeout", 4.0)),
            host=str(data.get("host", "0.0.0.0")),
            port=int(data.get("port", 8081)),
        )


@dataclass(frozen=True)
class TrackerConfig:
    env: str = ENV_LOCAL
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    http_server: HTTPServerConfig = field(default_factory=HTTPServerConfig)
    user_info: UserInfoConfig = field(default_factory=UserInfoConfig)

    def __post_init__(self) -> None:
        if self.env not in _KNOWN_ENVS:
            raise ValueError(
                f"Unknown environment '{self.env}'; expected one of {', '.join(_KNOWN_ENVS)}"
            )

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "TrackerConfig":
        return TrackerConfig(
            env=str(data.get("env", ENV_LOCAL)),
            database=DatabaseConfig.from_dict(_section(data, "database"), base_path=base_path),
            http_server=HTTPServerConfig.from_dict(_section(data, "http_server")),
            user_info=UserInfoConfig.from_dict(_section(data, "user_info")),
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "tracker.yaml").resolve(strict=False)


def _apply_env_overrides(config: TrackerConfig, environ: Mapping[str, str]) -> TrackerConfig:
    env = environ.get("TRACKER_ENV")
    if env:
        config = replace(config, env=env.strip())
    db_path = environ.get("TRACKER_DB_PATH")
    if db_path:
        config = replace(config, database=DatabaseConfig(path=Path(db_path).expanduser().resolve(strict=False)))
    userinfo_url = environ.get("TRACKER_USERINFO_URL")
    if userinfo_url:
        config = replace(config, user_info=replace(config.user_info, base_url=userinfo_url.strip()))
    return config


def load_config(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> TrackerConfig:
    """Load the tracker configuration.

    An explicitly given file must exist. When no path is given the default
    ``config/tracker.yaml`` is used if present, otherwise built-in defaults.
    """

    environ = os.environ if environ is None else environ
    explicit = config_path is not None or bool(environ.get("TRACKER_CONFIG"))
    path = config_path or resolve_config_path(environ.get("TRACKER_CONFIG"))

    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        config = TrackerConfig.from_dict(raw, base_path=path.parent)
    elif explicit:
        raise FileNotFoundError(f"Configuration file does not exist: {path}")
    else:
        config = TrackerConfig()

    return _apply_env_overrides(config, environ)


__all__ = [
    "DatabaseConfig",
    "ENV_DEV",
    "ENV_LOCAL",
    "ENV_PROD",
    "HTTPServerConfig",
    "TrackerConfig",
    "UserInfoConfig",
    "load_config",
    "resolve_config_path",
]
