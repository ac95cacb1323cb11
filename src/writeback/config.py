"""Configuration loading with env var substitution and validation."""

from __future__ import annotations

import importlib
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


class ConfigError(Exception):
    """Raised on configuration loading or validation errors."""


# --- Env var substitution ---

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")


def _replacer(match: re.Match) -> str:
    var = match.group(1)
    val = os.environ.get(var)
    if val is None:
        raise ConfigError(f"Environment variable {var} is not set")
    return val


def substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR} in all string values."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(_replacer, obj)
    if isinstance(obj, dict):
        return {k: substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [substitute_env_vars(item) for item in obj]
    return obj


# --- Config dataclasses ---


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class StorageConfig:
    type: str = "memory"  # memory, sqlite
    path: str = ""


@dataclass
class ConnectorConfig:
    name: str
    parent: str | None = None
    features: list[str] = field(default_factory=list)


@dataclass
class DatabaseConfig:
    id: int
    name: str
    engine: str
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass
class HandlerConfig:
    engine: str
    action: str
    handler: str  # "module.path:callable"


@dataclass
class UserConfig:
    token: str
    id: int
    email: str = ""
    is_superuser: bool = False


@dataclass
class Config:
    settings: dict[str, Any] = field(default_factory=dict)
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    connectors: list[ConnectorConfig] = field(default_factory=list)
    databases: list[DatabaseConfig] = field(default_factory=list)
    handlers: list[HandlerConfig] = field(default_factory=list)
    users: list[UserConfig] = field(default_factory=list)


# --- Helpers ---


def _require(data: dict, key: str, context: str) -> Any:
    """Get a required key from a dict or raise ConfigError."""
    if key not in data or data[key] is None:
        raise ConfigError(f"Missing required config: {context}.{key}")
    return data[key]


def _coerce_int(value: Any, field_name: str) -> int:
    """Coerce a value to int (handles env-substituted strings)."""
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Cannot convert {field_name} to int: {value!r}") from None


_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


def coerce_bool(value: Any, field_name: str) -> bool:
    """Coerce a value to bool (handles env-substituted strings)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Cannot convert {field_name} to boolean: {value!r}")


def _mapping(value: Any, context: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{context} must be a mapping")
    return value


def _sequence(value: Any, context: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{context} must be a list")
    return value


def load_handler(spec: str) -> Callable[..., Any]:
    """Import a handler from a "module.path:callable" spec."""
    if ":" not in spec:
        raise ConfigError(f"Invalid handler format: expected 'module.path:callable', got '{spec}'")

    module_path, attr = spec.rsplit(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigError(f"Cannot import module '{module_path}' for handler '{spec}': {e}") from e

    try:
        fn = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"Handler '{attr}' not found in module '{module_path}'") from None
    if not callable(fn):
        raise ConfigError(f"Handler '{spec}' is not callable")
    return fn


# --- Loader ---


def load_config(path: str = "config.yaml") -> Config:
    """Load and validate config.yaml, returning a typed Config."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(p) as f:
        raw = yaml.safe_load(f)

    raw = substitute_env_vars(_mapping(raw, "config"))

    settings = _mapping(raw.get("settings"), "settings")

    # Server
    srv_raw = _mapping(raw.get("server"), "server")
    server = ServerConfig(
        host=srv_raw.get("host", "127.0.0.1"),
        port=_coerce_int(srv_raw.get("port", 3000), "server.port"),
    )

    # Storage
    stor_raw = _mapping(raw.get("storage"), "storage")
    stor_type = stor_raw.get("type", "memory")
    if stor_type not in ("memory", "sqlite"):
        raise ConfigError(
            f"Unsupported storage type: {stor_type!r} (only 'memory' and 'sqlite' are supported)"
        )
    storage = StorageConfig(type=stor_type, path=stor_raw.get("path", ""))
    if stor_type == "sqlite" and not storage.path:
        raise ConfigError("Missing required config: storage.path")

    # Connectors
    connectors = []
    for name, conn_data in _mapping(raw.get("connectors"), "connectors").items():
        conn_data = _mapping(conn_data, f"connectors.{name}")
        features = _sequence(conn_data.get("features"), f"connectors.{name}.features")
        connectors.append(
            ConnectorConfig(
                name=name,
                parent=conn_data.get("parent"),
                features=[str(f) for f in features],
            )
        )

    # Databases
    databases = []
    seen_ids: set[int] = set()
    for i, db_raw in enumerate(_sequence(raw.get("databases"), "databases")):
        context = f"databases[{i}]"
        db_raw = _mapping(db_raw, context)
        db_id = _coerce_int(_require(db_raw, "id", context), f"{context}.id")
        if db_id <= 0:
            raise ConfigError(f"{context}.id must be a positive integer, got: {db_id}")
        if db_id in seen_ids:
            raise ConfigError(f"Duplicate database id {db_id} in {context}")
        seen_ids.add(db_id)
        databases.append(
            DatabaseConfig(
                id=db_id,
                name=str(db_raw.get("name", f"Database {db_id}")),
                engine=_require(db_raw, "engine", context),
                settings=_mapping(db_raw.get("settings"), f"{context}.settings"),
            )
        )

    # Handlers
    handlers = []
    for i, h_raw in enumerate(_sequence(raw.get("handlers"), "handlers")):
        context = f"handlers[{i}]"
        h_raw = _mapping(h_raw, context)
        handlers.append(
            HandlerConfig(
                engine=_require(h_raw, "engine", context),
                action=_require(h_raw, "action", context),
                handler=_require(h_raw, "handler", context),
            )
        )

    # Users
    users = []
    for token, user_raw in _mapping(raw.get("users"), "users").items():
        user_raw = _mapping(user_raw, "users.<token>")
        users.append(
            UserConfig(
                token=str(token),
                id=_coerce_int(_require(user_raw, "id", "users.<token>"), "users.<token>.id"),
                email=user_raw.get("email", ""),
                is_superuser=coerce_bool(
                    user_raw.get("is_superuser", False), "users.<token>.is_superuser"
                ),
            )
        )

    return Config(
        settings=settings,
        server=server,
        storage=storage,
        connectors=connectors,
        databases=databases,
        handlers=handlers,
        users=users,
    )
