"""Application configuration loaded from a file, defaults and the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

ENV_PREFIX = "PANDABASE"
MAX_EMBEDDING_DIMENSIONS = 8192

_SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}

# The stock database account uses the product name for its user, credential
# and database name alike.
_PRODUCT_NAME = "pandabase"

_DEFAULTS: dict[str, Any] = {
    "database.host": "localhost",
    "database.port": "5432",
    "database.user": _PRODUCT_NAME,
    "database.password": _PRODUCT_NAME,
    "database.name": _PRODUCT_NAME,
    "database.ssl_mode": "disable",
    "database.log_level": "error",
    "database.fts_dictionary": "simple",
    "database.use_halfvec": False,
    "redis.host": "localhost",
    "redis.port": "6379",
    "redis.password": "",
    "redis.db": 0,
    "storage.type": "filesystem",
    "storage.data_path": "./data/files",
    "storage.max_file_size": 100,
    "server.host": "0.0.0.0",
    "server.port": "8080",
    "log.level": "info",
    "log.format": "json",
    "embedding.model": "text-embedding-ada-002",
    "embedding.multimodal_model": "",
    "embedding.dimensions": 1536,
    "embedding.multimodal_dimensions": 0,
    "embedding.api_url": "https://api.openai.com/v1",
    "embedding.enable_multimodal": False,
    "auth.jwt_expiry": "24h",
    "auth.refresh_token_expiry": "168h",
    "auth.enable_oauth": False,
    "post_process.enabled": False,
    "post_process.api_url": "https://api.openai.com/v1",
    "post_process.model": "gpt-4o-mini",
}


class ConfigError(Exception):
    """Raised when configuration cannot be read, decoded or validated."""


@dataclass
class DatabaseConfig:
    """Database connection settings."""

    host: str = ""
    port: str = ""
    user: str = ""
    password: str = ""
    name: str = ""
    ssl_mode: str = ""
    log_level: str = ""
    fts_dictionary: str = ""
    use_halfvec: bool = False


@dataclass
class RedisConfig:
    """Redis connection settings."""

    host: str = ""
    port: str = ""
    password: str = ""
    db: int = 0


@dataclass
class StorageConfig:
    """File storage settings; ``max_file_size`` is in megabytes."""

    type: str = ""
    data_path: str = ""
    max_file_size: int = 0


@dataclass
class ServerConfig:
    """HTTP listen address."""

    host: str = ""
    port: str = ""


@dataclass
class LogConfig:
    """Logging settings."""

    level: str = ""
    format: str = ""


@dataclass
class EmbeddingConfig:
    """Embedding service settings."""

    model: str = ""
    multimodal_model: str = ""
    dimensions: int = 0
    multimodal_dimensions: int = 0
    api_url: str = ""
    api_key: str = ""
    enable_multimodal: bool = False


@dataclass
class OAuthProviderConfig:
    """Credentials of one OAuth provider."""

    enabled: bool = False
    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = ""


@dataclass
class OAuthProvidersConfig:
    """The supported OAuth providers."""

    google: OAuthProviderConfig = field(default_factory=OAuthProviderConfig)
    github: OAuthProviderConfig = field(default_factory=OAuthProviderConfig)


@dataclass
class AuthConfig:
    """Authentication settings."""

    jwt_secret: str = ""
    jwt_expiry: str = ""
    refresh_token_expiry: str = ""
    enable_oauth: bool = False
    oauth_providers: OAuthProvidersConfig = field(default_factory=OAuthProvidersConfig)


@dataclass
class PostProcessConfig:
    """Settings for cleaning up imported web content through a chat API."""

    enabled: bool = False
    api_url: str = ""
    api_key: str = ""
    model: str = ""
    custom_prompt: str = ""


@dataclass
class Config:
    """All application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log: LogConfig = field(default_factory=LogConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    post_process: PostProcessConfig = field(default_factory=PostProcessConfig)

    def validate(self) -> None:
        """Raise ``ConfigError`` if the configuration is unusable."""
        dims = self.embedding.dimensions
        if dims <= 0:
            raise ConfigError(f"embedding dimensions must be positive, got {dims}")
        if dims > MAX_EMBEDDING_DIMENSIONS:
            raise ConfigError(
                f"embedding dimensions too large (max {MAX_EMBEDDING_DIMENSIONS}), got {dims}"
            )


def load(
    config_path: Union[str, os.PathLike, None] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Config:
    """Load configuration from defaults, an optional file and ``PANDABASE_*`` variables.

    Environment variables override only keys that have a default or appear in
    the file; ``database.host`` is read from ``PANDABASE_DATABASE_HOST``.
    """
    if env is None:
        env = os.environ

    settings = dict(_DEFAULTS)
    if config_path:
        settings.update(_read_file(Path(config_path)))

    for key in list(settings):
        value = env.get(_env_name(key))
        if value:
            settings[key] = value

    try:
        cfg = _build(Config, settings, "")
    except ConfigError as exc:
        raise ConfigError(f"failed to unmarshal config: {exc}") from exc

    try:
        cfg.validate()
    except ConfigError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    return cfg


def _env_name(key: str) -> str:
    return f"{ENV_PREFIX}_{key.replace('.', '_').upper()}"


def _read_file(path: Path) -> dict[str, Any]:
    if path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigError(
            f"failed to read config file: unsupported config type {path.suffix!r}"
        )
    try:
        text = path.read_text(encoding="utf-8")
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config file: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("failed to read config file: top level must be a mapping")
    return _flatten(data)


def _flatten(mapping: Mapping[Any, Any], prefix: str = "") -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in mapping.items():
        name = f"{prefix}{str(key).lower()}"
        if isinstance(value, dict):
            out.update(_flatten(value, name + "."))
        else:
            out[name] = value
    return out


def _build(cls: type, settings: Mapping[str, Any], prefix: str) -> Any:
    template = cls()
    values: dict[str, Any] = {}
    for f in fields(cls):
        key = prefix + f.name
        default = getattr(template, f.name)
        if is_dataclass(default):
            if settings.get(key) is not None:
                raise ConfigError(f"'{key}' expected a map, got {settings[key]!r}")
            values[f.name] = _build(type(default), settings, key + ".")
        elif key in settings:
            values[f.name] = _convert(settings[key], default, key)
    return cls(**values)


def _convert(value: Any, default: Any, key: str) -> Any:
    if value is None:
        return default
    if isinstance(default, bool):
        return _to_bool(value, key)
    if isinstance(default, int):
        return _to_int(value, key)
    return _to_str(value, key)


def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value == "" or value in _FALSE_WORDS:
            return False
        if value in _TRUE_WORDS:
            return True
    raise ConfigError(f"cannot parse '{key}' as bool: {value!r}")


def _to_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        try:
            return int(text, 0)
        except ValueError:
            pass
    raise ConfigError(f"cannot parse '{key}' as int: {value!r}")


def _to_str(value: Any, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    raise ConfigError(f"'{key}' expected a string, got {value!r}")