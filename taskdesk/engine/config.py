"""
TaskDesk Configuration — Load and validate taskdesk.yaml plus environment overrides.

Resolution order (later wins):
    1. Model defaults
    2. taskdesk.yaml (auto-discovered by walking up from CWD)
    3. Environment variables (PORT, AZURE_TENANT_ID, AZURE_CLIENT_ID, ...)

Usage:
    from taskdesk.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from taskdesk.engine.errors import ConfigError

CONFIG_FILENAME = "taskdesk.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for taskdesk.yaml
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 5001
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class StorageConfig(BaseModel):
    backend: str = "memory"
    url: Optional[str] = None
    pool_size: int = 10
    pool_pre_ping: bool = True

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("memory", "sql", "redis"):
            raise ValueError(f"storage backend must be memory/sql/redis, got '{v}'")
        return v

    @model_validator(mode="after")
    def require_url(self) -> "StorageConfig":
        if self.backend != "memory" and not self.url:
            raise ValueError(f"storage backend '{self.backend}' requires storage.url")
        return self


class AuthConfig(BaseModel):
    provider: str = "none"
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    project_id: Optional[str] = None
    jwks_uri: Optional[str] = None
    audience: Optional[str] = None
    issuers: List[str] = Field(default_factory=list)
    algorithm: str = "RS256"
    jwks_cache_lifespan: int = 600
    jwks_requests_per_minute: int = 5
    leeway_seconds: int = 0

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in ("none", "azure_ad", "firebase", "jwks"):
            raise ValueError(f"auth provider must be none/azure_ad/firebase/jwks, got '{v}'")
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v != "RS256":
            raise ValueError(f"only RS256 is accepted, got '{v}'")
        return v

    @model_validator(mode="after")
    def require_identifiers(self) -> "AuthConfig":
        if self.provider == "azure_ad" and not (self.tenant_id and self.client_id):
            raise ValueError("azure_ad auth requires tenant_id and client_id")
        if self.provider == "firebase" and not self.project_id:
            raise ValueError("firebase auth requires project_id")
        if self.provider == "jwks" and not (self.jwks_uri and self.audience and self.issuers):
            raise ValueError("jwks auth requires jwks_uri, audience and issuers")
        return self


class RateLimitConfig(BaseModel):
    window_seconds: int = 60
    max_requests: int = 100
    redis_url: Optional[str] = None


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".taskdesk/logs"
    file_logging: bool = True
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()


class TaskDeskConfig(BaseModel):
    """Root model for taskdesk.yaml."""
    name: str = "TaskDesk"
    version: str = "1.0.0"
    environment: str = "dev"

    server: ServerConfig = ServerConfig()
    storage: StorageConfig = StorageConfig()
    auth: AuthConfig = AuthConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------

# env var → (section, field)
ENV_OVERRIDES: Dict[str, tuple] = {
    "TASKDESK_ENV": (None, "environment"),
    "PORT": ("server", "port"),
    "TASKDESK_STORAGE_BACKEND": ("storage", "backend"),
    "TASKDESK_STORAGE_URL": ("storage", "url"),
    "TASKDESK_AUTH_PROVIDER": ("auth", "provider"),
    "AZURE_TENANT_ID": ("auth", "tenant_id"),
    "AZURE_CLIENT_ID": ("auth", "client_id"),
    "FIREBASE_PROJECT_ID": ("auth", "project_id"),
    "TASKDESK_RATE_LIMIT_REDIS_URL": ("rate_limit", "redis_url"),
    "TASKDESK_LOG_LEVEL": ("logging", "level"),
}


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Overlay recognized environment variables onto raw config data."""
    environ = os.environ if environ is None else environ
    data = {k: (dict(v) if isinstance(v, dict) else v) for k, v in raw.items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        if section is None:
            data[key] = value
        else:
            data.setdefault(section, {})
            data[section][key] = value
    return data


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[TaskDeskConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for taskdesk.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TaskDeskConfig:
    """
    Load and validate taskdesk.yaml, then apply environment overrides.

    Args:
        config_path: Explicit path to taskdesk.yaml. If None, auto-discovers.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Validated TaskDeskConfig instance.

    Raises:
        ConfigError: if the file or the merged values are invalid.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    raw: Dict[str, Any] = {}
    path = Path(config_path)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping", path=str(path))

    data = apply_env_overrides(raw, environ)
    try:
        _config = TaskDeskConfig(**data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", path=str(path)) from e
    return _config


def get_config() -> TaskDeskConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the loaded config (tests, reloads)."""
    global _config
    _config = None
