"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackendName = Literal["memory", "diskcache", "redis"]

DEFAULT_UPSTREAM_URL_TEMPLATE = (
    "https://www.googleapis.com/drive/v3/files/{file_id}?alt=media&key={api_key}"
)


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class CacheConfig(BaseModel):
    """Cache configuration (backend-agnostic)."""

    backend: CacheBackendName = Field(
        default="memory",
        description="Cache backend: 'memory', 'diskcache' (SQLite) or 'redis'.",
    )
    directory: Path = Field(
        default=Path("./.cache/vidrelay"),
        validation_alias=AliasChoices("dir", "directory"),
        description="Diskcache SQLite DB path.",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis).",
    )
    ttl_seconds: int = Field(
        default=3600,
        description="Default TTL for cache entries without an explicit TTL.",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit).",
    )
    max_memory_bytes: int = Field(
        default=128 * 1024 * 1024,
        description="Memory backend budget; least recently used entries are evicted beyond it.",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_dir(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache ttl_seconds must be >= 0")
        return v

    @field_validator("max_memory_bytes")
    @classmethod
    def _validate_memory_budget(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache max_memory_bytes must be > 0")
        return v


class ResolverConfig(BaseModel):
    """Embed resolver settings."""

    cache_ttl_seconds: int = Field(
        default=3600,
        description="How long a resolved embed URL is served from cache.",
    )
    single_flight: bool = Field(
        default=True,
        description=(
            "Share one outbound resolution between concurrent requests "
            "for the same embed URL."
        ),
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout per embed page / follow-up API fetch.",
    )

    @field_validator("request_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        return v


class ProxyConfig(BaseModel):
    """Streaming edge proxy settings."""

    stream_token: Optional[str] = Field(
        default=None,
        description="Shared secret every proxy link must carry as ?token=.",
    )
    upstream_api_key: Optional[str] = Field(
        default=None,
        description="API key used to build upstream file store URLs.",
    )
    upstream_url_template: str = Field(
        default=DEFAULT_UPSTREAM_URL_TEMPLATE,
        description="Upstream URL with {file_id} and {api_key} placeholders.",
    )
    subtitle_ttl_seconds: int = Field(default=86400)
    video_full_ttl_seconds: int = Field(default=3600)
    video_range_ttl_seconds: int = Field(default=300)
    upstream_ttl_by_status: dict[str, int] = Field(
        default={"200-299": 3600, "404": 60, "500-599": 0},
        description="Upstream edge cache TTL per status code or range.",
    )
    max_cached_body_bytes: int = Field(
        default=32 * 1024 * 1024,
        description="Full video bodies larger than this are streamed but not cached.",
    )
    expose_error_details: Optional[bool] = Field(
        default=None,
        description=(
            "Include exception text in 500 bodies. If unset, derived from environment."
        ),
    )

    @field_validator("upstream_url_template")
    @classmethod
    def _validate_template(cls, v: str) -> str:
        if "{file_id}" not in v:
            raise ValueError("upstream_url_template must contain {file_id}")
        return v

    @field_validator("upstream_ttl_by_status")
    @classmethod
    def _validate_status_ttls(cls, v: dict[str, int]) -> dict[str, int]:
        for key, ttl in v.items():
            bounds = key.split("-")
            if len(bounds) > 2 or not all(b.isdigit() for b in bounds):
                raise ValueError(f"Invalid status key {key!r} (use '404' or '500-599')")
            if ttl < 0:
                raise ValueError(f"TTL for {key!r} must be >= 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/resolver/proxy).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="vidrelay", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default timeout for outgoing HTTP requests.",
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        # Raw exception text in 500 bodies only outside prod.
        if self.proxy.expose_error_details is None:
            self.proxy.expose_error_details = self.environment != "prod"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.

        Secrets are masked.
        """
        proxy = self.proxy.model_dump()
        for secret in ("stream_token", "upstream_api_key"):
            if proxy.get(secret):
                proxy[secret] = "***"
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {
                "backend": self.cache.backend,
                "dir": str(self.cache.directory),
                "redis_url": self.cache.redis_url,
                "ttl_seconds": self.cache.ttl_seconds,
                "max_concurrent": self.cache.max_concurrent,
                "max_memory_bytes": self.cache.max_memory_bytes,
            },
            "resolver": self.resolver.model_dump(),
            "proxy": proxy,
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read VIDRELAY_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - VIDRELAY_STREAM_TOKEN
    - VIDRELAY_UPSTREAM_API_KEY
    - VIDRELAY_CACHE_BACKEND
    - VIDRELAY_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDRELAY_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[CacheBackendName] = None
    cache_dir: Optional[Path] = None
    cache_redis_url: Optional[str] = None

    resolver_cache_ttl_seconds: Optional[int] = None
    resolver_single_flight: Optional[bool] = None

    stream_token: Optional[str] = None
    upstream_api_key: Optional[str] = None
    upstream_url_template: Optional[str] = None
    expose_error_details: Optional[bool] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
