"""
Configuration management for the bird-db service.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """Configuration for the dataset file."""

    data_file: Path = Field(
        default=Path("birdIndex.json"),
        description="JSON array of bird records (optionally .zst compressed)",
    )

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class ServerConfig(BaseSettings):
    """Configuration for the HTTP layer."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3022, description="Bind port")
    path_prefix: str = Field(
        default="/avibase-mcp", description="Prefix all routes are mounted under"
    )
    dev_mode: bool = Field(
        default=False, description="Development mode (relaxed rate limits)"
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins"
    )
    trusted_proxies: list[str] = Field(
        default_factory=list,
        description="Proxy addresses whose X-Forwarded-For header is honoured",
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10MB
        description="Maximum accepted request body size",
    )

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class RateLimitConfig(BaseSettings):
    """Configuration for per-client rate limiting."""

    window_seconds: float = Field(
        default=15 * 60, description="Sliding window length in seconds"
    )
    max_requests: int = Field(
        default=100, description="Requests allowed per window (normal mode)"
    )
    dev_max_requests: int = Field(
        default=1000, description="Requests allowed per window (dev mode)"
    )
    max_tracked_clients: int = Field(
        default=10_000, description="Upper bound on tracked client addresses"
    )

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")


class QueryConfig(BaseSettings):
    """Configuration for query execution and pagination."""

    timeout_seconds: float = Field(
        default=10.0, description="Per-query execution timeout"
    )
    max_workers: int = Field(
        default=4, description="Worker threads evaluating queries"
    )

    default_page_size: int = Field(default=50, description="Default page size")
    unique_page_size: int = Field(
        default=100, description="Default page size for unique-value listings"
    )
    max_page_size: int = Field(
        default=1000, description="Page sizes above this are clamped"
    )

    random_default_count: int = Field(default=10, description="Default sample size")
    random_max_count: int = Field(default=100, description="Sample size cap")
    related_family_limit: int = Field(
        default=5, description="Related records returned in a bird report"
    )

    model_config = SettingsConfigDict(env_prefix="QUERY_")


class Config(BaseSettings):
    """Main configuration."""

    # Sub-configs
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)

    # Global settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="'text' or 'json'")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_nested_delimiter="__"
    )

    @property
    def rate_limit_max(self) -> int:
        """Request budget for the active mode."""
        if self.server.dev_mode:
            return self.rate_limit.dev_max_requests
        return self.rate_limit.max_requests


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (mainly for testing)."""
    global _config
    _config = None
