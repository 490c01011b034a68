"""Application settings loaded from the environment."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LimitsSettings(BaseModel):
    """Request throttling knobs."""

    rate_limit_rpm: int = 30
    idempotency_ttl_seconds: int = 60 * 30


class CacheSettings(BaseModel):
    """Response cache configuration."""

    backend_type: Literal["memory", "redis"] = "redis"
    ttl_seconds: int = 30


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    ENV: str = "dev"
    PROJECT_NAME: str = "Claude Token Share"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "claude_tokens"
    POSTGRES_USER: str = "claude"
    POSTGRES_PASSWORD: str = ""
    DATABASE_URI: str | None = None
    DB_POOL_SIZE: int = 20
    DB_ECHO: bool = False

    REDIS_URI: str = "redis://localhost:6379/0"

    SESSION_SECRET: str = "complex_password_at_least_32_characters_long_for_security"
    SESSION_COOKIE_NAME: str = "claude-token-share-session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24
    JWT_ALG: str = "HS256"

    APP_URL: str = "http://localhost:47391"
    USAGE_YEAR: int = 2025

    ANTHROPIC_API_BASE: str = "https://api.anthropic.com"
    ANTHROPIC_VERSION: str = "2023-06-01"
    ADMIN_KEY_PREFIX: str = "sk-ant-admin-"
    USAGE_PAGE_LIMIT: int = 1000
    USAGE_MAX_PAGES: int = 500
    UPSTREAM_TIMEOUT_SECONDS: float = 20.0

    X_CLIENT_ID: str = ""
    X_CLIENT_SECRET: str = ""
    X_APP_KEY: str = ""
    X_APP_SECRET: str = ""
    X_APP_ACCESS_TOKEN: str = ""
    X_APP_ACCESS_SECRET: str = ""
    X_API_BASE: str = "https://api.twitter.com"
    X_UPLOAD_BASE: str = "https://upload.twitter.com"
    X_AUTHORIZE_URL: str = "https://twitter.com/i/oauth2/authorize"
    X_TOKEN_URL: str = "https://api.twitter.com/2/oauth2/token"
    X_SCOPES: str = "tweet.read tweet.write users.read offline.access"
    X_POST_URL_BASE: str = "https://x.com"

    LEADERBOARD_PAGE_SIZE: int = 25
    POST_MAX_CHARS: int = 280
    LOCAL_SCAN_MAX_DEPTH: int = 10

    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @property
    def database_url(self) -> str:
        if self.DATABASE_URI:
            return self.DATABASE_URI
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def RATE_LIMIT_RPM(self) -> int:
        return self.limits.rate_limit_rpm

    @property
    def CACHE_TTL_SECONDS(self) -> int:
        return self.cache.ttl_seconds

    @property
    def x_redirect_uri(self) -> str:
        return f"{self.APP_URL.rstrip('/')}{self.API_PREFIX}/v1/auth/x/callback"

    @property
    def x_app_credentials_configured(self) -> bool:
        return all(
            (
                self.X_APP_KEY,
                self.X_APP_SECRET,
                self.X_APP_ACCESS_TOKEN,
                self.X_APP_ACCESS_SECRET,
            )
        )


settings = Settings()
