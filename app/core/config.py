from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except ValueError:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="Property AI", alias="APP_NAME")
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="propertyai", alias="MONGODB_DB_NAME")
    # Multi-document transactions need a replica set (Atlas, or rs0 locally)
    mongodb_transactions: bool = Field(default=False, alias="MONGODB_TRANSACTIONS")

    # Redis (ARQ notification queue)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Identity provider
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    access_token_max_age: int = Field(default=7 * 24 * 3600, alias="ACCESS_TOKEN_MAX_AGE")

    # Notifications
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    resend_api_url: str = Field(default="https://api.resend.com/emails", alias="RESEND_API_URL")
    notification_from: str = Field(
        default="Property AI <notifications@resend.dev>",
        alias="NOTIFICATION_FROM",
    )
    notification_timeout_seconds: float = Field(default=5.0, alias="NOTIFICATION_TIMEOUT_SECONDS")
    notification_backend: str = Field(default="inline", alias="NOTIFICATION_BACKEND")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Credit economics
    default_listing_credits: int = 10
    default_boosting_credits: int = 5
    agent_listing_credits: int = 50
    agent_boosting_credits: int = 10
    listing_credits_per_post: int = 1
    boosting_credits_per_boost: int = 1
    featured_days: int = 7


@lru_cache
def get_settings() -> Settings:
    return Settings()
