"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3001
    app_base_url: str = "http://localhost:3001"
    app_secret_key: str
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (dedup window, rate limiting, realtime events)
    redis_url: str = "redis://localhost:6379/0"

    # Supabase auth - tokens are issued there, only verified here
    supabase_url: str = ""
    supabase_jwt_secret: str = ""
    jwt_audience: str = "authenticated"

    # Sentry
    sentry_dsn: str = ""

    # CORS
    allowed_origins: str = ""  # Comma-separated extra origins

    # Lead intake
    default_pipeline: str = "high_ticket"
    public_lead_rate_limit: int = 20  # submissions per window per IP
    public_lead_rate_window: int = 3600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
