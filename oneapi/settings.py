from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    _project_root = Path(__file__).parent.parent

    model_config = SettingsConfigDict(
        env_file=str(_project_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        "sqlite+pysqlite:///./oneapi.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL holding channels, tokens and settings",
    )
    auto_create_tables: bool = Field(
        True,
        alias="AUTO_CREATE_TABLES",
        description="Create missing tables on startup (disable when Alembic manages the schema)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL used for the channel cache",
    )
    channel_cache_ttl: int = Field(
        30,
        alias="CHANNEL_CACHE_TTL",
        description="Seconds to cache channel configs in Redis; 0 disables the cache",
    )

    # Upstream
    upstream_timeout: float = Field(
        600.0,
        alias="UPSTREAM_TIMEOUT",
        description="Timeout in seconds for calls to upstream providers",
    )
    anthropic_default_version: str = Field(
        "2023-06-01",
        alias="ANTHROPIC_DEFAULT_VERSION",
        description="anthropic-version header used when a Claude channel sets no api_version",
    )
    responses_output_char_limit: int = Field(
        200_000,
        alias="RESPONSES_OUTPUT_CHAR_LIMIT",
        description="Maximum streamed output characters kept for responses usage estimation",
    )
    background_drain_timeout: float = Field(
        30.0,
        alias="BACKGROUND_DRAIN_TIMEOUT",
        description="Upper bound in seconds to wait for detached usage tasks at shutdown",
    )

    # Logging
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level, e.g. DEBUG / INFO / WARNING",
    )
    log_dir: str = Field(
        "logs",
        alias="LOG_DIR",
        description="Directory for daily log folders; relative paths resolve against the project root",
    )
    log_timezone: str | None = Field(
        None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. Asia/Shanghai; defaults to system local time",
    )
    log_backup_days: int = Field(
        7,
        alias="LOG_BACKUP_DAYS",
        description="Number of daily log folders to keep",
    )


settings = Settings()
