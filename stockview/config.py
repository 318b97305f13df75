"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./stock.db"
    database_busy_timeout_ms: int = 5000

    # Stock feed (published Google Sheet, CSV output)
    sheet_url: str = (
        "https://docs.google.com/spreadsheets/d/e/"
        "2PACX-1vTWGmeQneNnEBcPJA8e6oBeXDLuJ-4Xz0nvLJnLiCls4IHNzSkW5_cgA9YmHpgF2Xz0DWG7prYViY87"
        "/pub?gid=200970122&single=true&output=csv"
    )

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    app_host: str = "0.0.0.0"
    app_port: int = 3001

    # Scheduler
    sync_interval_minutes: int = 5
    sync_on_startup: bool = True
    sync_batch_size: int = 500  # Rows per INSERT inside the refresh transaction

    # ==========================================================================
    # Feed fetch retry policy
    # ==========================================================================
    fetch_max_attempts: int = 3
    fetch_base_delay_seconds: float = 1.0
    fetch_backoff_multiplier: float = 2.0
    fetch_timeout_seconds: float = 30.0

    # ==========================================================================
    # Query defaults
    # ==========================================================================
    default_page_size: int = 20
    max_page_size: int = 500

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
