"""
Configuration management for the shopsync ingestion engine
"""
from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


DEFAULT_FIXTURE_PATH = str(Path(__file__).parent / "data" / "fixture_tenants.json")


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "shopsync"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./shopsync.db"

    # Shopify Admin API
    shopify_api_version: str = "2024-01"
    shopify_webhook_secret: str = ""
    shopify_request_timeout_ms: int = 10000  # Floored at 1000ms by the client
    shopify_max_retries: int = 3  # Retries after the first attempt
    shopify_rate_limit_backoff_seconds: int = 2  # Used when Retry-After is absent
    shopify_page_size: int = 250  # Shopify max per page
    shopify_requests_per_second: float = 2.0  # Per-shop pacing, 0 disables

    # Fixture datasets (demo / test tenants)
    fixtures_enabled: bool = True
    fixture_data_path: Optional[str] = DEFAULT_FIXTURE_PATH

    # Sync schedule
    scheduler_enabled: bool = True
    sync_interval_seconds: int = 300  # 5 minutes between sweeps
    sync_max_workers: int = 1  # >1 syncs tenants in parallel

    # Normalization
    default_currency: str = "USD"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
