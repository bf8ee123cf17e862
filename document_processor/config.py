from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from DOCPROC_* environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DOCPROC_", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    max_file_size_bytes: int = 100 * 1024 * 1024
    max_processing_time_ms: int = 300_000
    max_text_length: int = 10_000_000
    max_table_rows: int = 100_000
    max_excel_sheets: int = 50

    cors_origins: List[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
