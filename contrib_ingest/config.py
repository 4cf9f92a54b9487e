from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from CONTRIB_INGEST_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONTRIB_INGEST_",
        env_file=".env",
        extra="ignore",
    )

    storage_root: Path = Field(default=Path("storage/app/public"))
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    get_settings.cache_clear()
