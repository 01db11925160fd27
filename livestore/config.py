"""
Configuration settings for livestore.

Uses Pydantic Settings to load environment variables for the storage backend,
the write worker pool, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Storage
    backend: Literal["memory", "postgres"] = Field("memory", alias="LIVESTORE_BACKEND")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("livestore", alias="DB_NAME")
    db_pool_min: int = Field(1, alias="DB_POOL_MIN")
    db_pool_max: int = Field(4, alias="DB_POOL_MAX")

    # Writes and observation
    write_workers: int = Field(4, alias="LIVESTORE_WRITE_WORKERS", ge=1)
    allow_main_thread_queries: bool = Field(False, alias="LIVESTORE_ALLOW_MAIN_THREAD")
    prepopulate: bool = Field(False, alias="LIVESTORE_PREPOPULATE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
