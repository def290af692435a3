from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "ephemeral-relay"
    app_env: str = "dev"
    secret_key: str = "relay-change-me-in-production"
    storage_backend: Literal["memory", "directory"] = "directory"
    storage_dir: str = "/dev/shm/relay"
    max_upload_size_bytes: int = 512 * 1024 * 1024
    file_lifetime_seconds: int = 300
    sweep_interval_seconds: int = 60
    chunk_size_bytes: int = 2 * 1024 * 1024
    base_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="RELAY_", frozen=True)

    @model_validator(mode="after")
    def check_limits(self) -> "Settings":
        if not self.secret_key:
            raise ValueError("secret_key must not be empty")
        if self.max_upload_size_bytes <= 0:
            raise ValueError("max_upload_size_bytes must be positive")
        if self.file_lifetime_seconds <= 0:
            raise ValueError("file_lifetime_seconds must be positive")
        if not 0 < self.sweep_interval_seconds < self.file_lifetime_seconds:
            raise ValueError("sweep_interval_seconds must be positive and shorter than file_lifetime_seconds")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
