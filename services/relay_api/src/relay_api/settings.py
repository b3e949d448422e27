import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROD_ENV = "prod"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_env: str = "dev"
    log_level: str = "INFO"
    api_key: str = Field(..., validation_alias="API_KEY")
    api_url: str = Field(..., validation_alias="API_URL")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")
    upstream_timeout_seconds: float = Field(
        default=60, validation_alias="UPSTREAM_TIMEOUT_SECONDS"
    )
    static_dir: str = Field(default=".", validation_alias="STATIC_DIR")
    serve_static: bool = Field(default=True, validation_alias="SERVE_STATIC")

    @field_validator("api_key", "api_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("API_KEY and API_URL must not be empty")
        return value.strip()

    @field_validator("upstream_timeout_seconds")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be positive")
        return value


def load_settings() -> Settings:
    # Production takes its configuration from the real environment only.
    if os.environ.get("APP_ENV", "dev").lower() == PROD_ENV:
        return Settings(_env_file=None)
    return Settings()


@lru_cache
def get_settings() -> Settings:
    return load_settings()
