from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_ENDPOINT = "https://chat-ai.academiccloud.de/v1"


class Settings(BaseSettings):
    api_endpoint: str = DEFAULT_API_ENDPOINT
    api_key: str | None = None
    host: str = "0.0.0.0"
    port: int = 8081
    service_name: str = Field(
        default="Custom Chat AI",
        validation_alias=AliasChoices("service_name", "servce_name"),
    )
    development: bool = False
    upstream_connect_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    @field_validator("api_endpoint")
    @classmethod
    def _validate_api_endpoint(cls, value: str) -> str:
        normalized = value.strip()
        scheme, _, rest = normalized.partition("://")
        if scheme.lower() not in {"http", "https"} or not rest.strip("/"):
            raise ValueError("Invalid Endpoint-URL")
        return normalized.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def _blank_api_key_is_unset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("port")
    @classmethod
    def _validate_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError("Port must be between 1 and 65535")
        return value

    @property
    def log_level(self) -> str:
        return "debug" if self.development else "info"


@lru_cache
def get_settings() -> Settings:
    return Settings()
