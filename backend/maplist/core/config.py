from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = Field(default="dev", validation_alias="ENV")
    database_url: str = Field(default="sqlite:///./dev.db", validation_alias="DATABASE_URL")
    cors_origins_raw: Optional[str] = Field(
        default=None,
        validation_alias="CORS_ORIGINS",
    )
    discord_api_base: str = Field(
        default="https://discord.com/api",
        validation_alias="DISCORD_API_BASE",
    )
    http_timeout: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("discord_api_base", mode="before")
    @classmethod
    def normalize_discord_api_base(cls, v: Optional[str]) -> str:
        """Strip whitespace and trailing / so paths can be appended directly."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "https://discord.com/api"
        return str(v).strip().rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Optional[str]) -> str:
        return (v or "INFO").strip().upper()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @staticmethod
    def parse_cors_origins(raw: Optional[str]) -> List[str]:
        if not raw:
            # Default to local frontend for dev
            return ["http://localhost:3000"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return Settings.parse_cors_origins(self.cors_origins_raw)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
