"""Leaderboard store configuration."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LeaderboardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: SecretStr | None = Field(default=None, alias="SUPABASE_SERVICE_ROLE_KEY")
    table: str = Field(default="leaderboard", alias="SUPABASE_LEADERBOARD_TABLE")
    timeout_seconds: float = Field(default=10.0, alias="SUPABASE_TIMEOUT_SECONDS")

    @property
    def service_role_key_value(self) -> str | None:
        key = self.supabase_service_role_key
        return key.get_secret_value() if key is not None else None


__all__ = ["LeaderboardSettings"]
