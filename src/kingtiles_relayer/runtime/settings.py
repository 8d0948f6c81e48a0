"""Configuration helpers for relayer runtime wiring."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kingtiles_relayer.config.leaderboard import LeaderboardSettings
from kingtiles_relayer.config.ledger import LedgerSettings
from kingtiles_relayer.config.orchestrator import OrchestratorSettings


class Settings(BaseSettings):
    """Relayer runtime configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="KINGTILES_RELAYER_HOST")  # noqa: S104
    port: int = Field(default=8787, alias="KINGTILES_RELAYER_PORT")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    # --- Observability ---
    enable_cloud_logging: bool = Field(default=False, alias="ENABLE_CLOUD_LOGGING")
    gcp_project_id: str | None = Field(default=None, alias="GCP_PROJECT_ID")

    # --- Component settings ---
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    leaderboard: LeaderboardSettings = Field(default_factory=LeaderboardSettings)

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("kingtiles_relayer.settings")
        logger.info("relayer settings loaded: %r", instance)
        return instance


__all__ = ["Settings"]
