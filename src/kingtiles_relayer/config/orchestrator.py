"""Timing and retry configuration for the session lifecycle."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kingtiles_relayer.application.retry import RetryPolicy
from kingtiles_relayer.application.services.settlement import SettlementConfig
from kingtiles_relayer.application.services.status import StatusReadConfig
from kingtiles_relayer.application.services.ticks import TickPeriods


class OrchestratorSettings(BaseSettings):
    """Lifecycle timings; tests shrink these to run scenarios quickly."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    game_duration_seconds: float = Field(default=60.0, alias="GAME_DURATION_SECONDS")
    score_period_seconds: float = Field(default=1.0, alias="SCORE_PERIOD_SECONDS")
    king_period_seconds: float = Field(default=5.0, alias="KING_PERIOD_SECONDS")
    powerup_period_seconds: float = Field(default=7.0, alias="POWERUP_PERIOD_SECONDS")
    bomb_period_seconds: float = Field(default=10.0, alias="BOMB_PERIOD_SECONDS")
    watchdog_interval_seconds: float = Field(default=5.0, alias="WATCHDOG_INTERVAL_SECONDS")
    settling_delay_seconds: float = Field(default=5.0, alias="SETTLING_DELAY_SECONDS")

    status_active_ttl_seconds: float = Field(default=0.4, alias="STATUS_ACTIVE_TTL_SECONDS")
    status_inactive_ttl_seconds: float = Field(default=1.5, alias="STATUS_INACTIVE_TTL_SECONDS")
    execution_read_attempts: int = Field(default=2, alias="EXECUTION_READ_ATTEMPTS")
    execution_active_read_attempts: int = Field(default=3, alias="EXECUTION_ACTIVE_READ_ATTEMPTS")
    execution_read_pause_seconds: float = Field(default=0.3, alias="EXECUTION_READ_PAUSE_SECONDS")

    reward_max_attempts: int = Field(default=10, alias="REWARD_MAX_ATTEMPTS")
    reward_base_delay_seconds: float = Field(default=12.0, alias="REWARD_BASE_DELAY_SECONDS")
    reward_max_delay_seconds: float = Field(default=60.0, alias="REWARD_MAX_DELAY_SECONDS")
    ownership_max_attempts: int = Field(default=6, alias="OWNERSHIP_MAX_ATTEMPTS")
    ownership_base_delay_seconds: float = Field(default=6.0, alias="OWNERSHIP_BASE_DELAY_SECONDS")
    ownership_max_delay_seconds: float = Field(default=30.0, alias="OWNERSHIP_MAX_DELAY_SECONDS")
    retry_jitter_ratio: float = Field(default=0.2, alias="RETRY_JITTER_RATIO")

    def tick_periods(self) -> TickPeriods:
        return TickPeriods(
            score_seconds=self.score_period_seconds,
            king_seconds=self.king_period_seconds,
            powerup_seconds=self.powerup_period_seconds,
            bomb_seconds=self.bomb_period_seconds,
        )

    def settlement_config(self) -> SettlementConfig:
        return SettlementConfig(
            settling_delay_seconds=self.settling_delay_seconds,
            reward_policy=RetryPolicy(
                max_attempts=self.reward_max_attempts,
                base_delay=self.reward_base_delay_seconds,
                max_delay=self.reward_max_delay_seconds,
                jitter_ratio=self.retry_jitter_ratio,
            ),
            ownership_policy=RetryPolicy(
                max_attempts=self.ownership_max_attempts,
                base_delay=self.ownership_base_delay_seconds,
                max_delay=self.ownership_max_delay_seconds,
                jitter_ratio=self.retry_jitter_ratio,
            ),
        )

    def status_read_config(self) -> StatusReadConfig:
        pause = self.execution_read_pause_seconds
        return StatusReadConfig(
            active_ttl_seconds=self.status_active_ttl_seconds,
            inactive_ttl_seconds=self.status_inactive_ttl_seconds,
            execution_policy=RetryPolicy(max_attempts=self.execution_read_attempts, base_delay=pause, max_delay=pause),
            execution_active_policy=RetryPolicy(
                max_attempts=self.execution_active_read_attempts, base_delay=pause, max_delay=pause
            ),
        )


__all__ = ["OrchestratorSettings"]
