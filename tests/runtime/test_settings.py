from __future__ import annotations

import pytest

from kingtiles_relayer.config.ledger import websocket_url
from kingtiles_relayer.runtime.settings import Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "RPC_URL",
        "RPC_WS_URL",
        "ER_ENDPOINT",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
        "ENABLE_CLOUD_LOGGING",
        "GCP_PROJECT_ID",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_target_devnet() -> None:
    settings = Settings()

    assert settings.port == 8787
    assert settings.ledger.rpc_url == "https://api.devnet.solana.com"
    assert settings.ledger.base_ws_url == "wss://api.devnet.solana.com"
    assert settings.orchestrator.game_duration_seconds == 60.0
    assert settings.leaderboard.service_role_key_value is None
    assert settings.cors_origins == ["*"]


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINGTILES_RELAYER_PORT", "9000")
    monkeypatch.setenv("RPC_URL", "http://127.0.0.1:8899")
    monkeypatch.setenv("TREASURY_SECRET_BASE58", "secret-value")
    monkeypatch.setenv("REWARD_MAX_ATTEMPTS", "4")
    monkeypatch.setenv("SCORE_PERIOD_SECONDS", "0.5")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.test, https://b.test")

    settings = Settings()

    assert settings.port == 9000
    assert settings.ledger.base_ws_url == "ws://127.0.0.1:8899"
    assert settings.ledger.treasury_secret_value == "secret-value"
    assert "secret-value" not in repr(settings)
    assert settings.orchestrator.settlement_config().reward_policy.max_attempts == 4
    assert settings.orchestrator.tick_periods().score_seconds == 0.5
    assert settings.cors_origins == ["https://a.test", "https://b.test"]


def test_explicit_websocket_endpoint_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RPC_WS_URL", "wss://ws.example.test")

    assert Settings().ledger.base_ws_url == "wss://ws.example.test"


def test_status_read_config_uses_configured_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXECUTION_ACTIVE_READ_ATTEMPTS", "5")

    config = Settings().orchestrator.status_read_config()

    assert config.execution_active_policy.max_attempts == 5
    assert config.execution_policy.max_attempts == 2


@pytest.mark.parametrize(
    ("http_url", "expected"),
    [
        ("https://devnet.magicblock.app/", "wss://devnet.magicblock.app/"),
        ("http://localhost:8899", "ws://localhost:8899"),
    ],
)
def test_websocket_url_mapping(http_url: str, expected: str) -> None:
    assert websocket_url(http_url) == expected


def test_cloud_logging_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENABLE_CLOUD_LOGGING", "true")
    monkeypatch.setenv("GCP_PROJECT_ID", "kingtiles-prod")

    settings = Settings()

    assert settings.enable_cloud_logging is True
    assert settings.gcp_project_id == "kingtiles-prod"
