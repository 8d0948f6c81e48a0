"""Ledger endpoints, program identity and custody key configuration."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_ER_ENDPOINT = "https://devnet.magicblock.app/"
DEFAULT_PROGRAM_ID = "GAfcEqSSQJm2coiTRf4wL1SDX78jciwE6bN9eHwUaXi9"
DEFAULT_TREASURY_PUBKEY = "86uKSrcwj3j6gaSkK5Ggvt4ni5rokpBhrk2X2jUjDUoA"
DEFAULT_ORACLE_QUEUE = "5hBR571xnXppuCPveTrctfTU7tJLSN94nq7kv7FRK5Tc"


def websocket_url(http_url: str) -> str:
    """Map an ``http(s)://`` RPC URL to its ``ws(s)://`` counterpart."""
    if http_url.startswith("https://"):
        return "wss://" + http_url[len("https://") :]
    if http_url.startswith("http://"):
        return "ws://" + http_url[len("http://") :]
    return http_url


class LedgerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    rpc_url: str = Field(default=DEFAULT_RPC_URL, alias="RPC_URL")
    rpc_ws_url: str | None = Field(default=None, alias="RPC_WS_URL")
    er_endpoint: str = Field(default=DEFAULT_ER_ENDPOINT, alias="ER_ENDPOINT")
    er_ws_endpoint: str | None = Field(default=None, alias="ER_WS_ENDPOINT")
    program_id: str = Field(default=DEFAULT_PROGRAM_ID, alias="KING_TILES_PROGRAM_ID")
    treasury_secret: SecretStr | None = Field(default=None, alias="TREASURY_SECRET_BASE58")
    treasury_pubkey: str = Field(default=DEFAULT_TREASURY_PUBKEY, alias="TREASURY_PUBKEY")
    oracle_queue: str = Field(default=DEFAULT_ORACLE_QUEUE, alias="EPHEMERAL_ORACLE_QUEUE")
    commitment: str = Field(default="confirmed", alias="LEDGER_COMMITMENT")
    http_timeout_seconds: float = Field(default=15.0, alias="LEDGER_HTTP_TIMEOUT_SECONDS")
    confirm_timeout_seconds: float = Field(default=30.0, alias="LEDGER_CONFIRM_TIMEOUT_SECONDS")
    explorer_tx_base_url: str = Field(default="https://solscan.io/tx", alias="EXPLORER_TX_BASE_URL")
    explorer_cluster: str | None = Field(default="devnet", alias="EXPLORER_CLUSTER")

    @property
    def base_ws_url(self) -> str:
        return self.rpc_ws_url or websocket_url(self.rpc_url)

    @property
    def execution_ws_url(self) -> str:
        return self.er_ws_endpoint or websocket_url(self.er_endpoint)

    @property
    def treasury_secret_value(self) -> str:
        secret = self.treasury_secret
        return secret.get_secret_value() if secret is not None else ""


__all__ = ["LedgerSettings", "websocket_url"]
