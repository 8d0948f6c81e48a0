"""Block-explorer links for confirmed transactions."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ExplorerLinks:
    tx_base_url: str = "https://solscan.io/tx"
    cluster: str | None = "devnet"

    def transaction(self, tx_hash: str) -> str:
        url = f"{self.tx_base_url.rstrip('/')}/{tx_hash}"
        if self.cluster:
            url = f"{url}?cluster={self.cluster}"
        return url


__all__ = ["ExplorerLinks"]
