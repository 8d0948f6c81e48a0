"""Async JSON-RPC client for Solana-compatible ledgers."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import base58
import httpx

from kingtiles_relayer.domain.exceptions import LedgerRpcError, TransactionFailedError

logger = logging.getLogger("kingtiles_relayer.ledger")

_CONFIRMED_STATES = {"confirmed": ("confirmed", "finalized"), "finalized": ("finalized",)}


@dataclass(frozen=True, slots=True)
class AccountInfo:
    owner: str
    data: bytes
    lamports: int


@dataclass(frozen=True, slots=True)
class ProgramAccount:
    address: str
    account: AccountInfo


class SolanaRpcClient:
    """Thin JSON-RPC wrapper; every failure surfaces as :class:`LedgerRpcError`."""

    def __init__(
        self,
        *,
        endpoint: str,
        name: str,
        commitment: str = "confirmed",
        timeout: float = 15.0,
        confirm_timeout: float = 30.0,
        poll_interval: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError(f"{name} RPC endpoint must be provided")
        self.name = name
        self.endpoint = endpoint
        self._commitment = commitment
        self._confirm_timeout = confirm_timeout
        self._poll_interval = poll_interval
        self._owns_client = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerRpcError(f"{self.name} {method} request failed: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise LedgerRpcError(f"{self.name} returned {response.status_code} for {method}")
        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerRpcError(f"{self.name} returned invalid JSON for {method}") from exc
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LedgerRpcError(f"{self.name} {method} error: {message}")
        return body.get("result")

    # --- Reads ---

    async def get_account_info(self, address: str) -> AccountInfo | None:
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        return _parse_account(value)

    async def get_program_accounts(self, program_id: str, *, discriminator: bytes) -> list[ProgramAccount]:
        config = {
            "encoding": "base64",
            "commitment": self._commitment,
            "filters": [{"memcmp": {"offset": 0, "bytes": base58.b58encode(discriminator).decode("ascii")}}],
        }
        result = await self.call("getProgramAccounts", [program_id, config])
        accounts: list[ProgramAccount] = []
        for entry in result or []:
            accounts.append(ProgramAccount(address=entry["pubkey"], account=_parse_account(entry["account"])))
        return accounts

    async def get_slot(self) -> int:
        return int(await self.call("getSlot", [{"commitment": self._commitment}]))

    async def get_block_time(self, slot: int) -> int | None:
        result = await self.call("getBlockTime", [slot])
        return int(result) if result is not None else None

    async def get_latest_blockhash(self) -> str:
        result = await self.call("getLatestBlockhash", [{"commitment": self._commitment}])
        try:
            return str(result["value"]["blockhash"])
        except (KeyError, TypeError) as exc:
            raise LedgerRpcError(f"{self.name} returned no blockhash") from exc

    # --- Writes ---

    async def send_transaction(self, raw: bytes) -> str:
        encoded = base64.b64encode(raw).decode("ascii")
        config = {"encoding": "base64", "skipPreflight": True, "preflightCommitment": self._commitment}
        return str(await self.call("sendTransaction", [encoded, config]))

    async def confirm_transaction(self, signature: str) -> None:
        """Poll until ``signature`` reaches the configured commitment or fails."""
        accepted = _CONFIRMED_STATES.get(self._commitment, ("processed", "confirmed", "finalized"))
        deadline = time.monotonic() + self._confirm_timeout
        while True:
            result = await self.call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": False}],
            )
            statuses = (result or {}).get("value") or [None]
            status = statuses[0]
            if status is not None:
                if status.get("err") is not None:
                    logs = await self.get_transaction_logs(signature)
                    raise TransactionFailedError(
                        f"{self.name} transaction {signature} failed: {status['err']}",
                        signature=signature,
                        logs=logs,
                    )
                if status.get("confirmationStatus") in accepted:
                    return
            if time.monotonic() >= deadline:
                raise TransactionFailedError(
                    f"{self.name} transaction {signature} not confirmed within {self._confirm_timeout}s",
                    signature=signature,
                )
            await asyncio.sleep(self._poll_interval)

    async def get_transaction_logs(self, signature: str) -> tuple[str, ...]:
        try:
            result = await self.call(
                "getTransaction",
                [signature, {"encoding": "json", "commitment": "confirmed", "maxSupportedTransactionVersion": 0}],
            )
        except LedgerRpcError as exc:
            logger.debug("transaction log lookup failed", extra={"data": {"signature": signature, "error": str(exc)}})
            return ()
        meta = (result or {}).get("meta") or {}
        return tuple(meta.get("logMessages") or ())


def _parse_account(value: dict[str, Any]) -> AccountInfo:
    data_field = value.get("data") or ["", "base64"]
    raw = data_field[0] if isinstance(data_field, list) else data_field
    return AccountInfo(
        owner=str(value["owner"]),
        data=base64.b64decode(raw) if raw else b"",
        lamports=int(value.get("lamports", 0)),
    )


__all__ = ["AccountInfo", "ProgramAccount", "SolanaRpcClient"]
