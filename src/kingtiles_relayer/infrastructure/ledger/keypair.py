"""Custody key loading."""

from __future__ import annotations

import base58
from solders.keypair import Keypair

from kingtiles_relayer.domain.exceptions import KeypairError


def load_custody_keypair(secret_base58: str | None) -> Keypair:
    """Decode a base58 secret holding either a 32-byte seed or a 64-byte keypair."""
    if secret_base58 is None or not secret_base58.strip():
        raise KeypairError("TREASURY_SECRET_BASE58 must be configured")
    try:
        raw = base58.b58decode(secret_base58.strip())
    except ValueError as exc:
        raise KeypairError("TREASURY_SECRET_BASE58 is not valid base58") from exc
    if len(raw) == 64:
        try:
            return Keypair.from_bytes(raw)
        except ValueError as exc:
            raise KeypairError("TREASURY_SECRET_BASE58 does not hold a valid keypair") from exc
    if len(raw) == 32:
        return Keypair.from_seed(raw)
    raise KeypairError(f"TREASURY_SECRET_BASE58 must decode to 32 or 64 bytes, got {len(raw)}")


__all__ = ["load_custody_keypair"]
