"""Domain-specific exception types."""

from __future__ import annotations


class InvalidModeError(ValueError):
    """Raised when the board side/max-player pair is not in the catalog."""


class InvalidSessionConfigError(ValueError):
    """Raised when registration fee or reward-per-score is not positive."""


class DuplicateSessionError(RuntimeError):
    """Raised when a board account already exists for the requested session id."""


class CustodyMismatchError(RuntimeError):
    """Raised when the configured signer is not the custody key the program expects."""


class SessionStillActiveError(RuntimeError):
    """Raised when a settlement-only operation is requested for an active board."""


class RewardDistributionInFlightError(RuntimeError):
    """Raised when a reward sequence is already running for the session."""


class AccountNotFoundError(LookupError):
    """Raised when a ledger account does not exist."""


class LedgerRpcError(RuntimeError):
    """Raised when a ledger RPC endpoint fails or returns an error object."""


class TransactionFailedError(LedgerRpcError):
    """Raised when a submitted transaction lands with an error or never confirms."""

    def __init__(self, message: str, *, signature: str | None = None, logs: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.signature = signature
        self.logs = logs


class LedgerUnavailableError(RuntimeError):
    """Raised when the authoritative source for an active session cannot be reached."""


class OwnershipMismatchError(RuntimeError):
    """Raised when a board is still owned by the execution-layer program at settlement."""

    def __init__(self, *, session_id: int, owner: str, expected: str) -> None:
        super().__init__(
            f"board owner mismatch for session {session_id}: owner={owner}, expected={expected}"
        )
        self.session_id = session_id
        self.owner = owner
        self.expected = expected


class KeypairError(ValueError):
    """Raised when the custody key cannot be decoded."""


class LeaderboardNotConfiguredError(RuntimeError):
    """Raised when leaderboard reads are requested without a configured store."""


__all__ = [
    "AccountNotFoundError",
    "CustodyMismatchError",
    "DuplicateSessionError",
    "InvalidModeError",
    "InvalidSessionConfigError",
    "KeypairError",
    "LeaderboardNotConfiguredError",
    "LedgerRpcError",
    "LedgerUnavailableError",
    "OwnershipMismatchError",
    "RewardDistributionInFlightError",
    "SessionStillActiveError",
    "TransactionFailedError",
]
