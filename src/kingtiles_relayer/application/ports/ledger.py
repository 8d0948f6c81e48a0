"""Port definitions for the base ledger and the execution layer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from kingtiles_relayer.domain.board import BoardState
from kingtiles_relayer.domain.session import SessionConfig


@dataclass(frozen=True, slots=True)
class BoardAccount:
    """A board account together with the address it was read from."""

    address: str
    board: BoardState


class BaseLedgerPort(Protocol):
    """Authoritative ledger used for registration, delegation and settlement."""

    @property
    def program_id(self) -> str:
        """Address of the game-rule program that owns settled boards."""

    @property
    def custody_address(self) -> str:
        """Public address of the signer used for every write."""

    def board_address(self, session_id: int) -> str:
        """Return the deterministic board account address for ``session_id``."""

    async def get_account_owner(self, address: str) -> str | None:
        """Return the owning program of ``address`` or ``None`` when the account is missing."""

    async def fetch_board(self, session_id: int) -> BoardState:
        """Return the decoded board; raises ``AccountNotFoundError`` when absent."""

    async def list_boards(self) -> Sequence[BoardAccount]:
        """Enumerate every decodable board account owned by the program."""

    async def now(self) -> int:
        """Return the ledger's own unix time in seconds."""

    async def start_session(self, session_id: int, config: SessionConfig) -> str:
        """Create the board account and return the transaction hash."""

    async def delegate_board(self, session_id: int) -> str:
        """Hand the board over to the execution layer and return the transaction hash."""

    async def distribute_rewards(self, session_id: int, payees: Sequence[str]) -> str:
        """Pay every registered player and return the transaction hash."""

    async def aclose(self) -> None:
        """Release any held resources."""


class ExecutionLayerPort(Protocol):
    """Fast ledger that holds the board while the game is running."""

    async def fetch_board(self, session_id: int) -> BoardState:
        """Return the decoded board; raises ``AccountNotFoundError`` when absent."""

    async def request_king_move(self, session_id: int) -> str:
        """Request randomness for a king move."""

    async def request_powerup_spawn(self, session_id: int) -> str:
        """Request randomness for a powerup placement."""

    async def request_bomb_drop(self, session_id: int) -> str:
        """Request randomness for a bomb drop."""

    async def accrue_scores(self, session_id: int) -> str:
        """Apply one score tick to every player."""

    async def end_session(self, session_id: int) -> str:
        """End the game, commit the board and undelegate it back to the base ledger."""

    async def aclose(self) -> None:
        """Release any held resources."""


__all__ = ["BaseLedgerPort", "BoardAccount", "ExecutionLayerPort"]
