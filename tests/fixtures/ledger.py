from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from kingtiles_relayer.application.ports.ledger import BaseLedgerPort, BoardAccount, ExecutionLayerPort
from kingtiles_relayer.domain.board import BoardState
from kingtiles_relayer.domain.exceptions import AccountNotFoundError, LedgerRpcError
from kingtiles_relayer.domain.session import SessionConfig
from tests.fixtures.builders import make_board

PROGRAM_ID = "GAfcEqSSQJm2coiTRf4wL1SDX78jciwE6bN9eHwUaXi9"
DELEGATION_OWNER = "DELeGGvXpWV2fqJUhqcF5ZSYMS4JTLjteaAMARRSaeSh"
CUSTODY = "86uKSrcwj3j6gaSkK5Ggvt4ni5rokpBhrk2X2jUjDUoA"


class _CallLog:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []
        self._tx_counter = 0

    def _record(self, name: str, session_id: int) -> str:
        self.calls.append((name, session_id))
        self._tx_counter += 1
        return f"{name}-tx-{self._tx_counter}"

    def count(self, name: str, session_id: int | None = None) -> int:
        return sum(
            1 for call, sid in self.calls if call == name and (session_id is None or sid == session_id)
        )


class FakeBaseLedger(_CallLog, BaseLedgerPort):
    """In-memory base ledger with a controllable clock and scripted failures."""

    def __init__(self, *, now: int = 1_000) -> None:
        super().__init__()
        self.boards: dict[int, BoardState] = {}
        self.owners: dict[str, str] = {}
        self.now_value = now
        self.now_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.list_error: Exception | None = None
        self.reward_errors: list[Exception] = []
        self.payouts: list[tuple[int, tuple[str, ...]]] = []

    @property
    def program_id(self) -> str:
        return PROGRAM_ID

    @property
    def custody_address(self) -> str:
        return CUSTODY

    def board_address(self, session_id: int) -> str:
        return f"board-{session_id}"

    def put_board(self, board: BoardState, *, owner: str = PROGRAM_ID) -> None:
        self.boards[board.session_id] = board
        self.owners[self.board_address(board.session_id)] = owner

    def update_board(self, session_id: int, **changes: object) -> None:
        self.boards[session_id] = replace(self.boards[session_id], **changes)

    async def get_account_owner(self, address: str) -> str | None:
        return self.owners.get(address)

    async def fetch_board(self, session_id: int) -> BoardState:
        self.calls.append(("fetch_board", session_id))
        if self.fetch_error is not None:
            raise self.fetch_error
        board = self.boards.get(session_id)
        if board is None:
            raise AccountNotFoundError(f"board {session_id} not found")
        return board

    async def list_boards(self) -> list[BoardAccount]:
        if self.list_error is not None:
            raise self.list_error
        return [
            BoardAccount(address=self.board_address(session_id), board=board)
            for session_id, board in sorted(self.boards.items())
        ]

    async def now(self) -> int:
        if self.now_error is not None:
            raise self.now_error
        return self.now_value

    async def start_session(self, session_id: int, config: SessionConfig) -> str:
        tx_hash = self._record("start_session", session_id)
        self.put_board(
            make_board(
                session_id,
                board_side_len=config.board_side_len,
                max_players=config.max_players,
                registration_fee=config.registration_fee,
                reward_per_score=config.reward_per_score,
            )
        )
        return tx_hash

    async def delegate_board(self, session_id: int) -> str:
        tx_hash = self._record("delegate_board", session_id)
        self.owners[self.board_address(session_id)] = DELEGATION_OWNER
        return tx_hash

    async def distribute_rewards(self, session_id: int, payees: Sequence[str]) -> str:
        tx_hash = self._record("distribute_rewards", session_id)
        if self.reward_errors:
            raise self.reward_errors.pop(0)
        self.payouts.append((session_id, tuple(payees)))
        return tx_hash

    async def aclose(self) -> None:
        return None


class FakeExecutionLayer(_CallLog, ExecutionLayerPort):
    """Execution layer mirroring the base ledger's boards.

    ``end_session`` commits back to the base ledger (board inactive, owner
    restored) unless ``commit_on_end`` is off.
    """

    def __init__(self, base: FakeBaseLedger, *, commit_on_end: bool = True) -> None:
        super().__init__()
        self._base = base
        self.commit_on_end = commit_on_end
        self.fetch_error: Exception | None = None
        self.end_errors: list[Exception] = []
        self.action_error: Exception | None = None

    async def fetch_board(self, session_id: int) -> BoardState:
        self.calls.append(("fetch_board", session_id))
        if self.fetch_error is not None:
            raise self.fetch_error
        board = self._base.boards.get(session_id)
        if board is None:
            raise AccountNotFoundError(f"board {session_id} not found on execution layer")
        return board

    async def _action(self, name: str, session_id: int) -> str:
        tx_hash = self._record(name, session_id)
        if self.action_error is not None:
            raise self.action_error
        return tx_hash

    async def request_king_move(self, session_id: int) -> str:
        return await self._action("request_king_move", session_id)

    async def request_powerup_spawn(self, session_id: int) -> str:
        return await self._action("request_powerup_spawn", session_id)

    async def request_bomb_drop(self, session_id: int) -> str:
        return await self._action("request_bomb_drop", session_id)

    async def accrue_scores(self, session_id: int) -> str:
        return await self._action("accrue_scores", session_id)

    async def end_session(self, session_id: int) -> str:
        tx_hash = self._record("end_session", session_id)
        if self.end_errors:
            raise self.end_errors.pop(0)
        if self.commit_on_end and session_id in self._base.boards:
            self._base.update_board(session_id, is_active=False)
            self._base.owners[self._base.board_address(session_id)] = PROGRAM_ID
        return tx_hash

    async def aclose(self) -> None:
        return None


def unreachable(name: str = "ledger") -> LedgerRpcError:
    return LedgerRpcError(f"{name} unreachable")
