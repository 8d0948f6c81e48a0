"""Ledger port implementations backed by Solana JSON-RPC and locally signed transactions."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from kingtiles_relayer.application.ports.ledger import BaseLedgerPort, BoardAccount, ExecutionLayerPort
from kingtiles_relayer.domain.board import BoardState
from kingtiles_relayer.domain.exceptions import AccountNotFoundError, LedgerRpcError
from kingtiles_relayer.domain.session import SessionConfig
from kingtiles_relayer.infrastructure.ledger import addresses, codec
from kingtiles_relayer.infrastructure.ledger.instructions import (
    BOMB_DROP,
    KING_MOVE,
    POWERUP_MOVE,
    GameProgram,
)
from kingtiles_relayer.infrastructure.ledger.rpc import SolanaRpcClient

logger = logging.getLogger("kingtiles_relayer.ledger")


class _SignedLedger:
    """Shared signing, submission and board reads for one RPC endpoint."""

    def __init__(self, *, rpc: SolanaRpcClient, program: GameProgram, signer: Keypair) -> None:
        self._rpc = rpc
        self._program = program
        self._signer = signer

    async def _submit(self, instruction: Instruction, *, label: str) -> str:
        blockhash = Hash.from_string(await self._rpc.get_latest_blockhash())
        message = Message.new_with_blockhash([instruction], self._signer.pubkey(), blockhash)
        transaction = Transaction([self._signer], message, blockhash)
        signature = await self._rpc.send_transaction(bytes(transaction))
        await self._rpc.confirm_transaction(signature)
        logger.debug(
            "transaction confirmed",
            extra={"data": {"ledger": self._rpc.name, "instruction": label, "signature": signature}},
        )
        return signature

    async def fetch_board(self, session_id: int) -> BoardState:
        address = str(self._program.board(session_id))
        info = await self._rpc.get_account_info(address)
        if info is None:
            raise AccountNotFoundError(f"board {address} for session {session_id} not found on {self._rpc.name}")
        try:
            return codec.decode_board(info.data)
        except codec.BoardDecodeError as exc:
            raise LedgerRpcError(f"board {address} on {self._rpc.name} could not be decoded: {exc}") from exc

    async def aclose(self) -> None:
        await self._rpc.aclose()


class SolanaBaseLedger(_SignedLedger, BaseLedgerPort):
    """Base-ledger client: registration, delegation, settlement and the ledger clock."""

    @property
    def program_id(self) -> str:
        return str(self._program.program_id)

    @property
    def custody_address(self) -> str:
        return str(self._signer.pubkey())

    def board_address(self, session_id: int) -> str:
        return str(self._program.board(session_id))

    async def get_account_owner(self, address: str) -> str | None:
        info = await self._rpc.get_account_info(address)
        return info.owner if info is not None else None

    async def list_boards(self) -> list[BoardAccount]:
        # delegated boards are owned by the delegation program, so scan both owners
        owners = (self.program_id, str(addresses.DELEGATION_PROGRAM_ID))
        boards: dict[str, BoardAccount] = {}
        for owner in owners:
            for entry in await self._rpc.get_program_accounts(owner, discriminator=codec.BOARD_DISCRIMINATOR):
                try:
                    board = codec.decode_board(entry.account.data)
                except codec.BoardDecodeError as exc:
                    logger.warning(
                        "skipping undecodable board account",
                        extra={"data": {"address": entry.address, "owner": owner, "error": str(exc)}},
                    )
                    continue
                if entry.address != self.board_address(board.session_id):
                    continue
                boards[entry.address] = BoardAccount(address=entry.address, board=board)
        return list(boards.values())

    async def now(self) -> int:
        slot = await self._rpc.get_slot()
        block_time = await self._rpc.get_block_time(slot)
        if block_time is None:
            raise LedgerRpcError(f"{self._rpc.name} has no block time for slot {slot}")
        return block_time

    async def start_session(self, session_id: int, config: SessionConfig) -> str:
        instruction = self._program.start_game_session(
            session_id,
            board_side_len=config.board_side_len,
            max_players=config.max_players,
            registration_fee=config.registration_fee,
            reward_per_score=config.reward_per_score,
        )
        return await self._submit(instruction, label="start_game_session")

    async def delegate_board(self, session_id: int) -> str:
        return await self._submit(self._program.delegate_board(session_id), label="delegate_board")

    async def distribute_rewards(self, session_id: int, payees: Sequence[str]) -> str:
        return await self._submit(
            self._program.distribute_rewards(session_id, payees),
            label="distribute_rewards",
        )


class SolanaExecutionLayer(_SignedLedger, ExecutionLayerPort):
    """Execution-layer client: randomness requests, score ticks and session end."""

    async def _request_randomness(self, instruction: str, session_id: int) -> str:
        client_seed = random.randrange(256)  # noqa: S311 - oracle seed, not a secret
        return await self._submit(
            self._program.request_randomness(instruction, session_id, client_seed),
            label=instruction,
        )

    async def request_king_move(self, session_id: int) -> str:
        return await self._request_randomness(KING_MOVE, session_id)

    async def request_powerup_spawn(self, session_id: int) -> str:
        return await self._request_randomness(POWERUP_MOVE, session_id)

    async def request_bomb_drop(self, session_id: int) -> str:
        return await self._request_randomness(BOMB_DROP, session_id)

    async def accrue_scores(self, session_id: int) -> str:
        return await self._submit(self._program.update_player_score(session_id), label="update_player_score")

    async def end_session(self, session_id: int) -> str:
        return await self._submit(self._program.end_game_session(session_id), label="end_game_session")


__all__ = ["SolanaBaseLedger", "SolanaExecutionLayer"]
