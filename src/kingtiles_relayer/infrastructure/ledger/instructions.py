"""Instruction builders for every call the orchestrator makes into the game program."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from kingtiles_relayer.infrastructure.ledger import addresses, codec


@dataclass(frozen=True)
class GameProgram:
    """Binds the program id, custody signer and oracle queue used to build instructions."""

    program_id: Pubkey
    custody: Pubkey
    oracle_queue: Pubkey

    def board(self, session_id: int) -> Pubkey:
        return addresses.board_pda(self.custody, self.program_id, session_id)

    def _signer(self) -> AccountMeta:
        return AccountMeta(self.custody, is_signer=True, is_writable=True)

    def _board_meta(self, session_id: int) -> AccountMeta:
        return AccountMeta(self.board(session_id), is_signer=False, is_writable=True)

    def _system(self) -> AccountMeta:
        return AccountMeta(addresses.SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False)

    def start_game_session(
        self,
        session_id: int,
        *,
        board_side_len: int,
        max_players: int,
        registration_fee: int,
        reward_per_score: int,
    ) -> Instruction:
        data = codec.start_game_session_data(
            session_id, board_side_len, max_players, registration_fee, reward_per_score
        )
        return Instruction(
            self.program_id,
            data,
            [self._signer(), self._board_meta(session_id), self._system()],
        )

    def delegate_board(self, session_id: int) -> Instruction:
        board = self.board(session_id)
        accounts = [
            self._signer(),
            self._board_meta(session_id),
            self._system(),
            AccountMeta(board, is_signer=False, is_writable=True),
            AccountMeta(addresses.delegation_buffer_pda(board, self.program_id), is_signer=False, is_writable=True),
            AccountMeta(addresses.delegation_record_pda(board), is_signer=False, is_writable=True),
            AccountMeta(addresses.delegation_metadata_pda(board), is_signer=False, is_writable=True),
            AccountMeta(self.program_id, is_signer=False, is_writable=False),
            AccountMeta(addresses.DELEGATION_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        return Instruction(self.program_id, codec.game_id_data("delegate_board", session_id), accounts)

    def end_game_session(self, session_id: int) -> Instruction:
        accounts = [
            self._signer(),
            self._board_meta(session_id),
            self._system(),
            AccountMeta(addresses.MAGIC_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(addresses.MAGIC_CONTEXT_ID, is_signer=False, is_writable=True),
        ]
        return Instruction(self.program_id, codec.game_id_data("end_game_session", session_id), accounts)

    def distribute_rewards(self, session_id: int, payees: Sequence[str]) -> Instruction:
        accounts = [self._signer(), self._board_meta(session_id), self._system()]
        accounts.extend(
            AccountMeta(Pubkey.from_string(wallet), is_signer=False, is_writable=True) for wallet in payees
        )
        return Instruction(self.program_id, codec.game_id_data("distribute_rewards", session_id), accounts)

    def update_player_score(self, session_id: int) -> Instruction:
        return Instruction(
            self.program_id,
            codec.game_id_data("update_player_score", session_id),
            [self._signer(), self._board_meta(session_id)],
        )

    def request_randomness(self, instruction: str, session_id: int, client_seed: int) -> Instruction:
        accounts = [
            self._signer(),
            self._board_meta(session_id),
            AccountMeta(self.oracle_queue, is_signer=False, is_writable=True),
            AccountMeta(addresses.program_identity_pda(self.program_id), is_signer=False, is_writable=False),
            AccountMeta(addresses.VRF_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(addresses.SLOT_HASHES_SYSVAR_ID, is_signer=False, is_writable=False),
        ]
        data = codec.randomness_request_data(instruction, client_seed, session_id)
        return Instruction(self.program_id, data, accounts)


KING_MOVE = "request_randomness_for_king_move"
POWERUP_MOVE = "request_randomness_for_powerup_move"
BOMB_DROP = "request_randomness_for_bomb_drop"

__all__ = ["BOMB_DROP", "GameProgram", "KING_MOVE", "POWERUP_MOVE"]
