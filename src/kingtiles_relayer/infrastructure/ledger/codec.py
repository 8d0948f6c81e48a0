"""Anchor wire formats for the King Tiles program: accounts, instructions and events."""

from __future__ import annotations

import base64
import hashlib
import struct

import base58

from kingtiles_relayer.application.ports.events import GameStartedEvent
from kingtiles_relayer.domain.board import BoardState, PlayerState

BOARD_CELLS = 144
PLAYER_RECORD = struct.Struct("<32sQhBQ")
_GAME_ID = struct.Struct("<Q")
_VEC_LEN = struct.Struct("<I")
_BOARD_FOOTER = struct.Struct("<BBQQBBqqBB")

PROGRAM_DATA_PREFIX = "Program data: "


class BoardDecodeError(ValueError):
    """Raised when account data is not a well-formed board."""


def _discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    return _discriminator("global", name)


BOARD_DISCRIMINATOR = _discriminator("account", "Board")
GAME_STARTED_DISCRIMINATOR = _discriminator("event", "GameStartedEvent")


def decode_board(data: bytes) -> BoardState:
    if len(data) < 8 or data[:8] != BOARD_DISCRIMINATOR:
        raise BoardDecodeError("account data is not a board")
    try:
        offset = 8
        (game_id,) = _GAME_ID.unpack_from(data, offset)
        offset += _GAME_ID.size
        (player_count,) = _VEC_LEN.unpack_from(data, offset)
        offset += _VEC_LEN.size
        players = []
        for _ in range(player_count):
            wallet, score, position, player_id, powerup_score = PLAYER_RECORD.unpack_from(data, offset)
            offset += PLAYER_RECORD.size
            players.append(
                PlayerState(
                    wallet=base58.b58encode(wallet).decode("ascii"),
                    score=score,
                    position=position,
                    player_id=player_id,
                    powerup_score=powerup_score,
                )
            )
        is_active = data[offset] != 0
        offset += 1
        cells = bytes(data[offset : offset + BOARD_CELLS])
        if len(cells) != BOARD_CELLS:
            raise BoardDecodeError("board cells truncated")
        offset += BOARD_CELLS
        (
            side,
            max_players,
            registration_fee,
            reward_per_score,
            players_count,
            king_position,
            last_move_timestamp,
            game_end_timestamp,
            powerup_position,
            bomb_position,
        ) = _BOARD_FOOTER.unpack_from(data, offset)
    except (struct.error, IndexError) as exc:
        raise BoardDecodeError(f"board account truncated: {exc}") from exc

    return BoardState(
        session_id=game_id,
        players=tuple(players),
        is_active=is_active,
        cells=cells,
        board_side_len=side,
        max_players=max_players,
        registration_fee=registration_fee,
        reward_per_score=reward_per_score,
        players_count=players_count,
        king_position=king_position,
        last_move_timestamp=last_move_timestamp,
        game_end_timestamp=game_end_timestamp,
        powerup_position=powerup_position,
        bomb_position=bomb_position,
    )


def encode_board(board: BoardState) -> bytes:
    """Serialize ``board`` the way the program lays it out (used for fixtures and fakes)."""
    parts = [BOARD_DISCRIMINATOR, _GAME_ID.pack(board.session_id), _VEC_LEN.pack(len(board.players))]
    for player in board.players:
        parts.append(
            PLAYER_RECORD.pack(
                base58.b58decode(player.wallet),
                player.score,
                player.position,
                player.player_id,
                player.powerup_score,
            )
        )
    parts.append(b"\x01" if board.is_active else b"\x00")
    parts.append(board.cells.ljust(BOARD_CELLS, b"\x00")[:BOARD_CELLS])
    parts.append(
        _BOARD_FOOTER.pack(
            board.board_side_len,
            board.max_players,
            board.registration_fee,
            board.reward_per_score,
            board.players_count,
            board.king_position,
            board.last_move_timestamp,
            board.game_end_timestamp,
            board.powerup_position,
            board.bomb_position,
        )
    )
    return b"".join(parts)


def start_game_session_data(
    session_id: int,
    board_side_len: int,
    max_players: int,
    registration_fee: int,
    reward_per_score: int,
) -> bytes:
    return instruction_discriminator("start_game_session") + struct.pack(
        "<QBBQQ", session_id, board_side_len, max_players, registration_fee, reward_per_score
    )


def game_id_data(instruction: str, session_id: int) -> bytes:
    return instruction_discriminator(instruction) + _GAME_ID.pack(session_id)


def randomness_request_data(instruction: str, client_seed: int, session_id: int) -> bytes:
    return instruction_discriminator(instruction) + struct.pack("<BQ", client_seed & 0xFF, session_id)


def decode_game_started(logs: list[str], *, signature: str | None = None) -> list[GameStartedEvent]:
    """Extract every ``GameStartedEvent`` emitted in a transaction's program logs."""
    events: list[GameStartedEvent] = []
    for line in logs:
        if not line.startswith(PROGRAM_DATA_PREFIX):
            continue
        try:
            payload = base64.b64decode(line[len(PROGRAM_DATA_PREFIX) :].strip(), validate=True)
        except ValueError:
            continue
        if len(payload) < 16 or payload[:8] != GAME_STARTED_DISCRIMINATOR:
            continue
        (session_id,) = _GAME_ID.unpack_from(payload, 8)
        events.append(GameStartedEvent(session_id=session_id, signature=signature))
    return events


def encode_game_started(session_id: int) -> str:
    payload = GAME_STARTED_DISCRIMINATOR + _GAME_ID.pack(session_id)
    return PROGRAM_DATA_PREFIX + base64.b64encode(payload).decode("ascii")


__all__ = [
    "BOARD_CELLS",
    "BOARD_DISCRIMINATOR",
    "BoardDecodeError",
    "GAME_STARTED_DISCRIMINATOR",
    "decode_board",
    "decode_game_started",
    "encode_board",
    "encode_game_started",
    "game_id_data",
    "instruction_discriminator",
    "randomness_request_data",
    "start_game_session_data",
]
