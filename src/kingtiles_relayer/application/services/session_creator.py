"""Create new sessions on the base ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kingtiles_relayer.application.ports.ledger import BaseLedgerPort
from kingtiles_relayer.application.ports.state import SessionRegistryPort, StatusCachePort
from kingtiles_relayer.domain.exceptions import (
    CustodyMismatchError,
    DuplicateSessionError,
    InvalidModeError,
    InvalidSessionConfigError,
)
from kingtiles_relayer.domain.modes import describe_modes, is_supported_mode
from kingtiles_relayer.domain.session import Session, SessionConfig, TransactionTrace

logger = logging.getLogger("kingtiles_relayer.sessions")


@dataclass(frozen=True, slots=True)
class CreateSessionRequest:
    session_id: int
    board_side_len: int
    max_players: int
    registration_fee: int
    reward_per_score: int


class SessionCreator:
    """Validates a create request, submits the start transaction and registers the session."""

    def __init__(
        self,
        *,
        base_ledger: BaseLedgerPort,
        registry: SessionRegistryPort,
        status_cache: StatusCachePort,
        expected_custody: str,
    ) -> None:
        self._base = base_ledger
        self._registry = registry
        self._cache = status_cache
        self._expected_custody = expected_custody

    async def create(self, request: CreateSessionRequest) -> Session:
        if not is_supported_mode(request.board_side_len, request.max_players):
            raise InvalidModeError(f"invalid mode; supported combinations are: {describe_modes()}")
        if request.registration_fee <= 0 or request.reward_per_score <= 0:
            raise InvalidSessionConfigError("registration_fee and reward_per_score must be positive")
        custody = self._base.custody_address
        if custody != self._expected_custody:
            raise CustodyMismatchError(
                f"custody key mismatch: signer is {custody} but the program expects {self._expected_custody}"
            )

        session_id = request.session_id
        address = self._base.board_address(session_id)
        if self._registry.get(session_id) is not None or await self._base.get_account_owner(address) is not None:
            raise DuplicateSessionError(f"board for session {session_id} already exists")

        config = SessionConfig(
            board_side_len=request.board_side_len,
            max_players=request.max_players,
            registration_fee=request.registration_fee,
            reward_per_score=request.reward_per_score,
        )
        tx_hash = await self._base.start_session(session_id, config)
        session = Session(
            session_id=session_id,
            board_address=address,
            config=config,
            trace=TransactionTrace().with_start(tx_hash),
        )
        self._registry.put(session)
        self._cache.invalidate(session_id)
        logger.info(
            "session created",
            extra={
                "data": {
                    "session_id": session_id,
                    "board_address": address,
                    "mode": config.mode.key,
                    "tx_hash": tx_hash,
                }
            },
        )
        return session


__all__ = ["CreateSessionRequest", "SessionCreator"]
