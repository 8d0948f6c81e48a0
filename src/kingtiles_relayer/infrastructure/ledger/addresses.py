"""Well-known program addresses and PDA derivation."""

from __future__ import annotations

from solders.pubkey import Pubkey

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
DELEGATION_PROGRAM_ID = Pubkey.from_string("DELeGGvXpWV2fqJUhqcF5ZSYMS4JTLjteaAMARRSaeSh")
MAGIC_PROGRAM_ID = Pubkey.from_string("Magic11111111111111111111111111111111111111")
MAGIC_CONTEXT_ID = Pubkey.from_string("MagicContext1111111111111111111111111111111")
VRF_PROGRAM_ID = Pubkey.from_string("Vrf1RNUjXmQGjmQrQLvJHs9SNkvDJEsRVFPkfSQUwGz")
SLOT_HASHES_SYSVAR_ID = Pubkey.from_string("SysvarS1otHashes111111111111111111111111111")


def board_pda(custody: Pubkey, program_id: Pubkey, session_id: int) -> Pubkey:
    address, _bump = Pubkey.find_program_address(
        [b"board", bytes(custody), session_id.to_bytes(8, "little")],
        program_id,
    )
    return address


def program_identity_pda(program_id: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([b"identity"], program_id)
    return address


def delegation_buffer_pda(account: Pubkey, owner_program: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([b"buffer", bytes(account)], owner_program)
    return address


def delegation_record_pda(account: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([b"delegation", bytes(account)], DELEGATION_PROGRAM_ID)
    return address


def delegation_metadata_pda(account: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address([b"delegation-metadata", bytes(account)], DELEGATION_PROGRAM_ID)
    return address


__all__ = [
    "DELEGATION_PROGRAM_ID",
    "MAGIC_CONTEXT_ID",
    "MAGIC_PROGRAM_ID",
    "SLOT_HASHES_SYSVAR_ID",
    "SYSTEM_PROGRAM_ID",
    "VRF_PROGRAM_ID",
    "board_pda",
    "delegation_buffer_pda",
    "delegation_metadata_pda",
    "delegation_record_pda",
    "program_identity_pda",
]
