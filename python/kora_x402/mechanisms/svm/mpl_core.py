"""Metaplex Core instruction builders used by the agent registry.

Only the two instructions the registry needs are encoded here:
``CreateV1`` (discriminator 0) and ``UpdateV1`` (discriminator 15).
Arguments are Borsh encoded. Optional accounts that are not supplied are
filled with the program id, as the generated Metaplex clients do.
"""

import struct

from solders.instruction import AccountMeta, Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore

from .constants import MPL_CORE_PROGRAM_ID, SYSTEM_PROGRAM_ID

CREATE_V1_DISCRIMINATOR = 0
UPDATE_V1_DISCRIMINATOR = 15

# DataState::AccountState
DATA_STATE_ACCOUNT = 0


def _borsh_string(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return struct.pack("<I", len(encoded)) + encoded


def _borsh_option_string(value: str | None) -> bytes:
    if value is None:
        return b"\x00"
    return b"\x01" + _borsh_string(value)


def _optional(pubkey: Pubkey | None, is_signer: bool = False, is_writable: bool = False) -> AccountMeta:
    if pubkey is None:
        return AccountMeta(MPL_CORE_PROGRAM_ID, is_signer=False, is_writable=False)
    return AccountMeta(pubkey, is_signer=is_signer, is_writable=is_writable)


def create_v1(
    asset: Pubkey,
    payer: Pubkey,
    name: str,
    uri: str,
    owner: Pubkey | None = None,
) -> Instruction:
    """Build a CreateV1 instruction for a new Core asset.

    ``asset`` must sign the transaction. Owner and update authority
    default to the payer on chain when omitted.
    """
    data = (
        bytes([CREATE_V1_DISCRIMINATOR, DATA_STATE_ACCOUNT])
        + _borsh_string(name)
        + _borsh_string(uri)
        + b"\x00"  # plugins: None
    )
    accounts = [
        AccountMeta(asset, is_signer=True, is_writable=True),
        _optional(None),  # collection
        _optional(None),  # authority
        AccountMeta(payer, is_signer=True, is_writable=True),
        _optional(owner),
        _optional(None),  # update authority
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        _optional(None),  # log wrapper
    ]
    return Instruction(MPL_CORE_PROGRAM_ID, data, accounts)


def update_v1(
    asset: Pubkey,
    payer: Pubkey,
    new_uri: str | None = None,
    new_name: str | None = None,
) -> Instruction:
    """Build an UpdateV1 instruction changing an asset's name and/or URI."""
    data = (
        bytes([UPDATE_V1_DISCRIMINATOR])
        + _borsh_option_string(new_name)
        + _borsh_option_string(new_uri)
        + b"\x00"  # new update authority: None
    )
    accounts = [
        AccountMeta(asset, is_signer=False, is_writable=True),
        _optional(None),  # collection
        AccountMeta(payer, is_signer=True, is_writable=True),
        _optional(None),  # authority
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        _optional(None),  # log wrapper
    ]
    return Instruction(MPL_CORE_PROGRAM_ID, data, accounts)
