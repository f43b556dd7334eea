"""
Solana Wormhole Instructions
Account derivations and instruction builders for the core bridge and token bridge programs
"""
import struct
from typing import List, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import TOKEN_PROGRAM_ID

from .vaa import GuardianSignature, ParsedVaa

CLOCK_SYSVAR = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
RENT_SYSVAR = Pubkey.from_string("SysvarRent111111111111111111111111111111111")
INSTRUCTIONS_SYSVAR = Pubkey.from_string("Sysvar1nstructions1111111111111111111111111")
SECP256K1_PROGRAM_ID = Pubkey.from_string("KeccakSecp256k11111111111111111111111111111")

# Core bridge instruction indices
POST_VAA = 2
VERIFY_SIGNATURES = 7

# Token bridge instruction indices
COMPLETE_WRAPPED = 3
TRANSFER_WRAPPED = 4

MAX_GUARDIANS = 19
SECP_OFFSETS_SIZE = 11

BRIDGE_FEE_OFFSET = 16  # guardian_set_index u32, last_lamports u64, expiration u32, fee u64


def _pda(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address(list(seeds), program_id)
    return address


# Core bridge accounts

def bridge_config_address(core_bridge: Pubkey) -> Pubkey:
    return _pda([b"Bridge"], core_bridge)


def fee_collector_address(core_bridge: Pubkey) -> Pubkey:
    return _pda([b"fee_collector"], core_bridge)


def guardian_set_address(core_bridge: Pubkey, index: int) -> Pubkey:
    return _pda([b"GuardianSet", index.to_bytes(4, 'big')], core_bridge)


def posted_vaa_address(core_bridge: Pubkey, body_hash: bytes) -> Pubkey:
    return _pda([b"PostedVAA", body_hash], core_bridge)


def sequence_address(core_bridge: Pubkey, emitter: Pubkey) -> Pubkey:
    return _pda([b"Sequence", bytes(emitter)], core_bridge)


# Token bridge accounts

def token_bridge_config_address(token_bridge: Pubkey) -> Pubkey:
    return _pda([b"config"], token_bridge)


def emitter_address(token_bridge: Pubkey) -> Pubkey:
    return _pda([b"emitter"], token_bridge)


def authority_signer_address(token_bridge: Pubkey) -> Pubkey:
    return _pda([b"authority_signer"], token_bridge)


def mint_signer_address(token_bridge: Pubkey) -> Pubkey:
    return _pda([b"mint_signer"], token_bridge)


def wrapped_mint_address(token_bridge: Pubkey, token_chain: int, token_address: bytes) -> Pubkey:
    return _pda([b"wrapped", token_chain.to_bytes(2, 'big'), token_address], token_bridge)


def wrapped_meta_address(token_bridge: Pubkey, mint: Pubkey) -> Pubkey:
    return _pda([b"meta", bytes(mint)], token_bridge)


def endpoint_address(token_bridge: Pubkey, emitter_chain: int, emitter: bytes) -> Pubkey:
    return _pda([emitter_chain.to_bytes(2, 'big'), emitter], token_bridge)


def claim_address(token_bridge: Pubkey, emitter: bytes, emitter_chain: int, sequence: int) -> Pubkey:
    return _pda([emitter, emitter_chain.to_bytes(2, 'big'), sequence.to_bytes(8, 'big')], token_bridge)


# Account data

def parse_bridge_fee(data: bytes) -> int:
    """Message fee in lamports from the core bridge config account"""
    if len(data) < BRIDGE_FEE_OFFSET + 8:
        raise ValueError("Bridge config account too short")
    return struct.unpack_from("<Q", data, BRIDGE_FEE_OFFSET)[0]


def parse_guardian_keys(data: bytes) -> List[bytes]:
    """Guardian eth addresses from a guardian set account"""
    if len(data) < 8:
        raise ValueError("Guardian set account too short")
    count = struct.unpack_from("<I", data, 4)[0]
    keys = []
    for i in range(count):
        start = 8 + 20 * i
        key = bytes(data[start:start + 20])
        if len(key) != 20:
            raise ValueError("Guardian set account truncated")
        keys.append(key)
    return keys


# Instructions

def transfer_wrapped(
    token_bridge: Pubkey,
    core_bridge: Pubkey,
    payer: Pubkey,
    from_account: Pubkey,
    from_owner: Pubkey,
    wrapped_mint: Pubkey,
    message: Pubkey,
    nonce: int,
    amount: int,
    fee: int,
    target_address: bytes,
    target_chain: int,
) -> Instruction:
    """Burn wrapped tokens and publish a transfer message"""
    if len(target_address) != 32:
        raise ValueError("target_address must be 32 bytes")

    data = (
        bytes([TRANSFER_WRAPPED])
        + struct.pack("<IQQ", nonce, amount, fee)
        + target_address
        + struct.pack("<H", target_chain)
    )
    emitter = emitter_address(token_bridge)
    accounts = [
        AccountMeta(payer, True, True),
        AccountMeta(token_bridge_config_address(token_bridge), False, False),
        AccountMeta(from_account, False, True),
        AccountMeta(from_owner, True, False),
        AccountMeta(wrapped_mint, False, True),
        AccountMeta(wrapped_meta_address(token_bridge, wrapped_mint), False, False),
        AccountMeta(authority_signer_address(token_bridge), False, False),
        AccountMeta(bridge_config_address(core_bridge), False, True),
        AccountMeta(message, True, True),
        AccountMeta(emitter, False, False),
        AccountMeta(sequence_address(core_bridge, emitter), False, True),
        AccountMeta(fee_collector_address(core_bridge), False, True),
        AccountMeta(CLOCK_SYSVAR, False, False),
        AccountMeta(RENT_SYSVAR, False, False),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
        AccountMeta(core_bridge, False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
    ]
    return Instruction(token_bridge, data, accounts)


def complete_wrapped(
    token_bridge: Pubkey,
    core_bridge: Pubkey,
    payer: Pubkey,
    vaa: ParsedVaa,
    to_account: Pubkey,
    wrapped_mint: Pubkey,
) -> Instruction:
    """Mint wrapped tokens for a posted transfer VAA"""
    accounts = [
        AccountMeta(payer, True, True),
        AccountMeta(token_bridge_config_address(token_bridge), False, False),
        AccountMeta(posted_vaa_address(core_bridge, vaa.hash), False, False),
        AccountMeta(claim_address(token_bridge, vaa.emitter_address, vaa.emitter_chain, vaa.sequence), False, True),
        AccountMeta(endpoint_address(token_bridge, vaa.emitter_chain, vaa.emitter_address), False, False),
        AccountMeta(to_account, False, True),
        AccountMeta(to_account, False, True),  # fee recipient
        AccountMeta(wrapped_mint, False, True),
        AccountMeta(wrapped_meta_address(token_bridge, wrapped_mint), False, False),
        AccountMeta(mint_signer_address(token_bridge), False, False),
        AccountMeta(RENT_SYSVAR, False, False),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
        AccountMeta(core_bridge, False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
    ]
    return Instruction(token_bridge, bytes([COMPLETE_WRAPPED]), accounts)


def secp256k1_verify(
    eth_addresses: Sequence[bytes],
    signatures: Sequence[bytes],
    message: bytes,
    instruction_index: int = 0,
) -> Instruction:
    """
    Native secp256k1 program instruction checking each signature against its
    guardian address over `message`

    All offsets point into this instruction's own data, which must sit at
    `instruction_index` in the transaction
    """
    count = len(signatures)
    if count != len(eth_addresses):
        raise ValueError("Need one eth address per signature")

    addresses_start = 1 + count * SECP_OFFSETS_SIZE
    signatures_start = addresses_start + 20 * count
    message_start = signatures_start + 65 * count

    offsets = b"".join(
        struct.pack(
            "<HBHBHHB",
            signatures_start + 65 * i,
            instruction_index,
            addresses_start + 20 * i,
            instruction_index,
            message_start,
            len(message),
            instruction_index,
        )
        for i in range(count)
    )
    data = bytes([count]) + offsets + b"".join(eth_addresses) + b"".join(signatures) + message
    return Instruction(SECP256K1_PROGRAM_ID, data, [])


def verify_signatures(
    core_bridge: Pubkey,
    payer: Pubkey,
    guardian_set_index: int,
    signature_set: Pubkey,
    guardian_indices: Sequence[int],
) -> Instruction:
    """Record the signatures checked by the preceding secp256k1 instruction"""
    signers = [-1] * MAX_GUARDIANS
    for position, guardian_index in enumerate(guardian_indices):
        signers[guardian_index] = position

    data = bytes([VERIFY_SIGNATURES]) + struct.pack(f"<{MAX_GUARDIANS}b", *signers)
    accounts = [
        AccountMeta(payer, True, True),
        AccountMeta(guardian_set_address(core_bridge, guardian_set_index), False, False),
        AccountMeta(signature_set, True, True),
        AccountMeta(INSTRUCTIONS_SYSVAR, False, False),
        AccountMeta(RENT_SYSVAR, False, False),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
    ]
    return Instruction(core_bridge, data, accounts)


def verify_signatures_batch(
    core_bridge: Pubkey,
    payer: Pubkey,
    vaa: ParsedVaa,
    guardian_keys: Sequence[bytes],
    signature_set: Pubkey,
    batch: Sequence[GuardianSignature],
) -> List[Instruction]:
    """secp256k1 + VerifySignatures pair for one batch of guardian signatures"""
    for sig in batch:
        if sig.index >= len(guardian_keys):
            raise ValueError(f"Guardian index {sig.index} outside guardian set of {len(guardian_keys)}")

    return [
        secp256k1_verify(
            [guardian_keys[sig.index] for sig in batch],
            [sig.signature for sig in batch],
            vaa.hash,
        ),
        verify_signatures(
            core_bridge,
            payer,
            vaa.guardian_set_index,
            signature_set,
            [sig.index for sig in batch],
        ),
    ]


def post_vaa(core_bridge: Pubkey, payer: Pubkey, signature_set: Pubkey, vaa: ParsedVaa) -> Instruction:
    """Post a verified VAA so the token bridge can consume it"""
    data = (
        bytes([POST_VAA])
        + struct.pack(
            "<BIIIH",
            vaa.version,
            vaa.guardian_set_index,
            vaa.timestamp,
            vaa.nonce,
            vaa.emitter_chain,
        )
        + vaa.emitter_address
        + struct.pack("<QB", vaa.sequence, vaa.consistency_level)
        + struct.pack("<I", len(vaa.payload))
        + vaa.payload
    )
    accounts = [
        AccountMeta(guardian_set_address(core_bridge, vaa.guardian_set_index), False, False),
        AccountMeta(bridge_config_address(core_bridge), False, False),
        AccountMeta(signature_set, False, False),
        AccountMeta(posted_vaa_address(core_bridge, vaa.hash), False, True),
        AccountMeta(payer, True, True),
        AccountMeta(CLOCK_SYSVAR, False, False),
        AccountMeta(RENT_SYSVAR, False, False),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
    ]
    return Instruction(core_bridge, data, accounts)
