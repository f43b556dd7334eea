"""
Solana Wormhole instruction layouts and account parsing
"""
import struct

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from core.services.bridge import solana_instructions as ix
from core.services.bridge.vaa import parse_vaa
from tests.test_vaa import build_vaa, transfer_payload

CORE_BRIDGE = Pubkey.from_string("3u8hJUVTA4jH1wYAyUur7FFZVQ8H635K3tSHHF4ssjQ5")
TOKEN_BRIDGE = Pubkey.from_string("DZnkkTmCiFWfYTfT41X3Rd1kDgozqzxWaHqsw6W4x2oe")


@pytest.fixture
def payer():
    return Keypair().pubkey()


@pytest.fixture
def vaa():
    return parse_vaa(build_vaa(transfer_payload()))


def test_pdas_are_deterministic():
    token_address = bytes(12) + bytes.fromhex("b4fbf271143f4fbf7b91a5ded31805e42b2208d6")
    first = ix.wrapped_mint_address(TOKEN_BRIDGE, 2, token_address)
    assert first == ix.wrapped_mint_address(TOKEN_BRIDGE, 2, token_address)
    assert first != ix.wrapped_mint_address(TOKEN_BRIDGE, 1, token_address)
    assert ix.guardian_set_address(CORE_BRIDGE, 0) != ix.guardian_set_address(CORE_BRIDGE, 1)


def test_transfer_wrapped_layout(payer):
    mint = Keypair().pubkey()
    message = Keypair().pubkey()
    target = b"\x07" * 32

    instruction = ix.transfer_wrapped(
        TOKEN_BRIDGE, CORE_BRIDGE, payer, payer, payer, mint, message,
        nonce=9, amount=12_345, fee=0, target_address=target, target_chain=2,
    )

    data = bytes(instruction.data)
    assert data[0] == ix.TRANSFER_WRAPPED
    assert struct.unpack_from("<IQQ", data, 1) == (9, 12_345, 0)
    assert data[21:53] == target
    assert struct.unpack_from("<H", data, 53) == (2,)
    assert instruction.program_id == TOKEN_BRIDGE
    assert len(instruction.accounts) == 17
    assert instruction.accounts[8].pubkey == message
    assert instruction.accounts[8].is_signer


def test_transfer_wrapped_rejects_short_recipient(payer):
    with pytest.raises(ValueError):
        ix.transfer_wrapped(
            TOKEN_BRIDGE, CORE_BRIDGE, payer, payer, payer, payer, payer,
            nonce=0, amount=1, fee=0, target_address=b"\x01" * 20, target_chain=2,
        )


def test_secp256k1_offsets():
    addresses = [b"\xaa" * 20, b"\xbb" * 20]
    signatures = [b"\x01" * 65, b"\x02" * 65]
    message = b"\x33" * 32

    data = bytes(ix.secp256k1_verify(addresses, signatures, message).data)

    assert data[0] == 2
    addresses_start = 1 + 2 * ix.SECP_OFFSETS_SIZE
    signatures_start = addresses_start + 40
    message_start = signatures_start + 130
    first = struct.unpack_from("<HBHBHHB", data, 1)
    second = struct.unpack_from("<HBHBHHB", data, 1 + ix.SECP_OFFSETS_SIZE)
    assert first == (signatures_start, 0, addresses_start, 0, message_start, 32, 0)
    assert second == (signatures_start + 65, 0, addresses_start + 20, 0, message_start, 32, 0)
    assert data[addresses_start:addresses_start + 20] == b"\xaa" * 20
    assert data[message_start:] == message


def test_secp256k1_needs_matching_lengths():
    with pytest.raises(ValueError):
        ix.secp256k1_verify([b"\xaa" * 20], [], b"m")


def test_verify_signatures_signer_map(payer):
    signature_set = Keypair().pubkey()
    instruction = ix.verify_signatures(CORE_BRIDGE, payer, 0, signature_set, [0, 3, 5])

    data = bytes(instruction.data)
    assert data[0] == ix.VERIFY_SIGNATURES
    signers = struct.unpack_from(f"<{ix.MAX_GUARDIANS}b", data, 1)
    assert signers[0] == 0
    assert signers[3] == 1
    assert signers[5] == 2
    assert signers.count(-1) == ix.MAX_GUARDIANS - 3


def test_verify_batch_pairs_instructions(payer, vaa):
    keys = [bytes([i]) * 20 for i in range(4)]
    instructions = ix.verify_signatures_batch(CORE_BRIDGE, payer, vaa, keys, Keypair().pubkey(), vaa.signatures)

    assert [i.program_id for i in instructions] == [ix.SECP256K1_PROGRAM_ID, CORE_BRIDGE]
    secp_data = bytes(instructions[0].data)
    assert secp_data.endswith(vaa.hash)


def test_verify_batch_rejects_unknown_guardian(payer, vaa):
    with pytest.raises(ValueError):
        ix.verify_signatures_batch(CORE_BRIDGE, payer, vaa, [b"\x00" * 20], Keypair().pubkey(), vaa.signatures)


def test_post_vaa_carries_body(payer, vaa):
    data = bytes(ix.post_vaa(CORE_BRIDGE, payer, Keypair().pubkey(), vaa).data)

    assert data[0] == ix.POST_VAA
    assert data.endswith(vaa.payload)
    assert struct.unpack_from("<BIIIH", data, 1) == (1, 3, 1_700_000_000, 42, 2)


def test_parse_bridge_fee():
    data = struct.pack("<IQIQ", 0, 0, 86400, 100)
    assert ix.parse_bridge_fee(data) == 100
    with pytest.raises(ValueError):
        ix.parse_bridge_fee(b"\x00" * 10)


def test_parse_guardian_keys():
    keys = [b"\x11" * 20, b"\x22" * 20]
    data = struct.pack("<II", 0, 2) + b"".join(keys) + struct.pack("<II", 0, 0)
    assert ix.parse_guardian_keys(data) == keys
    with pytest.raises(ValueError):
        ix.parse_guardian_keys(struct.pack("<II", 0, 3) + keys[0])
