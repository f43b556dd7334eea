"""
VAA and transfer payload decoding
"""
import struct

import pytest
from web3 import Web3

from core.services.bridge.vaa import (
    VaaParseError,
    parse_transfer_payload,
    parse_vaa,
)

EMITTER = bytes.fromhex("00" * 12 + "a6cdadda6e4b6704705b065e01e52e2486c0fbf6")


def transfer_payload(amount=123_456_789, to_chain=1, fee=0) -> bytes:
    return (
        bytes([1])
        + amount.to_bytes(32, 'big')
        + bytes.fromhex("00" * 12 + "b4fbf271143f4fbf7b91a5ded31805e42b2208d6")
        + (2).to_bytes(2, 'big')
        + b"\x07" * 32
        + to_chain.to_bytes(2, 'big')
        + fee.to_bytes(32, 'big')
    )


def build_vaa(payload: bytes, signatures=((0, b"\x11" * 65), (3, b"\x22" * 65)), sequence=1234) -> bytes:
    header = struct.pack(">BIB", 1, 3, len(signatures))
    for index, signature in signatures:
        header += bytes([index]) + signature
    body = struct.pack(">IIH", 1_700_000_000, 42, 2) + EMITTER + struct.pack(">QB", sequence, 15) + payload
    return header + body


def test_parse_header_and_body():
    vaa = parse_vaa(build_vaa(transfer_payload()))

    assert vaa.version == 1
    assert vaa.guardian_set_index == 3
    assert [s.index for s in vaa.signatures] == [0, 3]
    assert vaa.signatures[1].signature == b"\x22" * 65
    assert vaa.timestamp == 1_700_000_000
    assert vaa.nonce == 42
    assert vaa.emitter_chain == 2
    assert vaa.emitter_address == EMITTER
    assert vaa.sequence == 1234
    assert vaa.consistency_level == 15


def test_hash_covers_body_only():
    payload = transfer_payload()
    first = parse_vaa(build_vaa(payload, signatures=((0, b"\x11" * 65),)))
    second = parse_vaa(build_vaa(payload, signatures=((5, b"\x33" * 65),)))

    assert first.hash == second.hash
    assert first.hash == bytes(Web3.keccak(first.body))


def test_parse_transfer_payload():
    transfer = parse_transfer_payload(parse_vaa(build_vaa(transfer_payload(fee=5))).payload)

    assert transfer.payload_id == 1
    assert transfer.amount == 123_456_789
    assert transfer.token_chain == 2
    assert transfer.to == b"\x07" * 32
    assert transfer.to_chain == 1
    assert transfer.fee == 5


def test_transfer_with_payload():
    payload = bytearray(transfer_payload())
    payload[0] = 3
    payload += b"hello"
    transfer = parse_transfer_payload(bytes(payload))

    assert transfer.payload_id == 3
    assert transfer.from_address == bytes(32)
    assert transfer.extra == b"hello"


@pytest.mark.parametrize("data", [b"", b"\x01\x00", build_vaa(transfer_payload())[:40]])
def test_truncated_vaa(data):
    with pytest.raises(VaaParseError):
        parse_vaa(data)


def test_non_transfer_payload():
    with pytest.raises(VaaParseError):
        parse_transfer_payload(bytes([2]) + bytes(200))
