"""
VAA parsing
Decodes guardian-signed messages and token bridge transfer payloads
"""
import struct
from dataclasses import dataclass
from typing import List, Optional

from web3 import Web3

HEADER_FORMAT = ">BIB"  # version, guardian set index, signature count
SIGNATURE_LENGTH = 66  # guardian index + 65 byte secp256k1 signature
BODY_FORMAT = ">IIH32sQB"  # timestamp, nonce, emitter chain, emitter, sequence, consistency

PAYLOAD_TRANSFER = 1
PAYLOAD_TRANSFER_WITH_PAYLOAD = 3


class VaaParseError(ValueError):
    """Raised when bytes do not decode as a VAA or transfer payload"""
    pass


@dataclass(frozen=True)
class GuardianSignature:
    index: int
    signature: bytes  # r || s || recovery id


@dataclass(frozen=True)
class ParsedVaa:
    version: int
    guardian_set_index: int
    signatures: List[GuardianSignature]
    timestamp: int
    nonce: int
    emitter_chain: int
    emitter_address: bytes
    sequence: int
    consistency_level: int
    payload: bytes
    body: bytes

    @property
    def hash(self) -> bytes:
        """keccak256 of the body, the digest guardians sign (after a second hash)"""
        return bytes(Web3.keccak(self.body))


@dataclass(frozen=True)
class TransferPayload:
    payload_id: int
    amount: int  # normalised to 8 decimals
    token_address: bytes
    token_chain: int
    to: bytes
    to_chain: int
    fee: int = 0
    from_address: Optional[bytes] = None
    extra: bytes = b""


def parse_vaa(data: bytes) -> ParsedVaa:
    """
    Decode a signed VAA

    Raises:
        VaaParseError: if the bytes are truncated
    """
    header_size = struct.calcsize(HEADER_FORMAT)
    if len(data) < header_size:
        raise VaaParseError("VAA shorter than its header")

    version, guardian_set_index, num_signatures = struct.unpack_from(HEADER_FORMAT, data, 0)
    offset = header_size

    signatures = []
    for _ in range(num_signatures):
        if len(data) < offset + SIGNATURE_LENGTH:
            raise VaaParseError("VAA truncated inside signatures")
        signatures.append(GuardianSignature(
            index=data[offset],
            signature=bytes(data[offset + 1:offset + SIGNATURE_LENGTH]),
        ))
        offset += SIGNATURE_LENGTH

    body = bytes(data[offset:])
    if len(body) < struct.calcsize(BODY_FORMAT):
        raise VaaParseError("VAA body truncated")

    timestamp, nonce, emitter_chain, emitter_address, sequence, consistency = struct.unpack_from(BODY_FORMAT, body, 0)

    return ParsedVaa(
        version=version,
        guardian_set_index=guardian_set_index,
        signatures=signatures,
        timestamp=timestamp,
        nonce=nonce,
        emitter_chain=emitter_chain,
        emitter_address=emitter_address,
        sequence=sequence,
        consistency_level=consistency,
        payload=body[struct.calcsize(BODY_FORMAT):],
        body=body,
    )


def parse_transfer_payload(payload: bytes) -> TransferPayload:
    """Decode a token bridge transfer (id 1) or transfer-with-payload (id 3)"""
    if not payload:
        raise VaaParseError("Empty payload")

    payload_id = payload[0]
    if payload_id not in (PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD):
        raise VaaParseError(f"Not a token transfer payload (id {payload_id})")
    if len(payload) < 133:
        raise VaaParseError("Transfer payload truncated")

    amount = int.from_bytes(payload[1:33], 'big')
    token_address = bytes(payload[33:65])
    token_chain = int.from_bytes(payload[65:67], 'big')
    to = bytes(payload[67:99])
    to_chain = int.from_bytes(payload[99:101], 'big')

    if payload_id == PAYLOAD_TRANSFER:
        return TransferPayload(
            payload_id=payload_id,
            amount=amount,
            token_address=token_address,
            token_chain=token_chain,
            to=to,
            to_chain=to_chain,
            fee=int.from_bytes(payload[101:133], 'big'),
        )

    return TransferPayload(
        payload_id=payload_id,
        amount=amount,
        token_address=token_address,
        token_chain=token_chain,
        to=to,
        to_chain=to_chain,
        from_address=bytes(payload[101:133]),
        extra=bytes(payload[133:]),
    )
