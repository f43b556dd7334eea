"""
Sequence parsers
Read the Wormhole sequence number of a confirmed transfer from chain logs

The log layout depends on the deployed contract version, so parsers are
registered per chain family and format version and selected from settings
"""
from typing import Any, Callable, Dict, Optional, Tuple

from eth_abi import decode as abi_decode
from web3 import Web3

from core.services.exceptions import ConfigurationError

LOG_MESSAGE_PUBLISHED_TOPIC = bytes(
    Web3.keccak(text="LogMessagePublished(address,uint64,uint32,bytes,uint8)")
)
SOLANA_SEQUENCE_PREFIX = "Program log: Sequence: "


class SequenceNotFoundError(Exception):
    """Raised when a confirmed transfer carries no readable sequence"""
    pass


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith("0x") else text)


def parse_evm_sequence_v1(receipt: Dict, core_bridge: Optional[str] = None) -> int:
    """First LogMessagePublished emitted by the core bridge in an EVM receipt"""
    for log in receipt.get('logs', []):
        topics = log.get('topics') or []
        if not topics or _to_bytes(topics[0]) != LOG_MESSAGE_PUBLISHED_TOPIC:
            continue
        if core_bridge and str(log.get('address', '')).lower() != core_bridge.lower():
            continue
        sequence, _nonce, _payload, _consistency = abi_decode(
            ["uint64", "uint32", "bytes", "uint8"],
            _to_bytes(log['data']),
        )
        return int(sequence)
    raise SequenceNotFoundError("No LogMessagePublished event in receipt")


def parse_solana_sequence_v1(transaction: Dict, core_bridge: Optional[str] = None) -> int:
    """`Program log: Sequence: N` line written by the core bridge program"""
    meta = (transaction or {}).get('meta') or {}
    for line in meta.get('logMessages') or []:
        if line.startswith(SOLANA_SEQUENCE_PREFIX):
            try:
                return int(line[len(SOLANA_SEQUENCE_PREFIX):].strip())
            except ValueError:
                raise SequenceNotFoundError(f"Malformed sequence log line: {line!r}") from None
    raise SequenceNotFoundError("No sequence log line in transaction")


SequenceParser = Callable[[Any, Optional[str]], int]

SEQUENCE_PARSERS: Dict[Tuple[str, str], SequenceParser] = {
    ("evm", "v1"): parse_evm_sequence_v1,
    ("solana", "v1"): parse_solana_sequence_v1,
}


def get_sequence_parser(family: str, version: str) -> SequenceParser:
    """
    Select the parser for a chain family and log format version

    Raises:
        ConfigurationError: if no parser is registered for the pair
    """
    try:
        return SEQUENCE_PARSERS[(family, version)]
    except KeyError:
        raise ConfigurationError(f"No sequence parser for {family} log format {version!r}") from None
