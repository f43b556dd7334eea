"""
Mock services for pipeline and bridge tests
Provides fake chains, DEX adapters and clocks to avoid real RPC calls and transactions
"""
from typing import Dict, List, Optional, Sequence, Union
from unittest.mock import AsyncMock, Mock

import pytest

from core.models.action_models import (
    Asset,
    BridgeHop,
    ChainId,
    HopState,
    RedeemReceipt,
    SequenceHandle,
    SignedApproval,
)
from core.services.bridge.bridge_chain import BridgeChain
from core.services.dex.base import DexAdapter
from core.services.exceptions import TransferAlreadyRedeemed

EMITTER_HEX = "ab" * 32
RECIPIENT = b"\x01" * 32


class FakeClock:
    """Injectable clock whose sleep advances time instantly"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeDexAdapter(DexAdapter):
    """Returns configured outputs and records every swap"""

    def __init__(
        self,
        chain: ChainId,
        outputs: Union[int, Sequence[int], None] = None,
        error: Optional[Exception] = None,
    ):
        self.chain = chain
        self.outputs = [outputs] if isinstance(outputs, int) else list(outputs or [])
        self.error = error
        self.calls: List[tuple] = []

    async def quote_and_swap(self, source: Asset, amount: int, dest: Asset, max_slippage: float) -> int:
        self.calls.append((source.symbol, amount, dest.symbol, max_slippage))
        if self.error:
            raise self.error
        if self.outputs:
            return self.outputs.pop(0)
        return amount * 2


class FakeBridgeChain(BridgeChain):
    """In-memory bridge endpoint; a VAA can only be redeemed once"""

    def __init__(
        self,
        chain_id: ChainId,
        sequence: int = 42,
        emitter: str = EMITTER_HEX,
        send_error: Optional[Exception] = None,
        confirm_error: Optional[Exception] = None,
        redeem_error: Optional[Exception] = None,
    ):
        self.chain_id = chain_id
        self.family = "fake"
        self.sequence = sequence
        self.emitter = emitter
        self.send_error = send_error
        self.confirm_error = confirm_error
        self.redeem_error = redeem_error
        self.sent: List[tuple] = []
        self.redeemed: List[bytes] = []
        self.redeem_calls = 0

    async def send_transfer(self, asset, amount, recipient, target_chain) -> str:
        self.sent.append((asset.symbol, amount, recipient, target_chain))
        if self.send_error:
            raise self.send_error
        return f"tx-transfer-{len(self.sent)}"

    async def wait_for_confirmation(self, tx_id: str) -> Dict:
        if self.confirm_error:
            raise self.confirm_error
        return {"tx": tx_id, "sequence": self.sequence}

    def extract_sequence(self, confirmed: Dict) -> int:
        return confirmed["sequence"]

    async def emitter_address(self) -> str:
        return self.emitter

    async def recipient_address(self, asset) -> bytes:
        return RECIPIENT

    async def redeem(self, vaa_bytes: bytes) -> str:
        self.redeem_calls += 1
        if self.redeem_error:
            raise self.redeem_error
        if vaa_bytes in self.redeemed:
            raise TransferAlreadyRedeemed("transfer already completed")
        self.redeemed.append(vaa_bytes)
        return f"tx-redeem-{len(self.redeemed)}"


async def _complete_hop(hop: BridgeHop) -> BridgeHop:
    hop.source_tx_id = "tx-transfer"
    hop.handle = SequenceHandle(hop.transfer.source_chain, EMITTER_HEX, 7)
    hop.advance(HopState.AWAITING_APPROVAL)
    hop.approval = SignedApproval(hop.handle, b"signed-vaa")
    hop.advance(HopState.APPROVED)
    hop.receipt = RedeemReceipt(hop.transfer.destination_chain, "tx-redeem")
    hop.advance(HopState.REDEEMED)
    return hop


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_bridge_client():
    """
    Mock BridgeClient whose hops always complete

    Provides:
    - recipient_for (32 byte recipient)
    - execute_hop (drives the hop to REDEEMED)
    """
    mock_client = Mock()
    mock_client.recipient_for = AsyncMock(return_value=RECIPIENT)
    mock_client.execute_hop = AsyncMock(side_effect=_complete_hop)
    return mock_client


@pytest.fixture
def solana_dex():
    return FakeDexAdapter(ChainId.SOLANA)


@pytest.fixture
def ethereum_dex():
    return FakeDexAdapter(ChainId.ETHEREUM)
