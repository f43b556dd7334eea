"""
Bridge Chain
Per-chain Wormhole endpoint used by the bridge client
"""
from typing import Any

from core.models.action_models import Asset, ChainId


class BridgeChain:
    """
    Base class for one chain's side of the token bridge

    Subclasses implement submission, confirmation, sequence extraction and
    redemption for their chain family
    """

    chain_id: ChainId
    family: str = ""

    async def send_transfer(self, asset: Asset, amount: int, recipient: bytes, target_chain: ChainId) -> str:
        """Broadcast a token bridge transfer and return its transaction id"""
        raise NotImplementedError

    async def wait_for_confirmation(self, tx_id: str) -> Any:
        """Wait for the transfer and return the confirmed record (receipt or transaction)"""
        raise NotImplementedError

    def extract_sequence(self, confirmed: Any) -> int:
        """Read the Wormhole sequence from a confirmed record"""
        raise NotImplementedError

    async def emitter_address(self) -> str:
        """Token bridge emitter as 64 lowercase hex chars"""
        raise NotImplementedError

    async def recipient_address(self, asset: Asset) -> bytes:
        """32 byte address that receives `asset` on this chain"""
        raise NotImplementedError

    async def redeem(self, vaa_bytes: bytes) -> str:
        """
        Complete a transfer on this chain

        Raises:
            TransferAlreadyRedeemed: if the VAA was already executed
            ChainTransactionError: for any other rejection
        """
        raise NotImplementedError
