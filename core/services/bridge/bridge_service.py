"""
Bridge Service - Wormhole transfer orchestration
Submit on the source chain, wait for guardian signatures, redeem on the destination
"""
from typing import Dict, Optional, Union

from core.models.action_models import (
    Asset,
    BridgeHop,
    ChainId,
    HopState,
    RedeemReceipt,
    SequenceHandle,
    SignedApproval,
)
from core.services.exceptions import (
    AttestationTimeoutError,
    ChainTransactionError,
    ConfigurationError,
    RedeemError,
    TransferAlreadyRedeemed,
    TransferSubmissionError,
)
from infrastructure.logging.logger import get_logger
from .bridge_chain import BridgeChain
from .guardian_client import GuardianClient
from .sequence_parsers import SequenceNotFoundError

logger = get_logger(__name__)


class BridgeClient:
    """
    Moves the transit asset between chains

    Stateless apart from its chain endpoints; every hop's state lives in the
    BridgeHop owned by the calling action
    """

    def __init__(
        self,
        chains: Dict[ChainId, BridgeChain],
        guardian_client: GuardianClient,
        attestation_timeout: Optional[float] = None,
    ):
        self.chains = dict(chains)
        self.guardian_client = guardian_client
        self.attestation_timeout = attestation_timeout

    def chain(self, chain_id: ChainId) -> BridgeChain:
        try:
            return self.chains[chain_id]
        except KeyError:
            raise ConfigurationError(f"No bridge endpoint configured for {ChainId(chain_id).label}") from None

    async def recipient_for(self, asset: Asset) -> bytes:
        """32 byte recipient for `asset` on its own chain"""
        return await self.chain(asset.chain).recipient_address(asset)

    async def submit_transfer(
        self,
        transit_asset: Asset,
        amount: int,
        recipient: bytes,
        destination_chain: ChainId,
        hop: Optional[BridgeHop] = None,
    ) -> SequenceHandle:
        """
        Send the transit asset to `destination_chain` and wait for source confirmation

        Raises:
            TransferSubmissionError: if the transfer is rejected, not confirmed,
                the source RPC fails or no sequence can be read
        """
        if destination_chain == transit_asset.chain:
            raise ConfigurationError(f"Bridge transfer from {transit_asset.chain.label} to itself")
        if amount <= 0:
            raise TransferSubmissionError(f"Nothing to bridge: amount {amount}")

        source = self.chain(transit_asset.chain)
        self.chain(destination_chain)

        logger.info(
            f"🌉 Bridging {amount} {transit_asset.symbol}: "
            f"{transit_asset.chain.label} -> {ChainId(destination_chain).label}"
        )

        try:
            tx_id = await source.send_transfer(transit_asset, amount, recipient, destination_chain)
            if hop is not None:
                hop.source_tx_id = tx_id
            confirmed = await source.wait_for_confirmation(tx_id)
            sequence = source.extract_sequence(confirmed)
        except (ChainTransactionError, SequenceNotFoundError, ValueError) as e:
            logger.error(f"❌ Bridge transfer failed on {transit_asset.chain.label}: {e}")
            raise TransferSubmissionError(f"Bridge transfer failed: {e}") from e

        handle = SequenceHandle(
            chain=transit_asset.chain,
            emitter_address=await source.emitter_address(),
            sequence=sequence,
        )
        logger.info(f"✅ Transfer confirmed on {transit_asset.chain.label}, sequence {handle}")
        return handle

    async def await_approval(self, handle: SequenceHandle, timeout: Optional[float] = None) -> SignedApproval:
        """
        Raises:
            AttestationTimeoutError: if the guardians do not sign in time
        """
        if timeout is None:
            timeout = self.attestation_timeout
        return await self.guardian_client.await_approval(handle, timeout)

    async def redeem(
        self,
        approval: Union[SignedApproval, SequenceHandle],
        destination_chain: ChainId,
        hop: Optional[BridgeHop] = None,
    ) -> RedeemReceipt:
        """
        Complete a transfer on `destination_chain`

        Accepts a SequenceHandle to resume a transfer whose approval was never
        fetched. Redeeming an already executed VAA is reported as success.

        Raises:
            RedeemError: if the destination rejects the VAA for any other reason
                or its RPC fails
        """
        if hop is not None and hop.state == HopState.REDEEMED and hop.receipt is not None:
            logger.info(f"ℹ️ Hop already redeemed ({hop.receipt.tx_id}), nothing to do")
            return hop.receipt

        if isinstance(approval, SequenceHandle):
            approval = await self.await_approval(approval)

        destination = self.chain(destination_chain)
        chain_label = ChainId(destination_chain).label
        logger.info(f"📥 Redeeming {approval.handle} on {chain_label}")

        try:
            tx_id = await destination.redeem(approval.vaa_bytes)
        except TransferAlreadyRedeemed as e:
            logger.warning(f"⚠️ Transfer {approval.handle} already redeemed on {chain_label}: {e}")
            return RedeemReceipt(chain=ChainId(destination_chain), tx_id=e.tx_id, already_executed=True)
        except (ChainTransactionError, ValueError) as e:
            logger.error(f"❌ Redeem of {approval.handle} failed on {chain_label}: {e}")
            raise RedeemError(f"Redeem failed on {chain_label}: {e}") from e

        logger.info(f"✅ Redeemed {approval.handle} on {chain_label}: {tx_id}")
        return RedeemReceipt(chain=ChainId(destination_chain), tx_id=tx_id)

    async def execute_hop(self, hop: BridgeHop) -> BridgeHop:
        """
        Drive a hop through submit, approval and redeem, advancing its state

        Raises:
            TransferSubmissionError, AttestationTimeoutError, RedeemError
        """
        transfer = hop.transfer

        try:
            hop.handle = await self.submit_transfer(
                transfer.asset,
                transfer.amount,
                transfer.recipient,
                transfer.destination_chain,
                hop=hop,
            )
        except TransferSubmissionError:
            hop.advance(HopState.FAILED)
            raise
        hop.advance(HopState.AWAITING_APPROVAL)

        try:
            hop.approval = await self.await_approval(hop.handle)
        except AttestationTimeoutError:
            hop.advance(HopState.TIMED_OUT)
            raise
        hop.advance(HopState.APPROVED)

        try:
            hop.receipt = await self.redeem(hop.approval, transfer.destination_chain, hop)
        except RedeemError:
            hop.advance(HopState.FAILED)
            raise
        hop.advance(HopState.REDEEMED)
        return hop
