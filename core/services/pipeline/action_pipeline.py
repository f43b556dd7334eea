"""
Action Pipeline - swap → bridge → swap for one sybil action
"""
import asyncio
from typing import Dict, Mapping, Optional

from core.models.action_models import (
    ActionResult,
    ActionStage,
    Asset,
    BridgeHop,
    BridgeTransfer,
    ChainId,
    HopState,
    PendingAction,
    StrandedFunds,
)
from core.services.assets.registry import AssetRegistry, rescale_amount
from core.services.bridge.bridge_service import BridgeClient
from core.services.dex.base import DexAdapter
from core.services.exceptions import ConfigurationError, SybilActionError
from core.services.routing.route_selector import RouteSelector
from infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

# Where a failed hop stopped
HOP_FAILURE_STAGES = {
    HopState.SUBMITTED: ActionStage.BRIDGE_SUBMIT,
    HopState.AWAITING_APPROVAL: ActionStage.BRIDGE_ATTESTATION,
    HopState.TIMED_OUT: ActionStage.BRIDGE_ATTESTATION,
    HopState.APPROVED: ActionStage.BRIDGE_REDEEM,
    HopState.REDEEMED: ActionStage.DEST_SWAP,
}


class ActionPipeline:
    """
    Executes one action end to end

    Stages run strictly in order and each one waits for its on-chain effect
    before the next starts. A failed stage aborts the action: nothing already
    confirmed is reversed, and the raised error carries the stage and a
    StrandedFunds report describing what was left where.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        dex_adapters: Mapping[ChainId, DexAdapter],
        bridge_client: BridgeClient,
        max_slippage: float = 0.03,
        route_selector: Optional[RouteSelector] = None,
    ):
        self.registry = registry
        self.dex_adapters: Dict[ChainId, DexAdapter] = dict(dex_adapters)
        self.bridge_client = bridge_client
        self.max_slippage = max_slippage
        self.route_selector = route_selector or RouteSelector(registry)

    def _dex(self, chain: ChainId) -> DexAdapter:
        try:
            return self.dex_adapters[chain]
        except KeyError:
            raise ConfigurationError(f"No DEX adapter configured for {chain.label}") from None

    async def _swap(self, source: Asset, amount: int, dest: Asset) -> int:
        if source == dest:
            logger.info(f"   ⏭️ {source} is already the target asset, no swap needed")
            return amount
        logger.info(f"🔄 Swap {amount} {source} → {dest}")
        return await self._dex(source.chain).quote_and_swap(source, amount, dest, self.max_slippage)

    async def _bridge(self, action: PendingAction, source_transit: Asset, amount: int, dest_transit: Asset) -> int:
        action.enter(ActionStage.BRIDGE_SUBMIT)
        recipient = await self.bridge_client.recipient_for(dest_transit)
        action.hop = BridgeHop(
            transfer=BridgeTransfer(
                source_chain=source_transit.chain,
                destination_chain=dest_transit.chain,
                asset=source_transit,
                amount=amount,
                recipient=recipient,
            )
        )

        hop = await self.bridge_client.execute_hop(action.hop)
        if hop.receipt and hop.receipt.already_executed:
            logger.warning(f"⚠️ Transfer {hop.handle} was already redeemed, continuing with bridged amount")

        # token bridge truncates to the destination precision
        bridged = rescale_amount(amount, source_transit.decimals, dest_transit.decimals)
        action.record(ActionStage.BRIDGE_REDEEM, bridged)
        logger.info(
            f"   Bridged {amount} ({source_transit.decimals} dec) → {bridged} ({dest_transit.decimals} dec)"
        )
        return bridged

    async def execute(self, source_symbol: str, dest_symbol: str, amount: int) -> ActionResult:
        """
        Run one action and return the realised destination amount

        Raises:
            ConfigurationError: unknown symbol or missing adapter (before any on-chain effect)
            SwapError, TransferSubmissionError, AttestationTimeoutError, RedeemError:
                the stage that aborted, annotated with `stage` and `stranded`
        """
        try:
            direction = self.route_selector.classify(source_symbol, dest_symbol)
            source = self.registry.get(source_symbol)
            dest = self.registry.get(dest_symbol)
        except ConfigurationError as e:
            e.stage = ActionStage.CREATED
            raise

        action = PendingAction(source=source, destination=dest, amount=amount, direction=direction)

        logger.info(f"\n{'='*60}")
        logger.info(f"🚀 ACTION: {amount} {source} → {dest} ({direction.value})")
        logger.info(f"{'='*60}")

        try:
            if direction.is_cross_chain:
                source_transit = self.registry.transit_asset(source.chain)
                dest_transit = self.registry.transit_asset(dest.chain)

                action.enter(ActionStage.SOURCE_SWAP)
                transit_amount = await self._swap(source, amount, source_transit)
                action.record(ActionStage.SOURCE_SWAP, transit_amount)

                bridged = await self._bridge(action, source_transit, transit_amount, dest_transit)

                action.enter(ActionStage.DEST_SWAP)
                amount_out = await self._swap(dest_transit, bridged, dest)
                action.record(ActionStage.DEST_SWAP, amount_out)
            else:
                action.enter(ActionStage.SOURCE_SWAP)
                amount_out = await self._swap(source, amount, dest)
                action.record(ActionStage.SOURCE_SWAP, amount_out)

        except SybilActionError as e:
            self._settle_stage(action)
            e.stage = action.stage
            e.stranded = self.stranded_funds(action)
            logger.error(f"❌ Action failed at {action.stage.value}: {e}")
            if e.stranded:
                logger.error(f"   💸 Stranded: {e.stranded.describe()}")
            raise
        except asyncio.CancelledError:
            self._settle_stage(action)
            stranded = self.stranded_funds(action)
            logger.warning(f"🛑 Action cancelled at {action.stage.value}")
            if stranded:
                logger.warning(f"   💸 Stranded: {stranded.describe()}")
            raise

        action.enter(ActionStage.COMPLETED)
        logger.info(f"✅ ACTION COMPLETE: {amount} {source} → {amount_out} {dest}")
        logger.debug(f"   {action.to_dict()}")

        return ActionResult(
            direction=direction,
            source=source,
            destination=dest,
            amount_in=amount,
            amount_out=amount_out,
            amounts=dict(action.amounts),
            receipt=action.hop.receipt if action.hop else None,
        )

    def _settle_stage(self, action: PendingAction) -> None:
        """Narrow a bridge-stage failure to the hop step that stopped"""
        if action.stage == ActionStage.BRIDGE_SUBMIT and action.hop is not None:
            hop = action.hop
            if hop.state == HopState.FAILED:
                # FAILED after approval means the redeem was rejected
                state = HopState.APPROVED if hop.approval is not None else HopState.SUBMITTED
            else:
                state = hop.state
            action.enter(HOP_FAILURE_STAGES[state])

    def stranded_funds(self, action: PendingAction) -> Optional[StrandedFunds]:
        """Where the action's value sits after it stopped at `action.stage`"""
        stage = action.stage
        hop = action.hop

        if stage in (ActionStage.CREATED, ActionStage.COMPLETED):
            return None

        if stage == ActionStage.SOURCE_SWAP:
            return StrandedFunds(
                stage=stage,
                chain=action.source.chain,
                asset=action.source.symbol,
                amount=action.amount,
                note="source swap not completed, input still held by the wallet",
            )

        transit_symbol = self.registry.transit_symbol
        transit_amount = action.amounts.get(ActionStage.SOURCE_SWAP.value, 0)

        if stage == ActionStage.BRIDGE_SUBMIT:
            note = "source swap completed, bridge submission failed"
            if hop is not None and hop.source_tx_id:
                note += f"; check transfer tx {hop.source_tx_id} before retrying"
            return StrandedFunds(
                stage=stage,
                chain=action.source.chain,
                asset=transit_symbol,
                amount=transit_amount,
                note=note,
            )

        if stage in (ActionStage.BRIDGE_ATTESTATION, ActionStage.BRIDGE_REDEEM):
            source_transit = self.registry.transit_asset(action.source.chain)
            dest_transit = self.registry.transit_asset(action.destination.chain)
            # claimable on the destination, in its own precision
            return StrandedFunds(
                stage=stage,
                chain=action.destination.chain,
                asset=transit_symbol,
                amount=rescale_amount(transit_amount, source_transit.decimals, dest_transit.decimals),
                handle=hop.handle if hop else None,
                note=(
                    f"locked in the bridge ({transit_amount} base units sent from {action.source.chain.label}), "
                    f"redeem manually with the sequence handle"
                ),
            )

        # DEST_SWAP
        return StrandedFunds(
            stage=stage,
            chain=action.destination.chain,
            asset=transit_symbol,
            amount=action.amounts.get(ActionStage.BRIDGE_REDEEM.value, 0),
            note="bridged transit asset not swapped into the destination asset",
        )
