"""
Solana Bridge Chain
Wormhole token bridge transfers and redemptions on Solana
"""
import random
from typing import Any, List, Optional

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    ApproveParams,
    approve,
    create_associated_token_account,
    get_associated_token_address,
)

from core.models.action_models import Asset, ChainId
from core.services.chains.solana_rpc import SolanaRpcClient
from core.services.exceptions import ChainTransactionError, TransferAlreadyRedeemed
from infrastructure.logging.logger import get_logger
from . import solana_instructions as wormhole
from .bridge_chain import BridgeChain
from .config import BridgeConfig
from .sequence_parsers import get_sequence_parser
from .vaa import ParsedVaa, parse_transfer_payload, parse_vaa

logger = get_logger(__name__)


class SolanaBridgeChain(BridgeChain):
    """Token bridge endpoint on Solana for wormhole-wrapped assets"""

    family = "solana"

    def __init__(
        self,
        rpc: SolanaRpcClient,
        core_bridge: str = BridgeConfig.SOL_CORE_BRIDGE,
        token_bridge: str = BridgeConfig.SOL_TOKEN_BRIDGE,
        chain_id: ChainId = ChainId.SOLANA,
        log_format: str = BridgeConfig.SOLANA_LOG_FORMAT,
        signatures_per_batch: int = BridgeConfig.SIGNATURES_PER_BATCH,
        rng: Optional[random.Random] = None,
    ):
        self.rpc = rpc
        self.core_bridge = Pubkey.from_string(core_bridge)
        self.token_bridge = Pubkey.from_string(token_bridge)
        self.chain_id = chain_id
        self.parse_sequence = get_sequence_parser(self.family, log_format)
        self.signatures_per_batch = signatures_per_batch
        self.rng = rng or random.Random()

    @property
    def owner(self) -> Pubkey:
        return self.rpc.owner

    async def _bridge_fee(self) -> int:
        data = await self.rpc.get_account_info(wormhole.bridge_config_address(self.core_bridge))
        if data is None:
            raise ChainTransactionError(f"Core bridge {self.core_bridge} is not initialized")
        return wormhole.parse_bridge_fee(data)

    async def send_transfer(self, asset: Asset, amount: int, recipient: bytes, target_chain: ChainId) -> str:
        mint = Pubkey.from_string(asset.address)
        from_account = get_associated_token_address(self.owner, mint)
        message = Keypair()
        nonce = self.rng.getrandbits(32)
        fee = await self._bridge_fee()

        instructions: List[Instruction] = []
        if fee:
            instructions.append(transfer(TransferParams(
                from_pubkey=self.owner,
                to_pubkey=wormhole.fee_collector_address(self.core_bridge),
                lamports=fee,
            )))
        instructions.append(approve(ApproveParams(
            program_id=TOKEN_PROGRAM_ID,
            source=from_account,
            delegate=wormhole.authority_signer_address(self.token_bridge),
            owner=self.owner,
            amount=amount,
        )))
        instructions.append(wormhole.transfer_wrapped(
            token_bridge=self.token_bridge,
            core_bridge=self.core_bridge,
            payer=self.owner,
            from_account=from_account,
            from_owner=self.owner,
            wrapped_mint=mint,
            message=message.pubkey(),
            nonce=nonce,
            amount=amount,
            fee=0,
            target_address=recipient,
            target_chain=int(target_chain),
        ))

        logger.info(
            f"🌉 TransferWrapped {amount} {asset.symbol} -> chain {int(target_chain)} "
            f"(nonce {nonce}, bridge fee {fee} lamports)"
        )
        signed = await self.rpc.build_and_sign(instructions, extra_signers=[message])
        return await self.rpc.send_transaction(signed)

    async def wait_for_confirmation(self, tx_id: str) -> Any:
        await self.rpc.confirm_transaction(tx_id)
        return await self.rpc.get_transaction(tx_id)

    def extract_sequence(self, confirmed: Any) -> int:
        return self.parse_sequence(confirmed, str(self.core_bridge))

    async def emitter_address(self) -> str:
        return bytes(wormhole.emitter_address(self.token_bridge)).hex()

    async def recipient_address(self, asset: Asset) -> bytes:
        """Wrapped tokens are minted to the wallet's associated token account"""
        mint = Pubkey.from_string(asset.address)
        return bytes(get_associated_token_address(self.owner, mint))

    async def _guardian_keys(self, guardian_set_index: int) -> List[bytes]:
        address = wormhole.guardian_set_address(self.core_bridge, guardian_set_index)
        data = await self.rpc.get_account_info(address)
        if data is None:
            raise ChainTransactionError(f"Guardian set {guardian_set_index} not found on Solana")
        return wormhole.parse_guardian_keys(data)

    async def _post_vaa(self, vaa: ParsedVaa) -> None:
        """Verify guardian signatures in batches, then post the VAA"""
        guardian_keys = await self._guardian_keys(vaa.guardian_set_index)
        signature_set = Keypair()
        batches = [
            vaa.signatures[i:i + self.signatures_per_batch]
            for i in range(0, len(vaa.signatures), self.signatures_per_batch)
        ]

        for number, batch in enumerate(batches, start=1):
            logger.info(f"   🔏 Verifying guardian signatures batch {number}/{len(batches)} ({len(batch)} sigs)")
            instructions = wormhole.verify_signatures_batch(
                self.core_bridge,
                self.owner,
                vaa,
                guardian_keys,
                signature_set.pubkey(),
                batch,
            )
            # secp256k1 must stay at index 0
            await self.rpc.send_and_confirm(instructions, extra_signers=[signature_set], compute_budget=False)

        logger.info(f"   📮 Posting VAA sequence {vaa.sequence}")
        await self.rpc.send_and_confirm([
            wormhole.post_vaa(self.core_bridge, self.owner, signature_set.pubkey(), vaa)
        ])

    async def redeem(self, vaa_bytes: bytes) -> str:
        vaa = parse_vaa(vaa_bytes)
        transfer_payload = parse_transfer_payload(vaa.payload)

        claim = wormhole.claim_address(self.token_bridge, vaa.emitter_address, vaa.emitter_chain, vaa.sequence)
        if await self.rpc.get_account_info(claim) is not None:
            raise TransferAlreadyRedeemed(f"transfer already completed (claim {claim} exists)")

        posted = wormhole.posted_vaa_address(self.core_bridge, vaa.hash)
        if await self.rpc.get_account_info(posted) is None:
            await self._post_vaa(vaa)
        else:
            logger.info(f"   VAA already posted at {posted}, skipping verification")

        mint = wormhole.wrapped_mint_address(
            self.token_bridge,
            transfer_payload.token_chain,
            transfer_payload.token_address,
        )
        to_account = Pubkey.from_bytes(transfer_payload.to)

        instructions: List[Instruction] = []
        if to_account == get_associated_token_address(self.owner, mint):
            if await self.rpc.get_account_info(to_account) is None:
                logger.info(f"   Creating associated token account {to_account}")
                instructions.append(create_associated_token_account(self.owner, self.owner, mint))
        instructions.append(wormhole.complete_wrapped(
            token_bridge=self.token_bridge,
            core_bridge=self.core_bridge,
            payer=self.owner,
            vaa=vaa,
            to_account=to_account,
            wrapped_mint=mint,
        ))

        try:
            return await self.rpc.send_and_confirm(instructions)
        except ChainTransactionError as e:
            if BridgeConfig.is_already_executed(str(e)):
                raise TransferAlreadyRedeemed(str(e), tx_id=e.tx_id) from e
            raise
