"""
EVM Bridge Chain
Wormhole token bridge calls on Ethereum
"""
import random
from typing import Any, Optional

from web3 import AsyncWeb3

from core.models.action_models import Asset, ChainId
from core.services.chains.evm_client import EvmClient
from core.services.exceptions import ChainTransactionError, TransferAlreadyRedeemed
from infrastructure.logging.logger import get_logger
from .bridge_chain import BridgeChain
from .config import BridgeConfig
from .sequence_parsers import get_sequence_parser

logger = get_logger(__name__)

TOKEN_BRIDGE_ABI = [
    {
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "recipientChain", "type": "uint16"},
            {"name": "recipient", "type": "bytes32"},
            {"name": "arbiterFee", "type": "uint256"},
            {"name": "nonce", "type": "uint32"}
        ],
        "name": "transferTokens",
        "outputs": [{"name": "sequence", "type": "uint64"}],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [{"name": "encodedVm", "type": "bytes"}],
        "name": "completeTransfer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

CORE_BRIDGE_ABI = [
    {
        "inputs": [],
        "name": "messageFee",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def evm_emitter_address(address: str) -> str:
    """20 byte EVM address left-padded to 32 bytes, as hex"""
    return "0" * 24 + address[2:].lower()


class EvmBridgeChain(BridgeChain):
    """Token bridge endpoint on an EVM chain"""

    family = "evm"

    def __init__(
        self,
        client: EvmClient,
        core_bridge: str = BridgeConfig.ETH_CORE_BRIDGE,
        token_bridge: str = BridgeConfig.ETH_TOKEN_BRIDGE,
        chain_id: ChainId = ChainId.ETHEREUM,
        log_format: str = BridgeConfig.EVM_LOG_FORMAT,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.core_bridge = AsyncWeb3.to_checksum_address(core_bridge)
        self.token_bridge = AsyncWeb3.to_checksum_address(token_bridge)
        self.chain_id = chain_id
        self.parse_sequence = get_sequence_parser(self.family, log_format)
        self.rng = rng or random.Random()
        self.bridge = client.contract(self.token_bridge, TOKEN_BRIDGE_ABI)
        self.core = client.contract(self.core_bridge, CORE_BRIDGE_ABI)

    async def send_transfer(self, asset: Asset, amount: int, recipient: bytes, target_chain: ChainId) -> str:
        await self.client.ensure_allowance(asset.address, self.token_bridge, amount)

        message_fee = await self.client.call(self.core.functions.messageFee(), "wormhole messageFee")
        nonce = self.rng.getrandbits(32)
        logger.info(
            f"🌉 transferTokens {amount} {asset.symbol} -> chain {int(target_chain)} "
            f"(nonce {nonce}, message fee {message_fee} wei)"
        )
        fn = self.bridge.functions.transferTokens(
            AsyncWeb3.to_checksum_address(asset.address),
            amount,
            int(target_chain),
            recipient,
            0,  # arbiter fee
            nonce,
        )
        return await self.client.send(fn, value=message_fee, description="wormhole transferTokens")

    async def wait_for_confirmation(self, tx_id: str) -> Any:
        return await self.client.wait_for_receipt(tx_id, "wormhole transferTokens")

    def extract_sequence(self, confirmed: Any) -> int:
        return self.parse_sequence(confirmed, self.core_bridge)

    async def emitter_address(self) -> str:
        return evm_emitter_address(self.token_bridge)

    async def recipient_address(self, asset: Asset) -> bytes:
        return bytes(12) + bytes.fromhex(self.client.address[2:])

    async def redeem(self, vaa_bytes: bytes) -> str:
        fn = self.bridge.functions.completeTransfer(vaa_bytes)
        try:
            receipt = await self.client.transact(fn, description="wormhole completeTransfer")
        except ChainTransactionError as e:
            if BridgeConfig.is_already_executed(str(e)):
                raise TransferAlreadyRedeemed(str(e), tx_id=e.tx_id) from e
            raise
        return AsyncWeb3.to_hex(receipt['transactionHash'])
