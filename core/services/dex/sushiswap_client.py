"""
SushiSwap Client - ERC-20 swaps on Ethereum
Direct-pair swaps through the SushiSwap V2 router
"""
import time
from typing import Any, Callable, Optional

from web3 import AsyncWeb3, Web3

from core.models.action_models import Asset, ChainId
from core.services.chains.evm_client import EvmClient
from core.services.exceptions import ChainTransactionError, SwapError
from infrastructure.logging.logger import get_logger
from .base import DexAdapter, min_output

logger = get_logger(__name__)

SUSHISWAP_ROUTER = "0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506"

# SushiSwap Router V2 ABI (minimal, just what we need)
SUSHISWAP_ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"}
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"}
        ],
        "name": "getAmountsOut",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function"
    }
]

TRANSFER_TOPIC = bytes(Web3.keccak(text="Transfer(address,address,uint256)"))


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith("0x") else text)


class SushiSwapClient(DexAdapter):
    """SushiSwap client for ERC-20 → ERC-20 swaps"""

    chain = ChainId.ETHEREUM

    def __init__(
        self,
        client: EvmClient,
        router_address: str = SUSHISWAP_ROUTER,
        deadline_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.router_address = AsyncWeb3.to_checksum_address(router_address)
        self.router = client.contract(self.router_address, SUSHISWAP_ROUTER_ABI)
        self.deadline_seconds = deadline_seconds
        self.clock = clock
        logger.info(f"✅ SushiSwap client initialized (router {self.router_address})")

    async def get_amount_out(self, source: Asset, amount: int, dest: Asset) -> int:
        path = [AsyncWeb3.to_checksum_address(source.address), AsyncWeb3.to_checksum_address(dest.address)]
        logger.info(f"📊 Getting swap quote for {amount} {source.symbol} -> {dest.symbol}...")
        try:
            amounts = await self.client.call(self.router.functions.getAmountsOut(amount, path), "getAmountsOut")
        except ChainTransactionError as e:
            raise SwapError(f"SushiSwap quote {source.symbol}->{dest.symbol} failed: {e}") from e
        logger.info(f"✅ Quote: {amount} {source.symbol} → {amounts[-1]} {dest.symbol}")
        return int(amounts[-1])

    def _realised_amount(self, receipt: Any, dest: Asset) -> Optional[int]:
        """Sum of `dest` Transfer events paid to the wallet"""
        wallet = self.client.address.lower()
        token = dest.address.lower()
        received = None
        for log in receipt.get('logs', []):
            topics = log.get('topics') or []
            if len(topics) < 3 or _as_bytes(topics[0]) != TRANSFER_TOPIC:
                continue
            if str(log.get('address', '')).lower() != token:
                continue
            if "0x" + _as_bytes(topics[2])[-20:].hex() != wallet:
                continue
            received = (received or 0) + int.from_bytes(_as_bytes(log['data']), 'big')
        return received

    async def quote_and_swap(self, source: Asset, amount: int, dest: Asset, max_slippage: float) -> int:
        if amount <= 0:
            raise SwapError(f"Swap amount must be positive, got {amount}")

        quoted = await self.get_amount_out(source, amount, dest)
        floor = min_output(quoted, max_slippage)
        if floor <= 0:
            raise SwapError(f"Quote for {amount} {source.symbol} too small to swap into {dest.symbol}")

        path = [AsyncWeb3.to_checksum_address(source.address), AsyncWeb3.to_checksum_address(dest.address)]
        deadline = int(self.clock()) + self.deadline_seconds

        logger.info(f"🔄 Executing swap: {amount} {source.symbol} → {dest.symbol}")
        logger.info(f"🎯 Min out (with {max_slippage:.2%} slippage): {floor}")

        try:
            await self.client.ensure_allowance(source.address, self.router_address, amount)
            fn = self.router.functions.swapExactTokensForTokens(amount, floor, path, self.client.address, deadline)
            receipt = await self.client.transact(fn, description=f"swap {source.symbol}->{dest.symbol}")
        except ChainTransactionError as e:
            raise SwapError(f"SushiSwap swap {source.symbol}->{dest.symbol} failed: {e}") from e

        received = self._realised_amount(receipt, dest)
        if received is None:
            logger.warning(f"⚠️ No {dest.symbol} Transfer log in receipt, using minimum {floor}")
            received = floor

        logger.info(f"✅ Swapped {amount} {source.symbol} → {received} {dest.symbol}")
        return received
