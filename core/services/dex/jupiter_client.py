"""
Jupiter Client - token swaps on Solana
Quotes and swap transactions from the Jupiter Lite API, signed and broadcast locally
"""
import base64
import binascii
from typing import Dict, Optional

import httpx

from core.models.action_models import Asset, ChainId
from core.services.chains.solana_rpc import SolanaRpcClient
from core.services.exceptions import ChainTransactionError, SwapError
from infrastructure.logging.logger import get_logger
from .base import DexAdapter, min_output

logger = get_logger(__name__)

JUPITER_LITE_QUOTE_URL = "https://lite-api.jup.ag/swap/v1/quote"
JUPITER_LITE_SWAP_URL = "https://lite-api.jup.ag/swap/v1/swap"
NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"


class JupiterSwapClient(DexAdapter):
    """Jupiter swap client for any SPL pair"""

    chain = ChainId.SOLANA

    def __init__(
        self,
        rpc: SolanaRpcClient,
        http_client: Optional[httpx.AsyncClient] = None,
        quote_url: str = JUPITER_LITE_QUOTE_URL,
        swap_url: str = JUPITER_LITE_SWAP_URL,
        dexes: Optional[str] = None,
    ):
        self.rpc = rpc
        self.client = http_client or httpx.AsyncClient(timeout=15.0)
        self.quote_url = quote_url
        self.swap_url = swap_url
        self.dexes = dexes

    async def get_quote(self, source: Asset, amount: int, dest: Asset, slippage_bps: int) -> Dict:
        params = {
            "inputMint": source.address,
            "outputMint": dest.address,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        if self.dexes:
            params["dexes"] = self.dexes

        logger.info(f"🔍 Jupiter quote for {amount} {source.symbol} -> {dest.symbol}...")
        try:
            resp = await self.client.get(self.quote_url, params=params)
            resp.raise_for_status()
            quote = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SwapError(f"Jupiter quote {source.symbol}->{dest.symbol} failed: {e}") from e

        if "outAmount" not in quote:
            raise SwapError(f"Jupiter returned no route for {source.symbol}->{dest.symbol}: {quote.get('error', quote)}")

        logger.info(f"✅ Quote: {amount} {source.symbol} → {quote['outAmount']} {dest.symbol}")
        return quote

    async def get_swap_transaction(self, quote: Dict) -> bytes:
        payload = {
            'quoteResponse': quote,
            'userPublicKey': str(self.rpc.owner),
            'wrapAndUnwrapSol': True,
            'dynamicComputeUnitLimit': True,
            'prioritizationFeeLamports': 'auto'
        }
        logger.info(f"🧱 Getting swap transaction...")
        try:
            resp = await self.client.post(self.swap_url, json=payload)
            resp.raise_for_status()
            return base64.b64decode(resp.json()["swapTransaction"])
        except (httpx.HTTPError, ValueError, KeyError, binascii.Error) as e:
            raise SwapError(f"Jupiter swap transaction request failed: {e}") from e

    def _realised_amount(self, transaction: Dict, dest: Asset) -> Optional[int]:
        """Amount of `dest` credited to the wallet, from balance deltas"""
        meta = (transaction or {}).get('meta') or {}
        owner = str(self.rpc.owner)

        if dest.address == NATIVE_SOL_MINT:
            pre, post = meta.get('preBalances') or [], meta.get('postBalances') or []
            if not pre or not post:
                return None
            # fee payer is account 0
            return post[0] - pre[0] + int(meta.get('fee', 0))

        def balance(entries) -> int:
            return sum(
                int(entry['uiTokenAmount']['amount'])
                for entry in entries or []
                if entry.get('mint') == dest.address and entry.get('owner') == owner
            )

        if meta.get('postTokenBalances') is None:
            return None
        return balance(meta.get('postTokenBalances')) - balance(meta.get('preTokenBalances'))

    async def quote_and_swap(self, source: Asset, amount: int, dest: Asset, max_slippage: float) -> int:
        if amount <= 0:
            raise SwapError(f"Swap amount must be positive, got {amount}")

        slippage_bps = int(max_slippage * 10_000)
        quote = await self.get_quote(source, amount, dest, slippage_bps)

        quoted = int(quote["outAmount"])
        floor = min_output(quoted, max_slippage)
        threshold = int(quote.get("otherAmountThreshold", floor))
        if threshold < floor:
            raise SwapError(
                f"Jupiter minimum output {threshold} below slippage floor {floor} for {source.symbol}->{dest.symbol}"
            )

        swap_tx = await self.get_swap_transaction(quote)

        try:
            logger.info(f"📡 Broadcasting swap ({len(swap_tx)} bytes)...")
            signature = await self.rpc.sign_and_send_versioned(swap_tx)
            await self.rpc.confirm_transaction(signature)
        except ChainTransactionError as e:
            raise SwapError(f"Jupiter swap {source.symbol}->{dest.symbol} failed: {e}") from e

        try:
            transaction = await self.rpc.get_transaction(signature)
        except ChainTransactionError as e:
            # swap is confirmed, only the balance read failed
            logger.warning(f"⚠️ Could not fetch confirmed swap {signature[:16]}...: {e}")
            transaction = None

        received = self._realised_amount(transaction, dest)
        if received is None or received <= 0:
            logger.warning(f"⚠️ Could not read realised output from {signature[:16]}..., using minimum {threshold}")
            received = threshold

        logger.info(f"✅ Swapped {amount} {source.symbol} → {received} {dest.symbol} ({signature})")
        return received

    async def close(self):
        await self.client.aclose()
