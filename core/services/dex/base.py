"""
DEX Adapter boundary
"""
from core.models.action_models import Asset, ChainId


def min_output(quoted: int, max_slippage: float) -> int:
    """Slippage floor in base units, rounded down"""
    return int(quoted * (1 - max_slippage))


class DexAdapter:
    """
    Swap executor for one chain

    `quote_and_swap` fetches a live quote, applies the slippage floor, submits
    the swap, waits for confirmation and returns the amount actually received
    """

    chain: ChainId

    async def quote_and_swap(self, source: Asset, amount: int, dest: Asset, max_slippage: float) -> int:
        """
        Raises:
            SwapError: if the quote fails, the floor cannot be met or the swap reverts
        """
        raise NotImplementedError
