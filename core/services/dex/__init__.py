"""
DEX adapters - quote and swap on each chain
"""
from .base import DexAdapter, min_output
from .jupiter_client import JupiterSwapClient
from .sushiswap_client import SushiSwapClient

__all__ = [
    'DexAdapter',
    'JupiterSwapClient',
    'SushiSwapClient',
    'min_output',
]
