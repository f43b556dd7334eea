"""
Chain clients - signing, broadcast and confirmation for Solana and Ethereum
"""
from .evm_client import EvmClient
from .solana_rpc import SolanaRpcClient, SolanaRpcError

__all__ = [
    'EvmClient',
    'SolanaRpcClient',
    'SolanaRpcError',
]
