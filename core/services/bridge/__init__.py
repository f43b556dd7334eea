"""
Bridge Service Module
Wormhole transit-asset bridging between Solana and Ethereum
"""
from .bridge_chain import BridgeChain
from .bridge_service import BridgeClient
from .config import BridgeConfig
from .evm_chain import EvmBridgeChain
from .guardian_client import GuardianClient
from .solana_chain import SolanaBridgeChain

__all__ = [
    'BridgeChain',
    'BridgeClient',
    'BridgeConfig',
    'EvmBridgeChain',
    'GuardianClient',
    'SolanaBridgeChain',
]
