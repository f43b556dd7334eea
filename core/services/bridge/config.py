"""
Bridge Configuration
Centralized configuration for Wormhole bridge operations
Uses settings.py for environment variables
"""
from infrastructure.config.settings import settings
from infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class BridgeConfig:
    """Bridge configuration using centralized settings"""

    # Guardian network
    GUARDIAN_RPC_HOSTS = settings.wormhole.guardian_rpc_hosts
    ATTESTATION_TIMEOUT = settings.wormhole.attestation_timeout
    POLL_INITIAL_INTERVAL = settings.wormhole.poll_initial_interval
    POLL_MAX_INTERVAL = settings.wormhole.poll_max_interval
    POLL_BACKOFF_FACTOR = settings.wormhole.poll_backoff_factor
    GUARDIAN_REQUEST_TIMEOUT = settings.wormhole.request_timeout

    # Solana programs
    SOL_CORE_BRIDGE = settings.wormhole.solana_core_bridge
    SOL_TOKEN_BRIDGE = settings.wormhole.solana_token_bridge

    # Ethereum contracts
    ETH_CORE_BRIDGE = settings.wormhole.ethereum_core_bridge
    ETH_TOKEN_BRIDGE = settings.wormhole.ethereum_token_bridge

    # Sequence log formats
    SOLANA_LOG_FORMAT = settings.wormhole.solana_log_format
    EVM_LOG_FORMAT = settings.wormhole.evm_log_format

    # Guardian signatures verified per Solana transaction
    SIGNATURES_PER_BATCH = 7

    # Markers in destination errors meaning the VAA was already redeemed
    ALREADY_EXECUTED_MARKERS = (
        "already in use",
        "alreadyexecuted",
        "already executed",
        "transfer already completed",
    )

    @classmethod
    def is_already_executed(cls, message: str) -> bool:
        """Whether a destination error means the transfer was already redeemed"""
        text = (message or "").lower()
        return any(marker in text for marker in cls.ALREADY_EXECUTED_MARKERS)
