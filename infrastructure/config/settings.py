"""
Sybil Bridge Application Settings
Centralized configuration management using Pydantic
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables BEFORE defining the settings classes:
# the module-level `settings` instance is built at import time
if not os.getenv('SYBIL_SKIP_DOTENV'):
    load_dotenv('.env.local')  # Development env first
    load_dotenv('.env', override=False)  # Fallback env (no override)


class Web3Settings(BaseSettings):
    """Chain endpoints and signing credentials"""

    model_config = SettingsConfigDict(extra="ignore")

    solana_rpc_url: str = "https://api.devnet.solana.com"
    ethereum_rpc_url: str = "https://rpc.ankr.com/eth_goerli"
    ethereum_chain_id: int = 5  # Goerli
    sol_private_key: Optional[str] = None  # base58 encoded 64 byte secret key
    eth_private_key: Optional[str] = None  # hex encoded

    solana_confirmation_timeout: int = 90  # seconds
    ethereum_confirmation_timeout: int = 180  # seconds
    ethereum_poll_latency: float = 2.0  # seconds between receipt polls


class WormholeSettings(BaseSettings):
    """Wormhole bridge contracts and guardian network"""

    model_config = SettingsConfigDict(env_prefix="WORMHOLE_", extra="ignore")

    guardian_rpc_hosts: List[str] = Field(
        default_factory=lambda: ["https://wormhole-v2-testnet-api.certus.one"]
    )

    # Solana programs (devnet)
    solana_core_bridge: str = "3u8hJUVTA4jH1wYAyUur7FFZVQ8H635K3tSHHF4ssjQ5"
    solana_token_bridge: str = "DZnkkTmCiFWfYTfT41X3Rd1kDgozqzxWaHqsw6W4x2oe"

    # Ethereum contracts (Goerli)
    ethereum_core_bridge: str = "0xC89Ce4735882C9F0f0FE26686c53074E09B0D550"
    ethereum_token_bridge: str = "0xa6CDAddA6e4B6704705b065E01E52e2486c0FBf6"

    # Attestation polling
    attestation_timeout: float = 900.0  # seconds
    poll_initial_interval: float = 1.0
    poll_max_interval: float = 30.0
    poll_backoff_factor: float = 2.0
    request_timeout: float = 10.0

    # Versioned log formats used to read the transfer sequence
    solana_log_format: str = "v1"
    evm_log_format: str = "v1"

    @field_validator("guardian_rpc_hosts")
    @classmethod
    def validate_hosts(cls, v):
        """At least one guardian endpoint is required"""
        hosts = [h.rstrip('/') for h in v if h and h.strip()]
        if not hosts:
            raise ValueError("At least one guardian RPC host must be configured")
        return hosts


class TradingSettings(BaseSettings):
    """Sybil action parameters"""

    model_config = SettingsConfigDict(env_prefix="SYBIL_", extra="ignore")

    max_slippage: float = 0.03  # 3%
    max_start_amount: float = 10.0  # display units
    cycles: int = 1
    concurrency: int = 1
    jupiter_quote_url: str = "https://lite-api.jup.ag/swap/v1/quote"
    jupiter_swap_url: str = "https://lite-api.jup.ag/swap/v1/swap"
    jupiter_dexes: Optional[str] = None  # e.g. "Whirlpool,Orca V2"
    sushiswap_router: str = "0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506"
    swap_deadline_seconds: int = 3600

    @field_validator("max_slippage")
    @classmethod
    def validate_slippage(cls, v):
        """Slippage is a fraction in [0, 1)"""
        if not 0 <= v < 1:
            raise ValueError("max_slippage must be a fraction between 0 and 1")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppSettings(BaseSettings):
    """Main application settings"""

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    name: str = "Sybil Bridge"
    version: str = "0.1.0"

    # Sub-settings
    web3: Web3Settings = Field(default_factory=Web3Settings)
    wormhole: WormholeSettings = Field(default_factory=WormholeSettings)
    trading: TradingSettings = Field(default_factory=TradingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_mainnet(self) -> bool:
        """Check if running against mainnet contracts"""
        return self.environment.lower() in ["production", "mainnet"]


# Global settings instance
settings = AppSettings()
