"""
Component wiring
Builds every component once from settings and injects them through constructors
"""
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import base58
import httpx
from eth_account import Account
from solders.keypair import Keypair

from core.models.action_models import ChainId
from core.services.assets.registry import AssetRegistry, get_asset_registry
from core.services.bridge.bridge_service import BridgeClient
from core.services.bridge.evm_chain import EvmBridgeChain
from core.services.bridge.guardian_client import GuardianClient
from core.services.bridge.solana_chain import SolanaBridgeChain
from core.services.chains.evm_client import EvmClient
from core.services.chains.solana_rpc import SolanaRpcClient
from core.services.dex.jupiter_client import JupiterSwapClient
from core.services.dex.sushiswap_client import SushiSwapClient
from core.services.exceptions import ConfigurationError
from infrastructure.config.settings import AppSettings, settings as default_settings
from infrastructure.logging.logger import get_logger
from .action_generator import ActionGenerator
from .action_pipeline import ActionPipeline

logger = get_logger(__name__)


def load_solana_keypair(secret: Optional[str]) -> Keypair:
    """
    Raises:
        ConfigurationError: if the key is missing or not a base58 64 byte secret
    """
    if not secret:
        raise ConfigurationError("SOL_PRIVATE_KEY is not set")
    try:
        raw = base58.b58decode(secret.strip())
    except ValueError as e:
        raise ConfigurationError(f"SOL_PRIVATE_KEY is not valid base58: {e}") from e
    if len(raw) != 64:
        raise ConfigurationError(f"SOL_PRIVATE_KEY must decode to 64 bytes, got {len(raw)}")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise ConfigurationError(f"SOL_PRIVATE_KEY is not a valid keypair: {e}") from e


def validate_eth_private_key(secret: Optional[str]) -> str:
    """
    Raises:
        ConfigurationError: if the key is missing or unparseable
    """
    if not secret:
        raise ConfigurationError("ETH_PRIVATE_KEY is not set")
    key = secret.strip()
    try:
        Account.from_key(key)
    except Exception as e:  # eth_keys raises its own ValidationError
        raise ConfigurationError(f"ETH_PRIVATE_KEY is invalid: {e}") from None
    return key


@dataclass
class Components:
    registry: AssetRegistry
    pipeline: ActionPipeline
    generator: ActionGenerator
    bridge_client: BridgeClient
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def close(self) -> None:
        await close_all(self.closers)


async def close_all(closers: List[Callable[[], Awaitable[None]]]) -> None:
    """Close clients in reverse creation order, logging failures"""
    for close in reversed(closers):
        try:
            await close()
        except Exception as e:
            logger.warning(f"⚠️ Error while closing client: {e}")


async def build_components(
    app_settings: Optional[AppSettings] = None,
    attestation_timeout: Optional[float] = None,
    max_start_amount: Optional[float] = None,
) -> Components:
    """
    Wire the registry, chain clients, bridge and DEX adapters, pipeline and generator

    Clients already created are closed again when a later one fails to build.

    Raises:
        ConfigurationError: on missing credentials, invalid addresses or an
            inconsistent asset table
    """
    app_settings = app_settings or default_settings
    web3_cfg = app_settings.web3
    wormhole_cfg = app_settings.wormhole
    trading_cfg = app_settings.trading

    keypair = load_solana_keypair(web3_cfg.sol_private_key)
    eth_key = validate_eth_private_key(web3_cfg.eth_private_key)

    registry = get_asset_registry()
    closers: List[Callable[[], Awaitable[None]]] = []

    try:
        solana_rpc = SolanaRpcClient(
            web3_cfg.solana_rpc_url,
            keypair,
            confirmation_timeout=web3_cfg.solana_confirmation_timeout,
        )
        closers.append(solana_rpc.close)

        evm_client = EvmClient(
            web3_cfg.ethereum_rpc_url,
            eth_key,
            chain_id=web3_cfg.ethereum_chain_id,
            confirmation_timeout=web3_cfg.ethereum_confirmation_timeout,
            poll_latency=web3_cfg.ethereum_poll_latency,
        )
        closers.append(evm_client.close)

        guardian_client = GuardianClient(
            wormhole_cfg.guardian_rpc_hosts,
            http_client=httpx.AsyncClient(timeout=wormhole_cfg.request_timeout),
            attestation_timeout=wormhole_cfg.attestation_timeout,
            initial_interval=wormhole_cfg.poll_initial_interval,
            max_interval=wormhole_cfg.poll_max_interval,
            backoff_factor=wormhole_cfg.poll_backoff_factor,
            request_timeout=wormhole_cfg.request_timeout,
        )
        closers.append(guardian_client.close)

        jupiter = JupiterSwapClient(
            solana_rpc,
            quote_url=trading_cfg.jupiter_quote_url,
            swap_url=trading_cfg.jupiter_swap_url,
            dexes=trading_cfg.jupiter_dexes,
        )
        closers.append(jupiter.close)

        bridge_client = BridgeClient(
            chains={
                ChainId.SOLANA: SolanaBridgeChain(
                    solana_rpc,
                    core_bridge=wormhole_cfg.solana_core_bridge,
                    token_bridge=wormhole_cfg.solana_token_bridge,
                    log_format=wormhole_cfg.solana_log_format,
                ),
                ChainId.ETHEREUM: EvmBridgeChain(
                    evm_client,
                    core_bridge=wormhole_cfg.ethereum_core_bridge,
                    token_bridge=wormhole_cfg.ethereum_token_bridge,
                    log_format=wormhole_cfg.evm_log_format,
                ),
            },
            guardian_client=guardian_client,
            attestation_timeout=attestation_timeout if attestation_timeout is not None else wormhole_cfg.attestation_timeout,
        )
        sushiswap = SushiSwapClient(
            evm_client,
            router_address=trading_cfg.sushiswap_router,
            deadline_seconds=trading_cfg.swap_deadline_seconds,
        )
    except ValueError as e:
        # bad program id or contract address in settings
        await close_all(closers)
        raise ConfigurationError(f"Invalid chain setting: {e}") from e
    except BaseException:
        await close_all(closers)
        raise

    pipeline = ActionPipeline(
        registry,
        dex_adapters={ChainId.SOLANA: jupiter, ChainId.ETHEREUM: sushiswap},
        bridge_client=bridge_client,
        max_slippage=trading_cfg.max_slippage,
    )
    generator = ActionGenerator(
        pipeline,
        registry,
        max_start_amount=max_start_amount if max_start_amount is not None else trading_cfg.max_start_amount,
    )

    logger.info(f"✅ Components ready: Solana {keypair.pubkey()} / Ethereum {evm_client.address}")
    return Components(
        registry=registry,
        pipeline=pipeline,
        generator=generator,
        bridge_client=bridge_client,
        closers=closers,
    )
