"""
Asset Addresses
Static symbol -> (address, decimals) tables for both chains (devnet / Goerli)
"""
from core.models.action_models import ChainId

# Solana (SPL mints)
SOLANA_COINS = {
    "WETH": ("Ff5JqsAYUD4vAfQUtfRprT4nXu9e28tTBZTDFMnJNdvd", 8),  # Wormhole-wrapped, 8 decimals
    "SOL": ("So11111111111111111111111111111111111111112", 9),
    "ORCA": ("orcarKHSqC5CDDsGbho8GKvwExejWHxTqGzXgcewB9L", 6),
}

# Ethereum (ERC-20)
ETH_COINS = {
    "DAI": ("0xdc31Ee1784292379Fbb2964b3B9C4124D8F89C60", 18),
    "MYST": ("0xf74a5ca65E4552CfF0f13b116113cCb493c580C5", 18),
    "WETH": ("0xB4FBF271143F4FBf7B91A5ded31805e42b2208d6", 18),
    "UNI": ("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", 18),
}

# Chain order decides the home of a symbol listed on both chains
ASSET_TABLE = {
    ChainId.SOLANA: SOLANA_COINS,
    ChainId.ETHEREUM: ETH_COINS,
}

# Asset carried across the bridge for every cross-chain hop
BRIDGE_COIN = "WETH"

# Explicit home overrides for dual-listed symbols
CANONICAL_HOMES = {
    "WETH": ChainId.SOLANA,
}
