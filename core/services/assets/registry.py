"""
Asset Registry
Immutable symbol -> asset map loaded once at startup and validated eagerly
"""
import random
from decimal import Decimal, ROUND_DOWN
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from core.models.action_models import Asset, ChainId
from core.services.assets.addresses import ASSET_TABLE, BRIDGE_COIN, CANONICAL_HOMES
from core.services.exceptions import ConfigurationError
from infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class AssetRegistry:
    """Read-only registry shared by every concurrent action"""

    def __init__(
        self,
        assets: Mapping[str, Asset],
        listings: Mapping[Tuple[str, ChainId], Asset],
        transit_symbol: str,
    ):
        self._assets = MappingProxyType(dict(assets))
        self._listings = MappingProxyType(dict(listings))
        self.transit_symbol = transit_symbol

    @classmethod
    def load(
        cls,
        table: Optional[Mapping[ChainId, Mapping[str, Tuple[str, int]]]] = None,
        transit_symbol: str = BRIDGE_COIN,
        canonical_homes: Optional[Mapping[str, ChainId]] = None,
    ) -> 'AssetRegistry':
        """
        Build the registry from a static table

        Args:
            table: chain -> {symbol: (address, decimals)}
            transit_symbol: symbol of the bridge transit asset
            canonical_homes: home chain for symbols listed on several chains

        Raises:
            ConfigurationError: if the table is inconsistent
        """
        table = ASSET_TABLE if table is None else table
        canonical_homes = CANONICAL_HOMES if canonical_homes is None else canonical_homes

        listings: Dict[Tuple[str, ChainId], Asset] = {}
        homes: Dict[str, ChainId] = {}

        for chain, coins in table.items():
            chain = ChainId(chain)
            for symbol, entry in coins.items():
                try:
                    address, decimals = entry
                except (TypeError, ValueError):
                    raise ConfigurationError(f"Malformed asset entry for {symbol} on {chain.label}: {entry!r}")
                if not address:
                    raise ConfigurationError(f"Asset {symbol} on {chain.label} has no address")
                if not isinstance(decimals, int) or decimals < 0:
                    raise ConfigurationError(f"Asset {symbol} on {chain.label} has invalid decimals: {decimals!r}")

                listings[(symbol, chain)] = Asset(symbol=symbol, chain=chain, address=address, decimals=decimals)
                # First chain in table order wins unless overridden below
                homes.setdefault(symbol, chain)

        for symbol, chain in canonical_homes.items():
            if symbol not in homes:
                continue
            if (symbol, ChainId(chain)) not in listings:
                raise ConfigurationError(f"Canonical home {ChainId(chain).label} for {symbol} has no listing")
            homes[symbol] = ChainId(chain)

        for chain in ChainId:
            if (transit_symbol, chain) not in listings:
                raise ConfigurationError(f"Transit asset {transit_symbol} is not listed on {chain.label}")

        assets = {symbol: listings[(symbol, chain)] for symbol, chain in homes.items()}

        logger.info(
            f"📒 Asset registry loaded: {len(assets)} assets, transit={transit_symbol} "
            f"({', '.join(sorted(str(a) for a in assets.values()))})"
        )
        return cls(assets, listings, transit_symbol)

    def get(self, symbol: str) -> Asset:
        """Asset at its canonical home chain"""
        try:
            return self._assets[symbol]
        except KeyError:
            raise ConfigurationError(f"Unknown asset symbol: {symbol}") from None

    def home_chain(self, symbol: str) -> ChainId:
        return self.get(symbol).chain

    def on_chain(self, symbol: str, chain: ChainId) -> Asset:
        """Listing of `symbol` on a specific chain"""
        try:
            return self._listings[(symbol, chain)]
        except KeyError:
            raise ConfigurationError(f"Asset {symbol} is not listed on {chain.label}") from None

    def transit_asset(self, chain: ChainId) -> Asset:
        return self.on_chain(self.transit_symbol, chain)

    def symbols(self) -> List[str]:
        return list(self._assets)

    def pick_two_random(self, rng: Optional[random.Random] = None) -> Tuple[str, str]:
        """Two distinct symbols from the universe"""
        rng = rng or random
        first, second = rng.sample(self.symbols(), 2)
        return first, second


def to_base_units(asset: Asset, amount: float, num_digits: int = 6) -> int:
    """
    Convert a display amount to integer base units

    The amount is truncated to `num_digits` decimals before scaling, so assets
    with fewer decimals than `num_digits` are truncated to their own precision
    """
    if amount < 0:
        raise ValueError("amount must not be negative")
    digits = min(num_digits, asset.decimals)
    quantum = Decimal(1).scaleb(-digits)
    truncated = Decimal(str(amount)).quantize(quantum, rounding=ROUND_DOWN)
    return int(truncated.scaleb(asset.decimals))


def from_base_units(asset: Asset, amount: int) -> Decimal:
    return Decimal(amount).scaleb(-asset.decimals)


def rescale_amount(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Rescale base units between precisions; down-scaling truncates, never rounds up"""
    if to_decimals >= from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


# Global instance
_asset_registry: Optional[AssetRegistry] = None


def get_asset_registry() -> AssetRegistry:
    """Get or load the AssetRegistry instance"""
    global _asset_registry
    if _asset_registry is None:
        _asset_registry = AssetRegistry.load()
    return _asset_registry
