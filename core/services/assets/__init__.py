"""
Asset services - static asset universe and amount conversions
"""
from .registry import (
    AssetRegistry,
    get_asset_registry,
    to_base_units,
    from_base_units,
    rescale_amount,
)

__all__ = [
    'AssetRegistry',
    'get_asset_registry',
    'to_base_units',
    'from_base_units',
    'rescale_amount',
]
