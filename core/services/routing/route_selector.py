"""
Route Selector
Classifies an action by the home chains of its two assets
"""
from core.models.action_models import CHAIN_A, CHAIN_B, Direction
from core.services.assets.registry import AssetRegistry


class RouteSelector:
    """Pure lookup over the asset registry, no network access"""

    def __init__(self, registry: AssetRegistry):
        self.registry = registry

    def classify(self, source_symbol: str, dest_symbol: str) -> Direction:
        """
        Classify the route between two assets

        Raises:
            ConfigurationError: if either symbol is unknown
        """
        source_chain = self.registry.home_chain(source_symbol)
        dest_chain = self.registry.home_chain(dest_symbol)

        if source_chain == CHAIN_A:
            return Direction.BOTH_ON_A if dest_chain == CHAIN_A else Direction.A_TO_B
        if dest_chain == CHAIN_B:
            return Direction.BOTH_ON_B
        return Direction.B_TO_A
