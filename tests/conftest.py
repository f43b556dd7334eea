"""
Pytest configuration and shared fixtures
"""
import os

# Settings are built at import time, keep local .env files out of tests
os.environ.setdefault("SYBIL_SKIP_DOTENV", "1")

import pytest  # noqa: E402

from core.models.action_models import ChainId  # noqa: E402
from core.services.assets.registry import AssetRegistry  # noqa: E402
from core.services.pipeline.action_pipeline import ActionPipeline  # noqa: E402
from tests.fixtures.mocks import (  # noqa: E402,F401
    ethereum_dex,
    fake_clock,
    mock_bridge_client,
    solana_dex,
)


@pytest.fixture
def registry() -> AssetRegistry:
    """Registry loaded from the default asset table"""
    return AssetRegistry.load()


@pytest.fixture
def pipeline(registry, solana_dex, ethereum_dex, mock_bridge_client) -> ActionPipeline:
    """Pipeline wired to fake DEX adapters and a bridge client that always completes"""
    return ActionPipeline(
        registry,
        dex_adapters={ChainId.SOLANA: solana_dex, ChainId.ETHEREUM: ethereum_dex},
        bridge_client=mock_bridge_client,
        max_slippage=0.03,
    )
