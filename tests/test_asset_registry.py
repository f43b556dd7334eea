"""
Asset registry loading, lookups and amount conversions
"""
import random
from decimal import Decimal

import pytest

from core.models.action_models import Asset, ChainId
from core.services.assets.registry import (
    AssetRegistry,
    from_base_units,
    rescale_amount,
    to_base_units,
)
from core.services.exceptions import ConfigurationError


def test_default_table_loads(registry):
    assert set(registry.symbols()) == {"SOL", "ORCA", "WETH", "DAI", "MYST", "UNI"}
    assert registry.get("ORCA").chain == ChainId.SOLANA
    assert registry.get("DAI").chain == ChainId.ETHEREUM


def test_dual_listed_transit_has_single_home(registry):
    assert registry.home_chain("WETH") == ChainId.SOLANA
    assert registry.transit_asset(ChainId.SOLANA).decimals == 8
    assert registry.transit_asset(ChainId.ETHEREUM).decimals == 18


def test_unknown_symbol_raises(registry):
    with pytest.raises(ConfigurationError):
        registry.get("DOGE")


def test_first_chain_wins_without_override():
    table = {
        ChainId.SOLANA: {"T": ("mintT", 8), "X": ("mintX", 6)},
        ChainId.ETHEREUM: {"T": ("0xT", 18), "X": ("0xX", 18)},
    }
    registry = AssetRegistry.load(table, transit_symbol="T", canonical_homes={})
    assert registry.home_chain("X") == ChainId.SOLANA


def test_override_moves_home():
    table = {
        ChainId.SOLANA: {"T": ("mintT", 8)},
        ChainId.ETHEREUM: {"T": ("0xT", 18)},
    }
    registry = AssetRegistry.load(table, transit_symbol="T", canonical_homes={"T": ChainId.ETHEREUM})
    assert registry.home_chain("T") == ChainId.ETHEREUM


def test_transit_must_exist_on_both_chains():
    table = {
        ChainId.SOLANA: {"T": ("mintT", 8)},
        ChainId.ETHEREUM: {"DAI": ("0xD", 18)},
    }
    with pytest.raises(ConfigurationError, match="not listed"):
        AssetRegistry.load(table, transit_symbol="T", canonical_homes={})


@pytest.mark.parametrize("entry", [("", 6), ("mint", -1), ("mint", "6"), ("mint",)])
def test_malformed_entries_rejected(entry):
    table = {
        ChainId.SOLANA: {"T": ("mintT", 8), "BAD": entry},
        ChainId.ETHEREUM: {"T": ("0xT", 18)},
    }
    with pytest.raises(ConfigurationError):
        AssetRegistry.load(table, transit_symbol="T", canonical_homes={})


def test_pick_two_random_distinct(registry):
    rng = random.Random(7)
    for _ in range(50):
        first, second = registry.pick_two_random(rng)
        assert first != second
        assert first in registry.symbols() and second in registry.symbols()


def test_to_base_units_truncates_to_six_digits():
    dai = Asset("DAI", ChainId.ETHEREUM, "0xD", 18)
    assert to_base_units(dai, 1.23456789) == 1_234_567 * 10 ** 12


def test_to_base_units_respects_low_precision():
    orca = Asset("ORCA", ChainId.SOLANA, "mint", 2)
    assert to_base_units(orca, 3.999) == 399


def test_to_base_units_rejects_negative():
    with pytest.raises(ValueError):
        to_base_units(Asset("X", ChainId.SOLANA, "m", 6), -1)


def test_from_base_units():
    weth = Asset("WETH", ChainId.SOLANA, "m", 8)
    assert from_base_units(weth, 150_000_000) == Decimal("1.5")


def test_rescale_down_truncates():
    # 18 -> 8 decimals drops the last 10 digits, never rounding up
    assert rescale_amount(1_234_567_899_999_999_999, 18, 8) == 123_456_789
    assert rescale_amount(9_999_999_999, 18, 8) == 0


def test_rescale_up_is_exact():
    assert rescale_amount(123_456_789, 8, 18) == 1_234_567_890_000_000_000


def test_rescale_same_precision_is_identity():
    assert rescale_amount(42, 6, 6) == 42
