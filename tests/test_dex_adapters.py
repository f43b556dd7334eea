"""
DEX adapters: slippage floors and realised amounts
"""
import base64
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from solders.pubkey import Pubkey

from core.models.action_models import ChainId
from core.services.dex.base import min_output
from core.services.dex.jupiter_client import JupiterSwapClient
from core.services.dex.sushiswap_client import TRANSFER_TOPIC, SushiSwapClient
from core.services.exceptions import ChainTransactionError, SwapError

WALLET = "0x" + "11" * 20
OWNER = Pubkey.from_string("9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM")


def test_min_output_rounds_down():
    assert min_output(1000, 0.03) == 970
    assert min_output(999, 0.005) == 994
    assert min_output(1, 0.5) == 0


# SushiSwap

def transfer_log(token: str, to: str, amount: int) -> dict:
    return {
        'address': token,
        'topics': [TRANSFER_TOPIC, bytes(32), bytes(12) + bytes.fromhex(to[2:])],
        'data': amount.to_bytes(32, 'big'),
    }


@pytest.fixture
def evm_client():
    client = Mock()
    client.address = WALLET
    client.contract.return_value = Mock()
    client.call = AsyncMock(return_value=[1000, 5000])
    client.ensure_allowance = AsyncMock()
    client.transact = AsyncMock(return_value={'logs': []})
    return client


@pytest.fixture
def sushiswap(evm_client):
    return SushiSwapClient(evm_client, clock=lambda: 1_700_000_000)


async def test_sushiswap_reads_received_amount_from_logs(sushiswap, evm_client, registry):
    dai, uni = registry.get("DAI"), registry.get("UNI")
    evm_client.transact.return_value = {
        'logs': [
            transfer_log(dai.address, "0x" + "22" * 20, 1000),
            transfer_log(uni.address, WALLET, 4_990),
        ]
    }

    received = await sushiswap.quote_and_swap(dai, 1000, uni, 0.03)

    assert received == 4_990
    evm_client.ensure_allowance.assert_awaited_once_with(dai.address, sushiswap.router_address, 1000)
    args = sushiswap.router.functions.swapExactTokensForTokens.call_args.args
    assert args[0] == 1000
    assert args[1] == 4_850
    assert args[3] == WALLET
    assert args[4] == 1_700_000_000 + 3600


async def test_sushiswap_falls_back_to_floor(sushiswap, registry):
    received = await sushiswap.quote_and_swap(registry.get("DAI"), 1000, registry.get("UNI"), 0.03)
    assert received == 4_850


async def test_sushiswap_revert_is_swap_error(sushiswap, evm_client, registry):
    evm_client.transact.side_effect = ChainTransactionError("execution reverted", tx_id="0xdead")

    with pytest.raises(SwapError):
        await sushiswap.quote_and_swap(registry.get("DAI"), 1000, registry.get("UNI"), 0.03)


async def test_sushiswap_quote_outage_is_swap_error(sushiswap, evm_client, registry):
    evm_client.call.side_effect = ChainTransactionError("getAmountsOut failed: connection reset")

    with pytest.raises(SwapError):
        await sushiswap.quote_and_swap(registry.get("DAI"), 1000, registry.get("UNI"), 0.03)
    evm_client.transact.assert_not_awaited()


async def test_sushiswap_rejects_zero_amount(sushiswap, registry):
    with pytest.raises(SwapError):
        await sushiswap.quote_and_swap(registry.get("DAI"), 0, registry.get("UNI"), 0.03)


# Jupiter

def token_balance(mint: str, owner: str, amount: int) -> dict:
    return {'mint': mint, 'owner': owner, 'uiTokenAmount': {'amount': str(amount)}}


@pytest.fixture
def solana_rpc():
    rpc = Mock()
    rpc.owner = OWNER
    rpc.sign_and_send_versioned = AsyncMock(return_value="5" * 88)
    rpc.confirm_transaction = AsyncMock(return_value={})
    rpc.get_transaction = AsyncMock(return_value={'meta': {}})
    return rpc


def jupiter_with(rpc, quote: dict, requests: list) -> JupiterSwapClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/quote"):
            return httpx.Response(200, json=quote)
        return httpx.Response(200, json={'swapTransaction': base64.b64encode(b"unsigned-tx").decode()})

    return JupiterSwapClient(rpc, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_jupiter_swap_uses_balance_delta(solana_rpc, registry):
    orca, weth = registry.get("ORCA"), registry.get("WETH")
    solana_rpc.get_transaction.return_value = {
        'meta': {
            'preTokenBalances': [token_balance(weth.address, str(OWNER), 100)],
            'postTokenBalances': [
                token_balance(weth.address, str(OWNER), 2_100),
                token_balance(weth.address, "SomeoneElse1111111111111111111111111111111", 9_999),
            ],
        }
    }
    requests = []
    jupiter = jupiter_with(solana_rpc, {'outAmount': "2050", 'otherAmountThreshold': "1990"}, requests)

    received = await jupiter.quote_and_swap(orca, 500_000, weth, 0.03)

    assert received == 2_000
    quote_params = requests[0].url.params
    assert quote_params['inputMint'] == orca.address
    assert quote_params['slippageBps'] == "300"
    assert json.loads(requests[1].content)['userPublicKey'] == str(OWNER)
    solana_rpc.sign_and_send_versioned.assert_awaited_once_with(b"unsigned-tx")


async def test_jupiter_native_sol_output(solana_rpc, registry):
    solana_rpc.get_transaction.return_value = {
        'meta': {'preBalances': [1_000_000], 'postBalances': [1_495_000], 'fee': 5_000}
    }
    jupiter = jupiter_with(solana_rpc, {'outAmount': "500000", 'otherAmountThreshold': "490000"}, [])

    received = await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("SOL"), 0.03)

    assert received == 500_000


async def test_jupiter_threshold_below_floor_rejected(solana_rpc, registry):
    jupiter = jupiter_with(solana_rpc, {'outAmount': "1000", 'otherAmountThreshold': "900"}, [])

    with pytest.raises(SwapError):
        await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("WETH"), 0.03)
    solana_rpc.sign_and_send_versioned.assert_not_awaited()


async def test_jupiter_no_route(solana_rpc, registry):
    jupiter = jupiter_with(solana_rpc, {'error': "no route"}, [])

    with pytest.raises(SwapError):
        await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("WETH"), 0.03)


async def test_jupiter_unreadable_output_uses_threshold(solana_rpc, registry):
    jupiter = jupiter_with(solana_rpc, {'outAmount': "1000", 'otherAmountThreshold': "980"}, [])

    received = await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("WETH"), 0.03)

    assert received == 980


async def test_jupiter_send_failure_is_swap_error(solana_rpc, registry):
    solana_rpc.sign_and_send_versioned.side_effect = ChainTransactionError("All send attempts failed")
    jupiter = jupiter_with(solana_rpc, {'outAmount': "1000", 'otherAmountThreshold': "980"}, [])

    with pytest.raises(SwapError):
        await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("WETH"), 0.03)


async def test_jupiter_confirmed_swap_survives_unreadable_transaction(solana_rpc, registry):
    solana_rpc.get_transaction.side_effect = ChainTransactionError("Transaction not available from RPC", tx_id="5" * 88)
    jupiter = jupiter_with(solana_rpc, {'outAmount': "1000", 'otherAmountThreshold': "980"}, [])

    received = await jupiter.quote_and_swap(registry.get("ORCA"), 10, registry.get("WETH"), 0.03)

    assert received == 980
    solana_rpc.confirm_transaction.assert_awaited_once()


def test_adapter_chains():
    assert JupiterSwapClient.chain == ChainId.SOLANA
    assert SushiSwapClient.chain == ChainId.ETHEREUM
