"""
EVM Client
Signs, broadcasts and confirms contract transactions on Ethereum
"""
import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from core.services.exceptions import ChainTransactionError
from infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}, {"name": "_spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [{"name": "_spender", "type": "address"}, {"name": "_value", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"}
        ],
        "name": "Transfer",
        "type": "event"
    }
]

MAX_UINT256 = 2 ** 256 - 1

# Node rejections and transport failures raised by web3 calls
RPC_ERRORS = (Web3Exception, ValueError, aiohttp.ClientError, asyncio.TimeoutError)


class EvmClient:
    """
    Shared signing client for one account

    Nonce allocation and broadcast are serialised per account so concurrent
    actions never reuse a nonce
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        confirmation_timeout: float = 180,
        poll_latency: float = 2.0,
        w3: Optional[AsyncWeb3] = None,
    ):
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self.poll_latency = poll_latency
        self._nonce_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None
        logger.info(f"✅ EVM client initialized for {self.address} (chain {chain_id})")

    @property
    def address(self) -> str:
        return self.account.address

    def contract(self, address: str, abi: List[Dict]):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    def erc20(self, address: str):
        return self.contract(address, ERC20_ABI)

    async def call(self, fn, description: str = "call") -> Any:
        """
        Read-only contract call

        Raises:
            ChainTransactionError: if the node rejects the call or is unreachable
        """
        try:
            return await fn.call()
        except RPC_ERRORS as e:
            logger.error(f"❌ {description} failed: {e}")
            raise ChainTransactionError(f"{description} failed: {e}") from e

    async def _fee_params(self) -> Dict[str, int]:
        """EIP-1559 fees, with a legacy gasPrice fallback"""
        try:
            block = await self.w3.eth.get_block('pending')
            base_fee = block['baseFeePerGas']
            priority_fee = await self.w3.eth.max_priority_fee
            return {
                'maxFeePerGas': base_fee * 2 + priority_fee,
                'maxPriorityFeePerGas': priority_fee,
            }
        except (KeyError, ValueError, Web3Exception) as e:
            logger.warning(f"⚠️ Could not get EIP-1559 gas prices: {e}, using legacy gasPrice")
            return {'gasPrice': await self.w3.eth.gas_price}

    async def _allocate_nonce(self) -> int:
        chain_nonce = await self.w3.eth.get_transaction_count(self.address, 'pending')
        if self._next_nonce is None or chain_nonce > self._next_nonce:
            self._next_nonce = chain_nonce
        nonce = self._next_nonce
        self._next_nonce += 1
        return nonce

    async def transact(self, fn, value: int = 0, description: str = "transaction") -> Any:
        """
        Sign and send a contract call, then wait for its receipt

        Raises:
            ChainTransactionError: if gas estimation reverts, the transaction
                reverts or the receipt does not arrive in time
        """
        tx_hex = await self.send(fn, value=value, description=description)
        return await self.wait_for_receipt(tx_hex, description)

    async def send(self, fn, value: int = 0, description: str = "transaction") -> str:
        """Sign and broadcast a contract call, returning the transaction hash"""
        tx_params = {'from': self.address, 'value': value, 'chainId': self.chain_id}

        async with self._nonce_lock:
            try:
                estimated_gas = await fn.estimate_gas({'from': self.address, 'value': value})
            except ContractLogicError as e:
                logger.error(f"❌ {description} would revert: {e}")
                raise ChainTransactionError(f"{description} reverted in simulation: {e}") from e
            except RPC_ERRORS as e:
                # e.g. insufficient funds for gas
                logger.error(f"❌ {description} gas estimation failed: {e}")
                raise ChainTransactionError(f"{description} gas estimation failed: {e}") from e

            try:
                tx_params.update(await self._fee_params())
                tx_params['gas'] = int(estimated_gas * 1.2)  # 20% buffer
                tx_params['nonce'] = await self._allocate_nonce()

                tx = await fn.build_transaction(tx_params)
                signed_tx = self.account.sign_transaction(tx)
                tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            except RPC_ERRORS as e:
                # Rejected by the node, the nonce was not consumed
                self._next_nonce = None
                raise ChainTransactionError(f"{description} rejected by node: {e}") from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info(f"📡 {description} sent: {tx_hex}")
        logger.info(f"   View on Etherscan: https://goerli.etherscan.io/tx/{tx_hex}")
        return tx_hex

    async def wait_for_receipt(self, tx_hex: str, description: str = "transaction") -> Any:
        logger.info(f"⏳ Waiting for confirmation of {description}...")
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hex,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_latency,
            )
        except TimeExhausted as e:
            logger.error(f"❌ {description} not mined after {self.confirmation_timeout}s")
            raise ChainTransactionError(
                f"{description} not confirmed after {self.confirmation_timeout}s",
                tx_id=tx_hex,
                timed_out=True,
            ) from e
        except RPC_ERRORS as e:
            logger.error(f"❌ Lost track of {description} {tx_hex}: {e}")
            raise ChainTransactionError(f"{description} receipt unavailable: {e}", tx_id=tx_hex) from e

        if receipt['status'] != 1:
            logger.error(f"❌ {description} reverted! Status: {receipt['status']}")
            raise ChainTransactionError(f"{description} reverted", tx_id=tx_hex)

        logger.info(f"✅ {description} confirmed in block {receipt['blockNumber']} (gas used {receipt['gasUsed']})")
        return receipt

    async def ensure_allowance(self, token_address: str, spender: str, amount: int) -> None:
        """Approve `spender` for the max amount when the current allowance is short"""
        token = self.erc20(token_address)
        spender = AsyncWeb3.to_checksum_address(spender)
        allowance = await self.call(token.functions.allowance(self.address, spender), "allowance")
        if allowance >= amount:
            return
        logger.info(f"🔓 Approving {spender} to spend {token_address}")
        await self.transact(token.functions.approve(spender, MAX_UINT256), description="approve")

    async def close(self):
        await self.w3.provider.disconnect()
