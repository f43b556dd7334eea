"""
Solana RPC Client
Builds, signs, broadcasts and confirms Solana transactions over JSON-RPC
"""
import asyncio
import base64
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash as Blockhash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction, VersionedTransaction

from core.services.exceptions import ChainTransactionError
from infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class SolanaRpcError(ChainTransactionError):
    """JSON-RPC level error (transport or error object)"""

    def __init__(self, message: str, data: Optional[Dict] = None, tx_id: Optional[str] = None):
        super().__init__(message, tx_id=tx_id)
        self.data = data or {}


class SolanaRpcClient:
    """Thin async JSON-RPC client shared by the Jupiter adapter and the Solana bridge chain"""

    def __init__(
        self,
        rpc_url: str,
        keypair: Keypair,
        confirmation_timeout: float = 90,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable = asyncio.sleep,
        priority_fee_microlamports: int = 0,
    ):
        self.rpc_url = rpc_url
        self.keypair = keypair
        self.confirmation_timeout = confirmation_timeout
        self.client = http_client or httpx.AsyncClient(timeout=30.0)
        self.sleep = sleep
        self.priority_fee_microlamports = priority_fee_microlamports
        self._request_id = 0
        logger.info(f"🔧 SolanaRpcClient initialized with RPC: {self.rpc_url[:60]}")

    @property
    def owner(self) -> Pubkey:
        return self.keypair.pubkey()

    async def _rpc(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SolanaRpcError(f"{method} failed: {e}") from e

        if 'error' in result:
            error = result['error'] or {}
            raise SolanaRpcError(f"{method} error: {error.get('message', error)}", data=error.get('data'))
        return result.get('result')

    async def get_recent_blockhash(self) -> Blockhash:
        result = await self._rpc("getLatestBlockhash", [{"commitment": "confirmed"}])
        try:
            return Blockhash.from_string(result['value']['blockhash'])
        except (KeyError, TypeError, ValueError) as e:
            raise SolanaRpcError(f"getLatestBlockhash returned no blockhash: {result!r}") from e

    async def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data, or None when the account does not exist"""
        result = await self._rpc(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": "confirmed"}],
        )
        value = result.get('value') if result else None
        if value is None:
            return None
        return base64.b64decode(value['data'][0])

    async def get_transaction(self, signature: str, max_retries: int = 5) -> Dict:
        """Confirmed transaction with meta; retried while the RPC node catches up"""
        last_error: Optional[Exception] = None
        for attempt in range(max_retries):
            try:
                result = await self._rpc(
                    "getTransaction",
                    [signature, {"encoding": "json", "commitment": "confirmed", "maxSupportedTransactionVersion": 0}],
                )
            except SolanaRpcError as e:
                logger.warning(f"⚠️ getTransaction failed for {signature[:16]}... (attempt {attempt + 1}/{max_retries}): {e}")
                last_error = e
                result = None
            if result is not None:
                return result
            logger.debug(f"   getTransaction returned null for {signature[:16]}... (attempt {attempt + 1}/{max_retries})")
            await self.sleep(min(2 ** attempt, 5))
        raise SolanaRpcError(
            f"Transaction {signature} not available from RPC: {last_error or 'no result'}",
            tx_id=signature,
        )

    async def send_transaction(self, signed_transaction: bytes, max_retries: int = 3) -> str:
        """
        Broadcast a signed transaction

        Simulation failures are raised immediately as ChainTransactionError with the
        program logs attached; transport errors are retried
        """
        tx_base64 = base64.b64encode(signed_transaction).decode('utf-8')
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            if attempt > 0:
                delay = min(attempt * 0.5, 3)
                logger.info(f"   ⏳ Retry {attempt + 1}/{max_retries} (waiting {delay}s)")
                await self.sleep(delay)
            try:
                signature = await self._rpc(
                    "sendTransaction",
                    [tx_base64, {"encoding": "base64", "skipPreflight": False, "preflightCommitment": "confirmed"}],
                )
                logger.info(f"✅ Transaction sent! Signature: {signature}")
                return signature
            except SolanaRpcError as e:
                if e.data:
                    logs = e.data.get('logs') or []
                    detail = f"{e} {e.data.get('err')} {' | '.join(logs)}"
                    logger.error(f"❌ Transaction rejected in preflight: {detail}")
                    raise ChainTransactionError(detail) from e
                last_error = e
                logger.warning(f"⚠️ Send attempt {attempt + 1}/{max_retries} error: {e}")

        raise ChainTransactionError(f"All send attempts failed: {last_error}")

    async def confirm_transaction(self, signature: str, timeout: Optional[float] = None) -> Dict:
        """
        Wait until the transaction reaches `confirmed`

        Raises:
            ChainTransactionError: on-chain error or timeout
        """
        timeout = self.confirmation_timeout if timeout is None else timeout
        logger.info(f"⏳ Waiting for confirmation of {signature[:16]}...")
        start_time = time.monotonic()

        while time.monotonic() - start_time < timeout:
            try:
                result = await self._rpc("getSignatureStatuses", [[signature], {"searchTransactionHistory": True}])
            except SolanaRpcError as e:
                logger.warning(f"⚠️ Status query failed, retrying: {e}")
                result = None

            status = (result or {}).get('value', [None])[0]
            if status is not None:
                if status.get('err'):
                    logger.error(f"❌ Transaction failed on-chain: {status['err']}")
                    raise ChainTransactionError(f"Transaction failed on-chain: {status['err']}", tx_id=signature)
                if status.get('confirmationStatus') in ("confirmed", "finalized"):
                    logger.info(f"✅ Transaction confirmed! (status: {status['confirmationStatus']})")
                    logger.info(f"   View on Solscan: https://solscan.io/tx/{signature}?cluster=devnet")
                    return status

            await self.sleep(0.5)

        logger.error(f"⏰ Confirmation timeout after {timeout}s")
        raise ChainTransactionError(
            f"Transaction {signature} not confirmed after {timeout}s",
            tx_id=signature,
            timed_out=True,
        )

    def _compute_budget_instructions(self, compute_unit_limit: Optional[int]) -> List[Instruction]:
        instructions = []
        if compute_unit_limit:
            instructions.append(set_compute_unit_limit(compute_unit_limit))
        if self.priority_fee_microlamports:
            instructions.append(set_compute_unit_price(self.priority_fee_microlamports))
        return instructions

    async def build_and_sign(
        self,
        instructions: Sequence[Instruction],
        extra_signers: Sequence[Keypair] = (),
        compute_unit_limit: Optional[int] = None,
        compute_budget: bool = True,
    ) -> bytes:
        """
        Legacy transaction paid and signed by the wallet plus `extra_signers`

        `compute_budget=False` keeps `instructions` at their own indices, which
        native programs addressing sibling instructions rely on
        """
        blockhash = await self.get_recent_blockhash()
        budget = self._compute_budget_instructions(compute_unit_limit) if compute_budget else []
        all_instructions = budget + list(instructions)
        message = Message.new_with_blockhash(all_instructions, self.owner, blockhash)
        transaction = Transaction([self.keypair, *extra_signers], message, blockhash)
        return bytes(transaction)

    async def send_and_confirm(
        self,
        instructions: Sequence[Instruction],
        extra_signers: Sequence[Keypair] = (),
        compute_unit_limit: Optional[int] = None,
        compute_budget: bool = True,
    ) -> str:
        signed = await self.build_and_sign(instructions, extra_signers, compute_unit_limit, compute_budget)
        signature = await self.send_transaction(signed)
        await self.confirm_transaction(signature)
        return signature

    async def sign_and_send_versioned(self, serialized: bytes) -> str:
        """Re-sign a versioned transaction built by a third party and broadcast it"""
        try:
            transaction = VersionedTransaction.from_bytes(serialized)
        except ValueError as e:
            raise ChainTransactionError(f"Malformed versioned transaction: {e}") from e
        signed = VersionedTransaction(transaction.message, [self.keypair])
        return await self.send_transaction(bytes(signed))

    async def close(self):
        await self.client.aclose()
