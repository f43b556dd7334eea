"""
Guardian Client
Polls the Wormhole guardian REST API for signed VAAs
"""
import asyncio
import base64
import binascii
import time
from typing import Callable, List, Optional

import httpx

from core.models.action_models import SequenceHandle, SignedApproval
from core.services.exceptions import AttestationTimeoutError, ConfigurationError
from infrastructure.logging.logger import get_logger
from .config import BridgeConfig

logger = get_logger(__name__)


class GuardianClient:
    """
    Read-only client for `/v1/signed_vaa/{chain}/{emitter}/{sequence}`

    Hosts are tried round-robin, one per attempt. A missing VAA (404), a
    server error or a transport error all mean "not yet available"
    """

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        attestation_timeout: float = BridgeConfig.ATTESTATION_TIMEOUT,
        initial_interval: float = BridgeConfig.POLL_INITIAL_INTERVAL,
        max_interval: float = BridgeConfig.POLL_MAX_INTERVAL,
        backoff_factor: float = BridgeConfig.POLL_BACKOFF_FACTOR,
        request_timeout: float = BridgeConfig.GUARDIAN_REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable = asyncio.sleep,
    ):
        hosts = BridgeConfig.GUARDIAN_RPC_HOSTS if hosts is None else hosts
        if not hosts:
            raise ConfigurationError("At least one guardian RPC host is required")
        self.hosts = [h.rstrip('/') for h in hosts]
        self.client = http_client or httpx.AsyncClient(timeout=request_timeout)
        self.attestation_timeout = attestation_timeout
        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.backoff_factor = backoff_factor
        self.request_timeout = request_timeout
        self.clock = clock
        self.sleep = sleep
        self._next_host = 0
        logger.info(f"🛡️ GuardianClient initialized with {len(self.hosts)} host(s)")

    def _pick_host(self) -> str:
        host = self.hosts[self._next_host % len(self.hosts)]
        self._next_host += 1
        return host

    async def fetch_signed_vaa(self, handle: SequenceHandle) -> Optional[bytes]:
        """One lookup attempt; None while the VAA is not available"""
        host = self._pick_host()
        url = f"{host}/v1/signed_vaa/{int(handle.chain)}/{handle.emitter_address}/{handle.sequence}"

        try:
            response = await self.client.get(url, timeout=self.request_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Guardian host {host} unreachable: {e}")
            return None

        if response.status_code == 404:
            logger.debug(f"   VAA {handle} not signed yet ({host})")
            return None
        if response.status_code >= 400:
            logger.warning(f"⚠️ Guardian host {host} returned {response.status_code} for {handle}")
            return None

        try:
            vaa_b64 = response.json().get('vaaBytes')
            if not vaa_b64:
                logger.warning(f"⚠️ Guardian response for {handle} has no vaaBytes")
                return None
            return base64.b64decode(vaa_b64)
        except (ValueError, AttributeError, binascii.Error) as e:
            logger.warning(f"⚠️ Malformed guardian response from {host}: {e}")
            return None

    async def await_approval(self, handle: SequenceHandle, timeout: Optional[float] = None) -> SignedApproval:
        """
        Poll until the guardians have signed the transfer

        The wait between attempts starts at `initial_interval` and grows by
        `backoff_factor` up to `max_interval`. The final sleep is clipped to the
        deadline, so the call returns no later than `timeout` plus one request.

        Raises:
            AttestationTimeoutError: if no VAA is available before the deadline
        """
        timeout = self.attestation_timeout if timeout is None else timeout
        started = self.clock()
        deadline = started + timeout
        delay = self.initial_interval
        attempt = 0

        logger.info(f"⏳ Waiting for guardian signatures on {handle} (timeout {timeout:.0f}s)")

        while True:
            attempt += 1
            vaa_bytes = await self.fetch_signed_vaa(handle)
            if vaa_bytes:
                elapsed = self.clock() - started
                logger.info(f"✅ VAA signed for {handle} after {elapsed:.1f}s ({attempt} attempt(s))")
                return SignedApproval(handle=handle, vaa_bytes=vaa_bytes)

            remaining = deadline - self.clock()
            if remaining <= 0:
                elapsed = self.clock() - started
                logger.error(f"⏰ No VAA for {handle} after {elapsed:.1f}s ({attempt} attempts)")
                raise AttestationTimeoutError(
                    f"Guardians did not sign {handle} within {timeout:.0f}s",
                    handle=handle,
                    elapsed=elapsed,
                )

            await self.sleep(min(delay, remaining))
            delay = min(delay * self.backoff_factor, self.max_interval)

    async def close(self):
        await self.client.aclose()
