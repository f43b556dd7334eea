"""
Guardian polling: round-robin hosts, bounded backoff, timeout
"""
import base64

import httpx
import pytest

from core.models.action_models import ChainId, SequenceHandle
from core.services.bridge.guardian_client import GuardianClient
from core.services.exceptions import AttestationTimeoutError, ConfigurationError
from tests.fixtures.mocks import EMITTER_HEX

HANDLE = SequenceHandle(ChainId.ETHEREUM, EMITTER_HEX, 1234)
VAA = b"\x01signed-vaa-bytes"


def vaa_response() -> httpx.Response:
    return httpx.Response(200, json={"vaaBytes": base64.b64encode(VAA).decode()})


def make_client(handler, fake_clock, hosts=("https://g1.test",), **kwargs) -> GuardianClient:
    return GuardianClient(
        list(hosts),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=fake_clock,
        sleep=fake_clock.sleep,
        **kwargs,
    )


async def test_fetch_builds_lookup_url(fake_clock):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return vaa_response()

    client = make_client(handler, fake_clock)
    assert await client.fetch_signed_vaa(HANDLE) == VAA
    assert seen == [f"https://g1.test/v1/signed_vaa/2/{EMITTER_HEX}/1234"]


async def test_not_found_is_not_yet_available(fake_clock):
    client = make_client(lambda request: httpx.Response(404, json={"code": 5}), fake_clock)
    assert await client.fetch_signed_vaa(HANDLE) is None


async def test_hosts_round_robin_and_errors_are_transient(fake_clock):
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "g1.test":
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.host == "g2.test":
            return httpx.Response(503)
        return vaa_response()

    client = make_client(handler, fake_clock, hosts=("https://g1.test", "https://g2.test/", "https://g3.test"))
    approval = await client.await_approval(HANDLE, timeout=60)

    assert approval.vaa_bytes == VAA
    assert approval.handle == HANDLE
    assert seen == ["g1.test", "g2.test", "g3.test"]


async def test_backoff_grows_to_max_interval(fake_clock):
    calls = []

    def handler(request):
        calls.append(fake_clock.now)
        if len(calls) < 6:
            return httpx.Response(404)
        return vaa_response()

    client = make_client(handler, fake_clock, initial_interval=1, backoff_factor=2, max_interval=5)
    await client.await_approval(HANDLE, timeout=100)

    assert fake_clock.sleeps == [1, 2, 4, 5, 5]


async def test_timeout_is_bounded(fake_clock):
    client = make_client(
        lambda request: httpx.Response(404),
        fake_clock,
        initial_interval=1,
        backoff_factor=2,
        max_interval=4,
    )
    started = fake_clock.now

    with pytest.raises(AttestationTimeoutError) as exc_info:
        await client.await_approval(HANDLE, timeout=10)

    # last sleep is clipped to the deadline
    assert fake_clock.sleeps == [1, 2, 4, 3]
    assert fake_clock.now - started <= 10 + client.max_interval
    assert exc_info.value.handle == HANDLE
    assert exc_info.value.elapsed == pytest.approx(10)


async def test_zero_timeout_tries_once(fake_clock):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client = make_client(handler, fake_clock)
    with pytest.raises(AttestationTimeoutError):
        await client.await_approval(HANDLE, timeout=0)
    assert len(calls) == 1
    assert fake_clock.sleeps == []


async def test_malformed_body_is_not_yet_available(fake_clock):
    client = make_client(lambda request: httpx.Response(200, json={"unexpected": True}), fake_clock)
    assert await client.fetch_signed_vaa(HANDLE) is None


def test_requires_hosts():
    with pytest.raises(ConfigurationError):
        GuardianClient([])
