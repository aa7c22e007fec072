import asyncio

import aiohttp
import pytest

from ithaca_automation.core.proxy_pool import ProxyPool
from ithaca_automation.core.request_client import ResilientRequestClient
from ithaca_automation.core.retry_policy import RetryPolicy
from tests.utils.test_utils import FakeResponse, FakeSession

URL = "https://api.example.test/routes"


def make_client(session, sleep, proxies=(), max_retries=5):
    return ResilientRequestClient(
        proxy_pool=ProxyPool(proxies),
        policy=RetryPolicy(base_wait=10),
        max_retries=max_retries,
        sleep=sleep,
        session=session,
    )


@pytest.mark.asyncio
async def test_success_on_first_attempt(sleep_recorder):
    session = FakeSession([FakeResponse(200, {"results": []})])
    client = make_client(session, sleep_recorder)

    result = await client.execute("POST", URL, json={"a": 1})

    assert result.success
    assert result.response.status == 200
    assert result.response.json() == {"results": []}
    assert result.attempts == 1
    assert sleep_recorder.calls == []
    assert session.calls[0]["json"] == {"a": 1}
    assert session.calls[0]["proxy"] is None


@pytest.mark.asyncio
async def test_definitive_error_status_returns_immediately(sleep_recorder):
    session = FakeSession([FakeResponse(400, {"error": "bad request"})])
    client = make_client(session, sleep_recorder)

    result = await client.execute("POST", URL)

    assert result.success
    assert result.response.status == 400
    assert not result.response.ok
    assert len(session.calls) == 1
    assert sleep_recorder.calls == []


@pytest.mark.asyncio
async def test_retryable_status_exhausts_retries(sleep_recorder):
    session = FakeSession([FakeResponse(503, "unavailable")])
    client = make_client(session, sleep_recorder, max_retries=5)

    result = await client.execute("GET", URL)

    assert not result.success
    assert result.response is None
    assert result.state.attempts == 5
    assert result.state.last_status == 503
    assert len(session.calls) == 5
    assert len(sleep_recorder.calls) == 4
    for attempt, delay in enumerate(sleep_recorder.calls):
        base = min(300, 10 * 2 ** attempt)
        assert 0.5 * base <= delay < 1.5 * base


@pytest.mark.asyncio
async def test_recovers_after_network_errors(sleep_recorder):
    session = FakeSession([
        aiohttp.ServerDisconnectedError(),
        asyncio.TimeoutError(),
        FakeResponse(429, "slow down"),
        FakeResponse(200, {"ok": True}),
    ])
    client = make_client(session, sleep_recorder)

    result = await client.execute("GET", URL)

    assert result.success
    assert result.response.json() == {"ok": True}
    assert result.attempts == 4
    assert len(sleep_recorder.calls) == 3


@pytest.mark.asyncio
async def test_proxy_repicked_every_attempt(sleep_recorder):
    session = FakeSession([FakeResponse(502, ""), FakeResponse(502, ""), FakeResponse(200, {})])
    client = make_client(session, sleep_recorder, proxies=["10.0.0.1:1", "10.0.0.2:2"])

    result = await client.execute("GET", URL)

    assert result.success
    assert len(session.calls) == 3
    for call in session.calls:
        assert call["proxy"] in ("http://10.0.0.1:1", "http://10.0.0.2:2")
    assert result.state.proxy == session.calls[-1]["proxy"]


@pytest.mark.asyncio
async def test_unexpected_error_is_returned_not_raised(sleep_recorder):
    session = FakeSession([aiohttp.InvalidURL("not a url")])
    client = make_client(session, sleep_recorder)

    result = await client.execute("GET", "::bad::")

    assert not result.success
    assert result.response is None
    assert "InvalidURL" in result.state.last_error
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_close_closes_session(sleep_recorder):
    session = FakeSession([FakeResponse(200, {})])
    client = make_client(session, sleep_recorder)

    await client.close()

    assert session.closed
