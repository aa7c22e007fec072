"""Test utilities for mocking chain clients, HTTP sessions and time"""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

from ithaca_automation.config.chain_specs import ChainSpec
from ithaca_automation.core.chain_connector import ChainClient
from ithaca_automation.core.run_context import RunContext

# Well-known throwaway development keys
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SECOND_PRIVATE_KEY = "0x" + "11" * 32

ETHER = 10 ** 18
GWEI = 10 ** 9

TX_HASH = "0x" + "ab" * 32
BRIDGE_CONTRACT = "0x4200000000000000000000000000000000000010"


class FakeClock:
    """Manual clock advanced by FakeRunContext.sleep"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class FakeRunContext(RunContext):
    """RunContext whose sleeps return immediately and advance a fake clock"""

    def __init__(self, stop_after: Optional[int] = None):
        self.fake_clock = FakeClock()
        super().__init__(clock=self.fake_clock)
        self.sleeps: List[float] = []
        self.stop_after = stop_after

    async def sleep(self, seconds: float) -> None:
        self.check()
        self.sleeps.append(seconds)
        self.fake_clock.now += seconds
        if self.stop_after is not None and len(self.sleeps) >= self.stop_after:
            self.request_stop()
        self.check()


class SleepRecorder:
    """Awaitable sleep replacement recording requested delays"""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def create_mock_chain_client(
    spec: ChainSpec,
    balance: int = ETHER,
    nonce: int = 7,
    gas_price: int = 2 * GWEI,
    gas_estimate: int = 100000,
    tx_hash: str = TX_HASH,
    receipt_status: Optional[int] = 1,
) -> MagicMock:
    """Create a ChainClient mock with canned chain state"""
    client = MagicMock(spec=ChainClient)
    client.spec = spec
    client.chain_id = spec.chain_id
    client.get_balance = AsyncMock(return_value=balance)
    client.get_nonce = AsyncMock(return_value=nonce)
    client.get_gas_price = AsyncMock(return_value=gas_price)
    client.estimate_gas = AsyncMock(return_value=gas_estimate)
    client.send_raw_transaction = AsyncMock(return_value=tx_hash)
    receipt = None if receipt_status is None else {'status': receipt_status, 'transactionHash': tx_hash}
    client.wait_for_receipt = AsyncMock(return_value=receipt)
    client.close = AsyncMock()
    return client


def create_route_quote(chain_id: int, to: str = BRIDGE_CONTRACT, value: Any = 10 ** 14,
                       data: str = "0xdeadbeef") -> Dict[str, Any]:
    """Create one quote result as returned by the route service"""
    return {
        'id': 'route-1',
        'result': {
            'initiatingTransaction': {
                'to': to,
                'data': data,
                'value': str(value),
                'chainId': str(chain_id),
            }
        }
    }


class FakeResponse:
    """Minimal aiohttp response usable as an async context manager"""

    def __init__(self, status: int = 200, body: Any = None):
        self.status = status
        self._body = body if isinstance(body, str) else json.dumps(body or {})
        self.headers = {'content-type': 'application/json'}

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """aiohttp.ClientSession stand-in replaying scripted responses or errors"""

    def __init__(self, outcomes: List[Any]):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True
