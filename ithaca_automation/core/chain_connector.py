"""
Chain Connector

Thin async RPC client per chain. Read calls (balance, nonce, gas price,
receipts) are retried with backoff and raise RpcUnavailableError once
all attempts fail. Raw transaction submission is a single attempt.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from ..config.chain_specs import ChainSpec, get_chain_spec
from ..config.environment import EnvironmentManager
from ..config.settings import AutomationConfig
from .retry_policy import RetryPolicy, RetryState, run_with_retry
from .types import RpcUnavailableError

logger = structlog.get_logger(__name__)

RECEIPT_POLL_INTERVAL = 3.0


class ChainClient:
    """Retrying RPC access to one chain"""

    def __init__(
        self,
        spec: ChainSpec,
        policy: Optional[RetryPolicy] = None,
        max_retries: int = 5,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        web3: Optional[AsyncWeb3] = None,
    ):
        self.spec = spec
        self.policy = policy or RetryPolicy()
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._web3 = web3

    @property
    def chain_id(self) -> int:
        return self.spec.chain_id

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            provider = AsyncHTTPProvider(
                self.spec.rpc_url,
                request_kwargs={'timeout': aiohttp.ClientTimeout(total=self.timeout)},
                exception_retry_configuration=None,
            )
            self._web3 = AsyncWeb3(provider)
        return self._web3

    async def close(self) -> None:
        if self._web3 is not None:
            await self._web3.provider.disconnect()
            self._web3 = None

    async def _read(self, label: str, call: Callable[[], Awaitable[Any]]) -> Any:
        async def _attempt(state: RetryState) -> Any:
            return await call()

        outcome = await run_with_retry(
            _attempt,
            self.policy,
            self.max_retries,
            sleep=self._sleep,
            label=f"{self.spec.name} {label}",
        )
        if not outcome.success:
            raise RpcUnavailableError(f"{self.spec.name} {label} failed: {outcome.state.last_error}")
        return outcome.value

    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in wei"""
        return await self._read("get_balance", lambda: self.web3.eth.get_balance(address))

    async def get_nonce(self, address: str) -> int:
        """Next nonce including pending transactions"""
        return await self._read(
            "get_transaction_count",
            lambda: self.web3.eth.get_transaction_count(address, 'pending'),
        )

    async def get_gas_price(self) -> int:
        return await self._read("gas_price", lambda: self.web3.eth.gas_price)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """Gas estimate for ``tx``; node rejections propagate unchanged"""
        return await self._read("estimate_gas", lambda: self.web3.eth.estimate_gas(tx))

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """Broadcast a signed transaction and return its 0x hash"""
        tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float,
                               poll_interval: float = RECEIPT_POLL_INTERVAL) -> Optional[Dict[str, Any]]:
        """Poll for the receipt of ``tx_hash``

        Returns:
            The receipt, or None if it did not appear within ``timeout`` seconds
        """
        deadline = self._clock() + timeout
        while True:
            try:
                receipt = await self._read(
                    "get_transaction_receipt",
                    lambda: self.web3.eth.get_transaction_receipt(tx_hash),
                )
                if receipt is not None:
                    return dict(receipt)
            except TransactionNotFound:
                pass
            if self._clock() >= deadline:
                logger.warning("Receipt not found before timeout", chain=self.spec.name,
                               tx_hash=tx_hash, timeout=timeout)
                return None
            await self._sleep(poll_interval)


class ChainConnector:
    """Creates and caches one ChainClient per chain"""

    def __init__(
        self,
        config: AutomationConfig,
        env: Optional[EnvironmentManager] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.env = env
        self._sleep = sleep
        self._clock = clock
        self._clients: Dict[str, ChainClient] = {}

    def get_client(self, chain_name: str) -> ChainClient:
        """Get client for specified chain

        Raises:
            KeyError: If the chain is unknown
        """
        if chain_name not in self._clients:
            spec = get_chain_spec(chain_name, self.env)
            self._clients[chain_name] = ChainClient(
                spec,
                policy=RetryPolicy(base_wait=self.config.base_wait_time),
                max_retries=self.config.max_retries,
                timeout=self.config.request_timeout,
                sleep=self._sleep,
                clock=self._clock,
            )
            logger.debug("Created chain client", chain=spec.name, rpc_url=spec.rpc_url)
        return self._clients[chain_name]

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
