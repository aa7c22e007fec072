"""
Component wiring for one automation cycle

Builds the chain clients, HTTP client, quote service, transaction builders
and the two built-in wallet operations from one AutomationConfig. The
Ithaca builder is shared between the self-transfer and the bridge so nonces
stay strictly increasing across both.
"""

import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import structlog

from ..config.environment import EnvironmentManager
from ..config.settings import AutomationConfig
from ..core.bridge_orchestrator import BridgeOrchestrator
from ..core.chain_account import ChainAccount
from ..core.chain_connector import ChainConnector
from ..core.proxy_pool import ProxyPool
from ..core.quote_service import RouteQuoteService, SuperbridgeQuoteService
from ..core.request_client import ResilientRequestClient
from ..core.retry_policy import RetryPolicy
from ..core.run_context import RunContext
from ..core.types import OperationResult
from ..execution.transaction_builder import TransactionBuilder
from ..execution.transfer_manager import TransferManager
from ..gas.gas_manager import GasManager

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WalletContext:
    """What an operation knows about the wallet being processed"""
    index: int
    total: int
    address: str
    config: AutomationConfig
    private_key: str = field(repr=False)

    @property
    def label(self) -> str:
        return f"{self.index}/{self.total}"


@dataclass(frozen=True)
class WalletOperation:
    """Named per-wallet step such as ``transfer`` or an external NFT mint"""
    name: str
    run: Callable[[WalletContext], Awaitable[OperationResult]]


class AutomationServices:
    """Transfer and bridge components sharing one set of clients"""

    def __init__(
        self,
        config: AutomationConfig,
        ctx: RunContext,
        proxy_pool: Optional[ProxyPool] = None,
        env: Optional[EnvironmentManager] = None,
        quote_service: Optional[RouteQuoteService] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.connector = ChainConnector(config, env, sleep=ctx.sleep, clock=ctx.clock)
        self.ithaca = self.connector.get_client('ithaca')
        self.sepolia = self.connector.get_client('sepolia')

        self.http = ResilientRequestClient(
            proxy_pool=proxy_pool,
            policy=RetryPolicy(base_wait=config.base_wait_time),
            max_retries=config.max_retries,
            timeout=config.request_timeout,
            sleep=ctx.sleep,
        )
        self.quote_service = quote_service or SuperbridgeQuoteService(self.http)

        self.builders = {
            'ithaca': TransactionBuilder(
                self.ithaca,
                GasManager(self.ithaca, config.gas_price_multiplier),
                receipt_timeout=config.receipt_timeout,
            ),
            'sepolia': TransactionBuilder(
                self.sepolia,
                GasManager(self.sepolia, config.gas_price_multiplier),
                receipt_timeout=config.receipt_timeout,
            ),
        }
        self.transfer_manager = TransferManager(self.builders['ithaca'], config, sleep=ctx.sleep)
        self.orchestrator = BridgeOrchestrator(
            {'sepolia': self.sepolia, 'ithaca': self.ithaca},
            self.quote_service,
            config,
            ctx=ctx,
            builders=self.builders,
            rng=rng,
        )

    def operations(self) -> List[WalletOperation]:
        return [
            WalletOperation('transfer', self.run_transfer),
            WalletOperation('bridge', self.run_bridge),
        ]

    async def run_transfer(self, wallet: WalletContext) -> OperationResult:
        account = ChainAccount.from_private_key(wallet.private_key, self.ithaca.spec)
        return await self.transfer_manager.execute(account)

    async def run_bridge(self, wallet: WalletContext) -> OperationResult:
        return await self.orchestrator.execute(wallet.private_key)

    async def close(self) -> None:
        await self.http.close()
        await self.connector.close()
