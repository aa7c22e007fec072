"""
Wallet Cycle Runner

Drives the automation loop:
- Reloads settings and the key list at the start of every cycle
- Processes wallets strictly one after another with random pacing
- Isolates every operation so one failure never stops the others
- Waits out the inter-cycle cooldown, then starts over until stopped
"""

import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import structlog

from ..config.chain_specs import ITHACA
from ..config.loader import load_config
from ..config.settings import AutomationConfig
from ..core.chain_account import ChainAccount
from ..core.run_context import RunContext
from ..core.types import InvalidKeyError, OperationResult, OperationStatus, ShutdownRequested
from ..utils.logging_config import stage_context, wallet_context
from ..utils.metrics import WALLET_OPERATIONS
from .automation_services import WalletContext, WalletOperation

logger = structlog.get_logger(__name__)


class CycleServices(Protocol):
    def operations(self) -> Sequence[WalletOperation]:
        ...

    async def close(self) -> None:
        ...


@dataclass
class WalletReport:
    """Per-wallet results of one cycle"""
    index: int
    address: Optional[str]
    results: Dict[str, OperationResult] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results.values())


class WalletCycleRunner:
    """Sequential per-wallet processing in timed cycles"""

    def __init__(
        self,
        ctx: RunContext,
        services_factory: Callable[[AutomationConfig], CycleServices],
        keys_loader: Callable[[], List[str]],
        config_loader: Callable[[], AutomationConfig] = load_config,
        extra_operations: Sequence[WalletOperation] = (),
        cooldown: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
        on_cycle_end: Optional[Callable[[int, List['WalletReport']], None]] = None,
    ):
        self.ctx = ctx
        self.services_factory = services_factory
        self.keys_loader = keys_loader
        self.config_loader = config_loader
        self.extra_operations = list(extra_operations)
        self.cooldown = cooldown or ctx.sleep
        self.rng = rng or random.Random()
        self.on_cycle_end = on_cycle_end

        self.cycle = 0
        self.wallet_index = 0
        self.config: Optional[AutomationConfig] = None

    async def run_forever(self) -> None:
        """Run cycles until the run context is stopped

        Raises:
            ShutdownRequested: when a stop is requested
            ConfigError, KeyFileError: when inputs cannot be loaded
        """
        while True:
            self.ctx.check()
            await self.run_cycle()
            cooldown_seconds = self.config.cycle_cooldown_hours * 3600
            logger.info("Cycle completed", cycle=self.cycle, next_cycle_in_hours=self.config.cycle_cooldown_hours)
            await self.cooldown(cooldown_seconds)

    async def run_cycle(self) -> List[WalletReport]:
        """Process every wallet once"""
        self.cycle += 1
        self.config = self.config_loader()
        keys = self.keys_loader()
        total = len(keys)
        logger.info("Starting cycle", cycle=self.cycle, wallets=total)

        services = self.services_factory(self.config)
        operations = list(services.operations()) + self.extra_operations
        reports: List[WalletReport] = []
        try:
            for index, private_key in enumerate(keys, start=1):
                self.wallet_index = index
                with wallet_context(f"{index}/{total}"):
                    reports.append(await self.process_wallet(index, total, private_key, operations))
                    if index < total:
                        delay = self.rng.randint(*self.config.wallet_delay)
                        logger.info("Waiting before next wallet", seconds=delay)
                        await self.ctx.sleep(delay)
        finally:
            await services.close()

        succeeded = sum(1 for r in reports if r.success)
        logger.info("Cycle summary", cycle=self.cycle, succeeded=succeeded, failed=total - succeeded)
        if self.on_cycle_end:
            self.on_cycle_end(self.cycle, reports)
        return reports

    async def process_wallet(
        self,
        index: int,
        total: int,
        private_key: str,
        operations: Sequence[WalletOperation],
    ) -> WalletReport:
        """Run ``operations`` for one wallet; an invalid key skips them all"""
        try:
            address = ChainAccount.from_private_key(private_key, ITHACA).address
        except InvalidKeyError as e:
            logger.error("Invalid private key, skipping wallet", error=str(e))
            return WalletReport(index=index, address=None, error=str(e))

        logger.info("Processing wallet", address=address)
        wallet = WalletContext(index=index, total=total, address=address,
                               config=self.config, private_key=private_key)
        report = WalletReport(index=index, address=address)
        for operation in operations:
            with stage_context(operation.name):
                result = await self._run_isolated(operation, wallet)
            WALLET_OPERATIONS.labels(operation=operation.name, status=result.status.value).inc()
            report.results[operation.name] = result
        return report

    async def _run_isolated(self, operation: WalletOperation, wallet: WalletContext) -> OperationResult:
        try:
            return await operation.run(wallet)
        except ShutdownRequested:
            raise
        except Exception as e:
            logger.error("Operation failed", operation=operation.name, error=f"{type(e).__name__}: {e}")
            return OperationResult(OperationStatus.FAILED, reason=str(e))
