"""
Bridge Orchestrator

Moves native ETH between Sepolia and Ithaca for one wallet:
- Sizes a random amount within the configured range, capped at 90% of balance
- Requests a route from the quote service and validates the first result
- Builds, signs and submits the initiating transaction on the source chain
- Optionally polls the destination chain until funds arrive or time runs out
- Retries retryable failures per direction with exponential backoff

Each direction is independent: a failure in one never prevents the other.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple

import structlog

from ..config.settings import AutomationConfig, BridgeDirectionConfig
from ..execution.transaction_builder import SubmissionStatus, TransactionBuilder
from ..gas.gas_manager import GasManager
from ..utils.metrics import BRIDGE_OUTCOMES
from .chain_account import ChainAccount
from .chain_connector import ChainClient
from .quote_service import (
    DEFAULT_DESTINATION_GAS_PRICE,
    DEFAULT_SOURCE_GAS_PRICE,
    BridgeRoute,
    QuoteRequest,
    RouteQuoteService,
)
from .retry_policy import RetryPolicy, RetryState, run_with_retry
from .run_context import RunContext
from .types import (
    InsufficientFundsError,
    InvalidKeyError,
    InvalidRouteError,
    OperationResult,
    OperationStatus,
    QuoteRejectedError,
    QuoteUnavailableError,
    RpcUnavailableError,
    ShutdownRequested,
)
from .units import ether_to_wei, floor_to_quantum, format_ether, round_to_quantum

logger = structlog.get_logger(__name__)

# Orchestration-level backoff: 2s, 4s, 8s, ...
ORCHESTRATION_BASE_WAIT = 2.0

# Share of the balance that may be bridged, as a fraction
BALANCE_CAP_NUM = 9
BALANCE_CAP_DEN = 10


class BridgeStage(Enum):
    """Progress of one bridge attempt"""
    IDLE = "idle"
    ROUTE_REQUESTED = "route_requested"
    ROUTE_SELECTED = "route_selected"
    TX_BUILT = "tx_built"
    TX_SUBMITTED = "tx_submitted"
    CONFIRMATION_POLLING = "confirmation_polling"
    DONE = "done"
    FAILED = "failed"


class FailureReason(Enum):
    NO_ROUTE = "no_route"
    INVALID_ROUTE = "invalid_route"
    QUOTE_UNAVAILABLE = "quote_unavailable"
    QUOTE_REJECTED = "quote_rejected"
    SUBMISSION_FAILED = "submission_failed"
    REVERTED = "reverted"
    RPC_UNAVAILABLE = "rpc_unavailable"
    INVALID_KEY = "invalid_key"


RETRYABLE_REASONS = frozenset({
    FailureReason.QUOTE_UNAVAILABLE,
    FailureReason.SUBMISSION_FAILED,
    FailureReason.REVERTED,
    FailureReason.RPC_UNAVAILABLE,
})


@dataclass(frozen=True)
class BridgeDirection:
    """A configured bridge direction between two chain keys"""
    name: str
    source: str
    destination: str


SEPOLIA_TO_ITHACA = BridgeDirection('sepolia_to_ithaca', 'sepolia', 'ithaca')
ITHACA_TO_SEPOLIA = BridgeDirection('ithaca_to_sepolia', 'ithaca', 'sepolia')
DIRECTIONS: Tuple[BridgeDirection, ...] = (SEPOLIA_TO_ITHACA, ITHACA_TO_SEPOLIA)


@dataclass
class DirectionOutcome:
    """Result of one direction, including every stage reached"""
    direction: str
    status: OperationStatus
    stage: BridgeStage
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    tx_hash: Optional[str] = None
    amount_wei: int = 0
    confirmed: Optional[bool] = None
    attempts: int = 0
    stages: List[BridgeStage] = field(default_factory=list)

    @property
    def retryable(self) -> bool:
        return self.status == OperationStatus.FAILED and self.reason in RETRYABLE_REASONS


def size_bridge_amount(balance: int, settings: BridgeDirectionConfig, rng: random.Random) -> int:
    """Random bridge amount in wei for a source ``balance``

    Uniform in ``[min_amount, max_amount]`` rounded to 5 decimals, then
    limited to 90% of the balance rounded down to 5 decimals.
    """
    min_wei = ether_to_wei(settings.min_amount)
    max_wei = ether_to_wei(settings.max_amount)
    amount = round_to_quantum(rng.randint(min_wei, max_wei))
    cap = floor_to_quantum(balance * BALANCE_CAP_NUM // BALANCE_CAP_DEN)
    return min(amount, cap)


def summarize_outcomes(outcomes: Sequence[DirectionOutcome]) -> OperationResult:
    """Collapse per-direction outcomes into one operation result"""
    attempts = sum(o.attempts for o in outcomes)
    failed = [o for o in outcomes if o.status == OperationStatus.FAILED]
    if failed:
        reasons = ", ".join(f"{o.direction}: {o.reason.value if o.reason else 'error'}" for o in failed)
        return OperationResult(OperationStatus.FAILED, reason=reasons, attempts=attempts)
    completed = [o for o in outcomes if o.status == OperationStatus.COMPLETED]
    if completed:
        return OperationResult(OperationStatus.COMPLETED, tx_hash=completed[-1].tx_hash, attempts=attempts)
    return OperationResult(OperationStatus.SKIPPED, reason="nothing to bridge", attempts=attempts)


class BridgeOrchestrator:
    """Runs the configured bridge directions for one wallet at a time"""

    def __init__(
        self,
        clients: Mapping[str, ChainClient],
        quote_service: RouteQuoteService,
        config: AutomationConfig,
        ctx: Optional[RunContext] = None,
        builders: Optional[Mapping[str, TransactionBuilder]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.clients = dict(clients)
        self.quote_service = quote_service
        self.config = config
        self.settings = config.bridge
        self.ctx = ctx or RunContext()
        self.builders = dict(builders) if builders else {
            name: TransactionBuilder(client, receipt_timeout=config.receipt_timeout)
            for name, client in self.clients.items()
        }
        self.gas_managers = {
            name: GasManager(client, self.settings.gas_price_multiplier)
            for name, client in self.clients.items()
        }
        self.rng = rng or random.Random()
        self.retry_policy = RetryPolicy(base_wait=ORCHESTRATION_BASE_WAIT, jitter=False)

    async def execute_bridge_operations(self, private_key: str) -> List[DirectionOutcome]:
        """Run every direction in order, isolated from each other"""
        outcomes = []
        for direction in DIRECTIONS:
            with structlog.contextvars.bound_contextvars(direction=direction.name):
                try:
                    outcome = await self.bridge_direction(direction, private_key)
                except ShutdownRequested:
                    raise
                except Exception as e:
                    logger.error("Bridge direction crashed", error=f"{type(e).__name__}: {e}")
                    outcome = DirectionOutcome(direction.name, OperationStatus.FAILED, BridgeStage.FAILED,
                                               detail=f"{type(e).__name__}: {e}",
                                               stages=[BridgeStage.FAILED])
            BRIDGE_OUTCOMES.labels(direction=direction.name, status=outcome.status.value).inc()
            outcomes.append(outcome)
        return outcomes

    async def execute(self, private_key: str) -> OperationResult:
        return summarize_outcomes(await self.execute_bridge_operations(private_key))

    async def bridge_direction(self, direction: BridgeDirection, private_key: str) -> DirectionOutcome:
        """Run one direction with up to ``bridge.max_retries`` attempts"""
        if not self.settings.is_enabled(direction.name):
            logger.info("Bridge direction disabled in config")
            return DirectionOutcome(direction.name, OperationStatus.SKIPPED, BridgeStage.IDLE,
                                    detail="disabled", stages=[BridgeStage.IDLE])

        try:
            account = ChainAccount.from_private_key(private_key, self.clients[direction.source].spec)
        except InvalidKeyError as e:
            logger.error("Cannot derive bridge account", error=str(e))
            return DirectionOutcome(direction.name, OperationStatus.FAILED, BridgeStage.FAILED,
                                    reason=FailureReason.INVALID_KEY, detail=str(e),
                                    stages=[BridgeStage.IDLE, BridgeStage.FAILED])

        async def _attempt(state: RetryState) -> DirectionOutcome:
            logger.info("Bridge attempt", attempt=f"{state.attempts}/{self.settings.max_retries}")
            outcome = await self._attempt_direction(direction, account)
            if outcome.status == OperationStatus.FAILED:
                state.last_error = outcome.reason.value if outcome.reason else outcome.detail
            return outcome

        result = await run_with_retry(
            _attempt,
            self.retry_policy,
            self.settings.max_retries,
            sleep=self.ctx.sleep,
            retry_on_result=lambda o: o.retryable,
            label=f"bridge {direction.name}",
        )
        outcome = result.last_value
        outcome.attempts = result.state.attempts
        if outcome.status == OperationStatus.FAILED:
            logger.error("Bridge failed", attempts=outcome.attempts, reason=outcome.reason.value,
                         stage=outcome.stages[-2].value if len(outcome.stages) > 1 else None,
                         detail=outcome.detail)
        return outcome

    async def _gas_price_hints(self, direction: BridgeDirection) -> Tuple[int, int]:
        hints = []
        for chain, default in ((direction.source, DEFAULT_SOURCE_GAS_PRICE),
                               (direction.destination, DEFAULT_DESTINATION_GAS_PRICE)):
            try:
                hints.append(await self.clients[chain].get_gas_price())
            except RpcUnavailableError:
                logger.warning("Could not get gas price, using default value", chain=chain, default=default)
                hints.append(default)
        return hints[0], hints[1]

    async def _attempt_direction(self, direction: BridgeDirection, account: ChainAccount) -> DirectionOutcome:
        source = self.clients[direction.source]
        destination = self.clients[direction.destination]
        builder = self.builders[direction.source]
        settings = self.settings.direction(direction.name)
        stages = [BridgeStage.IDLE]

        def finish(status: OperationStatus, reason: Optional[FailureReason] = None, **kwargs) -> DirectionOutcome:
            stage = BridgeStage.FAILED if status == OperationStatus.FAILED else stages[-1]
            if status == OperationStatus.FAILED:
                stages.append(BridgeStage.FAILED)
            return DirectionOutcome(direction.name, status, stage, reason=reason, stages=list(stages), **kwargs)

        amount = 0
        try:
            balance = await source.get_balance(account.address)
            logger.info("Source balance", chain=source.spec.name, balance=format_ether(balance))
            if balance == 0:
                logger.warning("No ETH to bridge", chain=source.spec.name)
                return finish(OperationStatus.SKIPPED, detail="zero balance")

            amount = size_bridge_amount(balance, settings, self.rng)
            if amount <= 0:
                logger.warning("Bridge amount too small")
                return finish(OperationStatus.SKIPPED, detail="amount too small")
            logger.info("Will bridge", amount=format_ether(amount))

            stages.append(BridgeStage.ROUTE_REQUESTED)
            from_gas_price, to_gas_price = await self._gas_price_hints(direction)
            routes = await self.quote_service.fetch_routes(QuoteRequest(
                from_chain_id=source.chain_id,
                to_chain_id=destination.chain_id,
                amount=amount,
                sender=account.address,
                from_gas_price=from_gas_price,
                to_gas_price=to_gas_price,
            ))
            if not routes:
                logger.error("No valid bridge routes found")
                return finish(OperationStatus.FAILED, FailureReason.NO_ROUTE, amount_wei=amount)
            route = BridgeRoute.from_quote(routes[0], source.chain_id)
            stages.append(BridgeStage.ROUTE_SELECTED)

            gas_price = await self.gas_managers[direction.source].adjusted_gas_price()
            request = await builder.build(account, route.to, route.value, data=route.data,
                                          gas_price=gas_price, balance=balance)
            stages.append(BridgeStage.TX_BUILT)
            logger.info("Sending bridge transaction", contract=route.to, gas=request.gas)

            submission = await builder.submit(account, request)
            stages.append(BridgeStage.TX_SUBMITTED)
        except ShutdownRequested:
            raise
        except InsufficientFundsError as e:
            logger.warning("Insufficient funds for bridge", error=str(e))
            return finish(OperationStatus.SKIPPED, detail="insufficient funds", amount_wei=amount)
        except QuoteUnavailableError as e:
            return finish(OperationStatus.FAILED, FailureReason.QUOTE_UNAVAILABLE, detail=str(e), amount_wei=amount)
        except QuoteRejectedError as e:
            return finish(OperationStatus.FAILED, FailureReason.QUOTE_REJECTED, detail=str(e), amount_wei=amount)
        except InvalidRouteError as e:
            logger.error("Invalid bridge route", error=str(e))
            return finish(OperationStatus.FAILED, FailureReason.INVALID_ROUTE, detail=str(e), amount_wei=amount)
        except RpcUnavailableError as e:
            return finish(OperationStatus.FAILED, FailureReason.RPC_UNAVAILABLE, detail=str(e), amount_wei=amount)
        except Exception as e:
            logger.error("Bridge transaction failed", error=f"{type(e).__name__}: {e}")
            return finish(OperationStatus.FAILED, FailureReason.SUBMISSION_FAILED, detail=str(e), amount_wei=amount)

        if submission.status == SubmissionStatus.REVERTED:
            logger.error("Bridge transaction reverted", tx_hash=submission.tx_hash, explorer=submission.explorer_url)
            return finish(OperationStatus.FAILED, FailureReason.REVERTED, tx_hash=submission.tx_hash,
                          amount_wei=amount)
        logger.info("Bridge transaction sent", tx_hash=submission.tx_hash, explorer=submission.explorer_url)

        confirmed = None
        if settings.wait_for_confirmation:
            stages.append(BridgeStage.CONFIRMATION_POLLING)
            confirmed = await self.wait_for_arrival(destination, account.address, settings.max_wait_seconds)

        stages.append(BridgeStage.DONE)
        logger.info("Bridge completed", status="success", amount=format_ether(amount), confirmed=confirmed)
        return finish(OperationStatus.COMPLETED, tx_hash=submission.tx_hash, amount_wei=amount, confirmed=confirmed)

    async def wait_for_arrival(self, destination: ChainClient, address: str, max_wait: float) -> bool:
        """Poll the destination balance until it is positive or ``max_wait`` seconds pass

        Returns:
            True if funds arrived, False on timeout
        """
        logger.info("Waiting for bridge confirmation", chain=destination.spec.name, max_wait=max_wait)
        interval = self.config.confirmation_poll_interval
        start = self.ctx.clock()
        while self.ctx.clock() - start < max_wait:
            try:
                balance = await destination.get_balance(address)
            except ShutdownRequested:
                raise
            except Exception as e:
                logger.warning("Could not read destination balance", error=f"{type(e).__name__}: {e}")
                balance = 0
            if balance > 0:
                logger.info("ETH received", chain=destination.spec.name, balance=format_ether(balance))
                return True
            logger.info("No ETH received yet, waiting", retry_in=f"{interval:.0f}s")
            await self.ctx.sleep(interval)
        logger.warning("Timed out waiting for bridge confirmation. The funds may arrive later.")
        return False
