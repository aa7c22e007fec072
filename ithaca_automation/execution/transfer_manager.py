"""
Self-transfer operation

Sends a share of the wallet's Ithaca balance back to itself, keeping the
gas cost out of the transferred amount.
"""

import asyncio
from typing import Awaitable, Callable

import structlog

from ..config.settings import AutomationConfig
from ..core.chain_account import ChainAccount
from ..core.retry_policy import RetryPolicy, RetryState, run_with_retry
from ..core.types import (
    InsufficientFundsError,
    OperationResult,
    OperationStatus,
    ShutdownRequested,
)
from ..core.units import floor_to_quantum, format_ether
from ..gas.gas_manager import INTRINSIC_TRANSFER_GAS
from .transaction_builder import SubmissionStatus, TransactionBuilder

logger = structlog.get_logger(__name__)


def transfer_amount(balance: int, percentage: int, gas_price: int) -> int:
    """Wei to send: ``percentage`` of ``balance`` minus transfer gas, floored to 5 decimals"""
    gas_cost = INTRINSIC_TRANSFER_GAS * gas_price
    return floor_to_quantum(balance * percentage // 100 - gas_cost)


class TransferManager:
    """Executes the self-transfer for one account per call"""

    def __init__(
        self,
        builder: TransactionBuilder,
        config: AutomationConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.builder = builder
        self.client = builder.client
        self.config = config
        self.policy = RetryPolicy(base_wait=config.base_wait_time)
        self._sleep = sleep

    async def execute(self, account: ChainAccount) -> OperationResult:
        """Run the self-transfer with up to ``max_retries`` attempts"""
        if not self.config.enable_transfer:
            logger.info("Transfer disabled, skipping")
            return OperationResult(OperationStatus.SKIPPED, reason="disabled")

        async def _attempt(state: RetryState) -> OperationResult:
            try:
                return await self._transfer_once(account)
            except ShutdownRequested:
                raise
            except InsufficientFundsError as e:
                logger.warning("Insufficient funds for transfer", error=str(e))
                return OperationResult(OperationStatus.SKIPPED, reason="insufficient funds")
            except Exception as e:
                state.last_error = f"{type(e).__name__}: {e}"
                return OperationResult(OperationStatus.FAILED, reason=str(e))

        outcome = await run_with_retry(
            _attempt,
            self.policy,
            self.config.max_retries,
            sleep=self._sleep,
            retry_on_result=lambda r: r.status == OperationStatus.FAILED,
            label="transfer",
        )
        result = outcome.last_value
        if result is None:
            result = OperationResult(OperationStatus.FAILED, reason=outcome.state.last_error)
        if result.status == OperationStatus.FAILED:
            logger.error("Transfer failed", attempts=outcome.state.attempts, reason=result.reason)
        return OperationResult(result.status, reason=result.reason, tx_hash=result.tx_hash,
                               attempts=outcome.state.attempts)

    async def _transfer_once(self, account: ChainAccount) -> OperationResult:
        balance = await self.client.get_balance(account.address)
        logger.info("Balance", address=account.address, balance=format_ether(balance))
        if balance == 0:
            return OperationResult(OperationStatus.SKIPPED, reason="zero balance")

        gas_price = await self.builder.gas_manager.adjusted_gas_price()
        amount = transfer_amount(balance, self.config.transfer_amount_percentage, gas_price)
        if amount <= 0:
            logger.warning("Balance too low to cover gas, skipping", balance=format_ether(balance))
            return OperationResult(OperationStatus.SKIPPED, reason="amount too small")

        logger.info("Sending self-transfer", amount=format_ether(amount),
                    percentage=self.config.transfer_amount_percentage)
        request = await self.builder.build(account, account.address, amount, gas_price=gas_price, balance=balance)
        submission = await self.builder.submit(account, request)

        if submission.status == SubmissionStatus.REVERTED:
            return OperationResult(OperationStatus.FAILED, reason="reverted", tx_hash=submission.tx_hash)
        logger.info("Transfer sent", status="success", tx_hash=submission.tx_hash,
                    explorer=submission.explorer_url, confirmed=submission.status == SubmissionStatus.CONFIRMED)
        reason = "receipt pending" if submission.status == SubmissionStatus.PENDING else None
        return OperationResult(OperationStatus.COMPLETED, reason=reason, tx_hash=submission.tx_hash)
