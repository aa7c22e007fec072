"""
Transaction Builder

Builds, signs and submits legacy transactions:
- Nonce read from the pending pool before every build, never cached
- Gas price from the network with the configured multiplier applied
- Gas limit of 21000 for plain transfers, estimate plus 50% otherwise
- Balance check against value plus maximum gas cost
- Receipt wait bounded by a timeout
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from web3 import Web3

from ..core.chain_account import ChainAccount
from ..core.chain_connector import ChainClient
from ..core.types import InsufficientFundsError, ShutdownRequested, TransactionRequest
from ..gas.gas_manager import GasManager

logger = structlog.get_logger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 180.0


class SubmissionStatus(Enum):
    """State of a broadcast transaction"""
    CONFIRMED = "confirmed"
    PENDING = "pending"      # broadcast, receipt not seen in time
    REVERTED = "reverted"


@dataclass(frozen=True)
class SubmissionResult:
    """Result of broadcasting one transaction"""
    tx_hash: str
    status: SubmissionStatus
    explorer_url: str
    receipt: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return self.status != SubmissionStatus.REVERTED


def is_insufficient_funds(error: BaseException) -> bool:
    return 'insufficient funds' in str(error).lower()


class TransactionBuilder:
    """Builds and submits transactions on one chain

    Keeps a per-sender nonce floor so that sequential submissions from the
    same account get strictly increasing nonces even when the node's pending
    count lags behind.
    """

    def __init__(
        self,
        client: ChainClient,
        gas_manager: Optional[GasManager] = None,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.client = client
        self.gas_manager = gas_manager or GasManager(client)
        self.receipt_timeout = receipt_timeout
        self._nonce_floor: Dict[str, int] = {}

    async def next_nonce(self, address: str) -> int:
        chain_nonce = await self.client.get_nonce(address)
        return max(chain_nonce, self._nonce_floor.get(address, 0))

    async def build(
        self,
        account: ChainAccount,
        to: str,
        value: int,
        data: Optional[str] = None,
        gas_price: Optional[int] = None,
        balance: Optional[int] = None,
    ) -> TransactionRequest:
        """Build a fully specified transaction for ``account``

        Args:
            account: Sending account; must belong to this builder's chain
            to: Recipient address
            value: Amount in wei
            data: Call data; None or '0x' for a plain transfer
            gas_price: Final gas price in wei; network price times multiplier if None
            balance: Sender balance in wei; skips the funds check if None

        Raises:
            InsufficientFundsError: if ``balance`` does not cover value plus gas
            RpcUnavailableError: if a chain read exhausted its retries
        """
        if account.chain.chain_id != self.client.chain_id:
            raise ValueError(f"account is bound to chain {account.chain.chain_id}, not {self.client.chain_id}")

        data = data or '0x'
        to = Web3.to_checksum_address(to)
        nonce = await self.next_nonce(account.address)
        if gas_price is None:
            gas_price = await self.gas_manager.adjusted_gas_price()
        gas = await self.gas_manager.gas_limit(
            {'from': account.address, 'to': to, 'value': value, 'data': data},
            data,
        )

        request = TransactionRequest(
            from_address=account.address,
            to=to,
            value=value,
            gas=gas,
            gas_price=gas_price,
            nonce=nonce,
            chain_id=self.client.chain_id,
            data=data,
        )
        if balance is not None and balance < request.max_cost:
            raise InsufficientFundsError(
                f"balance {balance} does not cover value {value} plus gas {gas * gas_price}"
            )
        logger.debug("Transaction built", chain=self.client.spec.name, nonce=nonce, gas=gas, gas_price=gas_price)
        return request

    async def submit(self, account: ChainAccount, request: TransactionRequest) -> SubmissionResult:
        """Sign and broadcast ``request`` once, then wait for its receipt

        Raises:
            InsufficientFundsError: if the node rejects the transaction for funds
            Exception: any other broadcast error, unchanged
        """
        signed = account.sign(request)
        try:
            tx_hash = await self.client.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            if is_insufficient_funds(e):
                raise InsufficientFundsError(str(e)) from e
            raise

        self._nonce_floor[account.address] = request.nonce + 1
        explorer_url = self.client.spec.tx_url(tx_hash)
        logger.info("Transaction sent", chain=self.client.spec.name, tx_hash=tx_hash, explorer=explorer_url)

        try:
            receipt = await self.client.wait_for_receipt(tx_hash, self.receipt_timeout)
        except ShutdownRequested:
            raise
        except Exception as e:
            # already broadcast: report pending, never rebuild
            logger.warning("Could not read receipt", tx_hash=tx_hash, error=f"{type(e).__name__}: {e}")
            receipt = None

        if receipt is None:
            status = SubmissionStatus.PENDING
        elif receipt.get('status') == 1:
            status = SubmissionStatus.CONFIRMED
        else:
            status = SubmissionStatus.REVERTED
        return SubmissionResult(tx_hash=tx_hash, status=status, explorer_url=explorer_url, receipt=receipt)
