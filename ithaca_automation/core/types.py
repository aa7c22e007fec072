"""
Shared result and error types

Every component reports its work through one of the result types below
instead of raising into its caller. Exceptions are used inside a component
and converted to a result at the component boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class AutomationError(Exception):
    """Base class for automation errors"""


class InvalidKeyError(AutomationError):
    """Private key cannot be turned into an account"""


class InsufficientFundsError(AutomationError):
    """Balance does not cover value plus gas; treated as a benign no-op"""


class RpcUnavailableError(AutomationError):
    """A chain RPC call exhausted its retries"""


class QuoteUnavailableError(AutomationError):
    """Route-quote service could not be reached before retries ran out"""


class QuoteRejectedError(AutomationError):
    """Route-quote service answered with a definitive non-success status"""

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"quote service returned status {status}")
        self.status = status
        self.body = body


class InvalidRouteError(AutomationError):
    """Quote result is missing fields or targets the wrong chain"""


class ConfigError(AutomationError):
    """Configuration values are present but invalid"""


class KeyFileError(AutomationError):
    """Private key list cannot be read"""


class ShutdownRequested(AutomationError):
    """Raised from a suspension point once a stop has been requested"""


class OperationStatus(Enum):
    """Final status of one wallet operation"""
    COMPLETED = "completed"
    SKIPPED = "skipped"    # benign no-op: disabled, zero balance, amount too small
    FAILED = "failed"


@dataclass(frozen=True)
class TransactionRequest:
    """Fully specified legacy transaction, built for a single submission"""
    from_address: str
    to: str
    value: int
    gas: int
    gas_price: int
    nonce: int
    chain_id: int
    data: str = '0x'

    @property
    def max_cost(self) -> int:
        """Value plus the most the transaction can spend on gas, in wei"""
        return self.value + self.gas * self.gas_price

    def to_tx_params(self) -> Dict[str, Any]:
        return {
            'from': self.from_address,
            'to': self.to,
            'value': self.value,
            'gas': self.gas,
            'gasPrice': self.gas_price,
            'nonce': self.nonce,
            'chainId': self.chain_id,
            'data': self.data,
        }


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a wallet operation such as a self-transfer"""
    status: OperationStatus
    reason: Optional[str] = None
    tx_hash: Optional[str] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status != OperationStatus.FAILED
