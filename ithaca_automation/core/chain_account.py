from dataclasses import dataclass, field
from typing import Any

import structlog
from eth_account import Account
from eth_account.datastructures import SignedTransaction
from eth_account.signers.local import LocalAccount

from ..config.chain_specs import ChainSpec
from .types import InvalidKeyError, TransactionRequest

logger = structlog.get_logger(__name__)


def normalize_private_key(key: str) -> str:
    """Strip whitespace and add the 0x prefix when missing"""
    key = key.strip()
    if not key.startswith(('0x', '0X')):
        key = f"0x{key}"
    return key


@dataclass(frozen=True)
class ChainAccount:
    """Signing identity of one private key on one chain

    The address is derived from the key, never supplied separately.
    """
    address: str
    chain: ChainSpec
    _signer: LocalAccount = field(repr=False, compare=False)

    @classmethod
    def from_private_key(cls, private_key: str, chain: ChainSpec) -> 'ChainAccount':
        """Derive the account of ``private_key`` for ``chain``

        Raises:
            InvalidKeyError: if the key is not a valid secp256k1 private key
        """
        try:
            signer = Account.from_key(normalize_private_key(private_key))
        except Exception as e:
            raise InvalidKeyError(f"invalid private key: {type(e).__name__}") from e
        return cls(address=signer.address, chain=chain, _signer=signer)

    def sign(self, request: TransactionRequest) -> SignedTransaction:
        """Sign ``request``; it must originate from this account on this chain

        Raises:
            ValueError: if sender or chain id do not match this account
        """
        if request.from_address.lower() != self.address.lower():
            raise ValueError(f"request sender {request.from_address} is not {self.address}")
        if request.chain_id != self.chain.chain_id:
            raise ValueError(
                f"request chain id {request.chain_id} does not match {self.chain.name} ({self.chain.chain_id})"
            )
        tx: Any = request.to_tx_params()
        del tx['from']
        return self._signer.sign_transaction(tx)
