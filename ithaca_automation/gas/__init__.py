"""Gas pricing and gas limits for transaction building"""

from .gas_manager import INTRINSIC_TRANSFER_GAS, GasManager

__all__ = [
    'GasManager',
    'INTRINSIC_TRANSFER_GAS',
]
