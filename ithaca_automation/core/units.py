"""Wei conversions and the 5-decimal amount quantum used for sizing"""

from decimal import Decimal
from typing import Union

from web3 import Web3

# 0.00001 ether
AMOUNT_QUANTUM_WEI = 10 ** 13


def ether_to_wei(amount: Union[float, str, Decimal]) -> int:
    return int(Web3.to_wei(Decimal(str(amount)), 'ether'))


def format_ether(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'ether'):f}"


def floor_to_quantum(wei: int) -> int:
    return (wei // AMOUNT_QUANTUM_WEI) * AMOUNT_QUANTUM_WEI


def round_to_quantum(wei: int) -> int:
    """Round half up to the nearest quantum"""
    return ((wei + AMOUNT_QUANTUM_WEI // 2) // AMOUNT_QUANTUM_WEI) * AMOUNT_QUANTUM_WEI
