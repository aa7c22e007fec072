"""
Services Package - wallet cycle runner and the components it wires together
"""

from .automation_services import AutomationServices, WalletContext, WalletOperation
from .wallet_cycle_runner import WalletCycleRunner, WalletReport

__all__ = [
    'AutomationServices',
    'WalletContext',
    'WalletCycleRunner',
    'WalletOperation',
    'WalletReport',
]
