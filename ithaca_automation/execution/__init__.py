"""
Execution Package - transaction building, submission and the self-transfer operation
"""

from .transaction_builder import SubmissionResult, SubmissionStatus, TransactionBuilder
from .transfer_manager import TransferManager

__all__ = [
    'SubmissionResult',
    'SubmissionStatus',
    'TransactionBuilder',
    'TransferManager',
]
