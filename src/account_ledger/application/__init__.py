"""Application layer - payment channels and transaction processing."""

from account_ledger.application.processor import (
    ProcessorStatistics,
    ProcessResult,
    TransactionProcessor,
)
from account_ledger.application.services import PaymentChannel, PaymentService


__all__ = [
    "PaymentChannel",
    "PaymentService",
    "ProcessResult",
    "ProcessorStatistics",
    "TransactionProcessor",
]
