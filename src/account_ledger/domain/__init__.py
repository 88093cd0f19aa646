"""Domain layer - accounts, transfers and the error taxonomy."""

from account_ledger.domain.account import Account
from account_ledger.domain.exceptions import (
    AccountInactive,
    AuthenticationFailure,
    BankingError,
    DailyLimitExceeded,
    ErrorDetail,
    ErrorKind,
    InsufficientBalance,
    InvalidAccount,
    InvalidAmount,
    ServiceUnavailable,
    TransactionFailed,
)
from account_ledger.domain.models import (
    AccountCategory,
    AccountStatus,
    EntryType,
    LedgerEntry,
    TransactionStatus,
    TransactionType,
    to_amount,
)
from account_ledger.domain.transaction import Transaction
from account_ledger.domain.transfers import TransferOrchestrator, TransferStatistics
from account_ledger.domain.unit_of_work import TransferUnitOfWork


__all__ = [
    "Account",
    "AccountCategory",
    "AccountInactive",
    "AccountStatus",
    "AuthenticationFailure",
    "BankingError",
    "DailyLimitExceeded",
    "EntryType",
    "ErrorDetail",
    "ErrorKind",
    "InsufficientBalance",
    "InvalidAccount",
    "InvalidAmount",
    "LedgerEntry",
    "ServiceUnavailable",
    "Transaction",
    "TransactionFailed",
    "TransactionStatus",
    "TransactionType",
    "TransferOrchestrator",
    "TransferStatistics",
    "TransferUnitOfWork",
    "to_amount",
]
