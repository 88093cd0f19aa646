from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from ulid import ULID

from account_ledger.domain.exceptions import BankingError, InvalidAmount


CENT = Decimal("0.01")


class AccountCategory(Enum):
    SAVINGS = "SAVINGS"
    CURRENT = "CURRENT"


class AccountStatus(Enum):
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    CLOSED = "CLOSED"


class TransactionStatus(Enum):
    INITIATED = "INITIATED"
    VALIDATED = "VALIDATED"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TransactionType(Enum):
    TRANSFER = "TRANSFER"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"
    PAYMENT = "PAYMENT"


class EntryType(Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    REVERSAL = "REVERSAL"


def to_amount(value: Decimal | int | float | str) -> Decimal:
    """Coerce a currency amount to a ``Decimal`` rounded to cents.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.10")`` rather
    than its binary expansion.
    """
    if isinstance(value, bool):
        raise BankingError(InvalidAmount(value, "Amount must be numeric"))
    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise BankingError(InvalidAmount(value, "Amount must be numeric")) from exc
    if not amount.is_finite():
        raise BankingError(InvalidAmount(value, "Amount must be finite"))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class LedgerEntry:
    id: str
    transaction_id: str
    account_number: str
    entry_type: EntryType
    amount: Decimal
    balance_after: Decimal
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        transaction_id: str,
        account_number: str,
        entry_type: EntryType,
        amount: Decimal,
        balance_after: Decimal,
    ) -> "LedgerEntry":
        return cls(
            id=str(ULID()),
            transaction_id=transaction_id,
            account_number=account_number,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
        )
