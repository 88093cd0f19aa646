"""Banking error taxonomy.

Every failure raised by the ledger is a ``BankingError``. The error carries a
frozen ``detail`` payload whose type identifies the failure kind, so callers
branch with structural pattern matching instead of catching subclasses::

    try:
        account.withdraw(amount, pin)
    except BankingError as exc:
        match exc.detail:
            case DailyLimitExceeded(remaining_limit=remaining):
                ...
            case AuthenticationFailure(account_locked=True):
                ...
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar


class ErrorKind(Enum):
    INSUFFICIENT_BALANCE = "BANK_ERR_001"
    INVALID_ACCOUNT = "BANK_ERR_002"
    ACCOUNT_INACTIVE = "BANK_ERR_003"
    DAILY_LIMIT_EXCEEDED = "BANK_ERR_004"
    TRANSACTION_FAILED = "BANK_ERR_005"
    AUTHENTICATION_FAILED = "BANK_ERR_006"
    SERVICE_UNAVAILABLE = "BANK_ERR_007"
    INVALID_AMOUNT = "BANK_ERR_008"

    @property
    def code(self) -> str:
        return self.value


@dataclass(frozen=True)
class InsufficientBalance:
    kind: ClassVar[ErrorKind] = ErrorKind.INSUFFICIENT_BALANCE

    account_number: str
    current_balance: Decimal
    requested_amount: Decimal
    minimum_balance: Decimal = Decimal("0")

    @property
    def available_balance(self) -> Decimal:
        return max(Decimal("0"), self.current_balance - self.minimum_balance)

    @property
    def shortfall(self) -> Decimal:
        return self.requested_amount - self.available_balance

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        return (
            f"Insufficient balance. Available: {self.available_balance:.2f}, "
            f"Required: {self.requested_amount:.2f}, Shortfall: {self.shortfall:.2f}"
        )


@dataclass(frozen=True)
class InvalidAccount:
    """Unknown, duplicate or unusable account identifier.

    ``malformed`` marks identifiers that fail structural validation; those are
    caller defects rather than business outcomes.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_ACCOUNT

    account_number: str
    reason: str = "Account does not exist"
    malformed: bool = False

    @property
    def recoverable(self) -> bool:
        return not self.malformed

    def message(self) -> str:
        return f"Invalid account: {self.account_number} - {self.reason}"


@dataclass(frozen=True)
class AccountInactive:
    kind: ClassVar[ErrorKind] = ErrorKind.ACCOUNT_INACTIVE

    account_number: str
    status: str
    reason: str = "Account is not active"

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        return f"Account {self.account_number} is {self.status}: {self.reason}"


@dataclass(frozen=True)
class DailyLimitExceeded:
    kind: ClassVar[ErrorKind] = ErrorKind.DAILY_LIMIT_EXCEEDED

    account_number: str
    limit_type: str
    daily_limit: Decimal
    already_used: Decimal
    attempted_amount: Decimal

    @property
    def remaining_limit(self) -> Decimal:
        return self.daily_limit - self.already_used

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        return (
            f"Daily {self.limit_type} limit exceeded. Limit: {self.daily_limit:.2f}, "
            f"Used: {self.already_used:.2f}, Remaining: {self.remaining_limit:.2f}, "
            f"Attempted: {self.attempted_amount:.2f}"
        )


@dataclass(frozen=True)
class TransactionFailed:
    kind: ClassVar[ErrorKind] = ErrorKind.TRANSACTION_FAILED

    transaction_id: str
    transaction_type: str
    failure_stage: str
    reason: str | None = None
    source_account: str | None = None
    destination_account: str | None = None
    amount: Decimal | None = None
    reversal_required: bool = False
    reversal_completed: bool = False

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        text = f"Transaction {self.transaction_id} failed at {self.failure_stage}"
        if self.reason:
            text = f"{text}: {self.reason}"
        return text


@dataclass(frozen=True)
class AuthenticationFailure:
    kind: ClassVar[ErrorKind] = ErrorKind.AUTHENTICATION_FAILED

    account_number: str
    attempt_number: int
    max_attempts: int
    auth_type: str = "PIN"

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_number)

    @property
    def account_locked(self) -> bool:
        return self.attempt_number >= self.max_attempts

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        if self.account_locked:
            return (
                f"{self.auth_type} authentication failed. "
                f"Account locked after {self.max_attempts} attempts."
            )
        return (
            f"{self.auth_type} authentication failed. "
            f"Attempt {self.attempt_number} of {self.max_attempts}."
        )


@dataclass(frozen=True)
class ServiceUnavailable:
    kind: ClassVar[ErrorKind] = ErrorKind.SERVICE_UNAVAILABLE

    service_name: str
    reason: str = "Service temporarily unavailable"
    retry_after_minutes: int = 0
    retry_safe: bool = False

    @property
    def recoverable(self) -> bool:
        return True

    def message(self) -> str:
        text = f"Service unavailable: {self.service_name} - {self.reason}"
        if self.retry_after_minutes:
            text = f"{text}. Retry after {self.retry_after_minutes} minutes"
        return text


@dataclass(frozen=True)
class InvalidAmount:
    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_AMOUNT

    amount: Any
    reason: str = "Amount must be positive"
    min_allowed: Decimal | None = None
    max_allowed: Decimal | None = None

    @property
    def recoverable(self) -> bool:
        return False

    def message(self) -> str:
        if self.min_allowed is not None and self.max_allowed is not None:
            return (
                f"Amount {self.amount} out of range. "
                f"Allowed: {self.min_allowed:.2f} - {self.max_allowed:.2f}"
            )
        return f"Invalid amount: {self.amount} - {self.reason}"


ErrorDetail = (
    InsufficientBalance
    | InvalidAccount
    | AccountInactive
    | DailyLimitExceeded
    | TransactionFailed
    | AuthenticationFailure
    | ServiceUnavailable
    | InvalidAmount
)


class BankingError(Exception):
    """Single exception type for every ledger failure."""

    def __init__(self, detail: ErrorDetail) -> None:
        self.detail = detail
        super().__init__(detail.message())

    @property
    def kind(self) -> ErrorKind:
        return self.detail.kind

    @property
    def code(self) -> str:
        return self.detail.kind.code

    @property
    def recoverable(self) -> bool:
        return self.detail.recoverable

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    def to_dict(self) -> dict[str, Any]:
        payload = {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in asdict(self.detail).items()
        }
        return {
            "code": self.code,
            "kind": self.kind.name,
            "message": str(self),
            "recoverable": self.recoverable,
            "detail": payload,
            "cause": str(self.__cause__) if self.__cause__ else None,
        }

    def __reduce__(self) -> tuple[type["BankingError"], tuple[ErrorDetail]]:
        return (BankingError, (self.detail,))

    def __repr__(self) -> str:
        return f"BankingError({self.detail!r})"
