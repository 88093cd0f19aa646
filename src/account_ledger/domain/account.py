"""Account entity: balance, PIN lockout and withdrawal policy for one party."""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import InitVar, dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal

import structlog

from account_ledger.config import settings
from account_ledger.domain.exceptions import (
    AccountInactive,
    AuthenticationFailure,
    BankingError,
    DailyLimitExceeded,
    InsufficientBalance,
    InvalidAccount,
    InvalidAmount,
)
from account_ledger.domain.models import AccountCategory, AccountStatus, to_amount
from account_ledger.domain.security import PinHash
from account_ledger.domain.transfers import TransferOrchestrator
from account_ledger.infrastructure.audit import EventLogger, default_event_logger
from account_ledger.infrastructure.ids import IdGenerator, default_id_generator
from account_ledger.infrastructure.metrics import (
    LEDGER_OPERATIONS_TOTAL,
    LEDGER_VOLUME_TOTAL,
    PIN_LOCKOUTS_TOTAL,
)
from account_ledger.validation import is_valid_name, is_valid_pin


logger = structlog.get_logger()

ZERO = Decimal("0.00")


def _utc_now() -> datetime:
    return datetime.now(UTC)


@contextmanager
def _observed(operation: str) -> Iterator[None]:
    try:
        yield
    except BankingError as exc:
        LEDGER_OPERATIONS_TOTAL.labels(operation=operation, outcome=exc.kind.name).inc()
        raise
    LEDGER_OPERATIONS_TOTAL.labels(operation=operation, outcome="SUCCESS").inc()


@dataclass(eq=False)
class Account:
    account_number: str
    holder_name: str
    balance: Decimal
    category: AccountCategory
    pin_hash: PinHash = field(repr=False)
    minimum_balance: Decimal
    daily_withdrawal_limit: Decimal
    max_deposit_amount: Decimal
    max_pin_attempts: int
    status: AccountStatus = AccountStatus.ACTIVE
    daily_withdrawn: Decimal = ZERO
    failed_pin_attempts: int = 0
    withdrawal_day: date | None = None
    clock: Callable[[], datetime] = field(default=_utc_now, repr=False)
    events: EventLogger = field(default=default_event_logger, repr=False)
    ids: IdGenerator = field(default=default_id_generator, repr=False)
    orchestrator: InitVar[TransferOrchestrator | None] = None
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)
    _orchestrator: TransferOrchestrator = field(init=False, repr=False)

    def __post_init__(self, orchestrator: TransferOrchestrator | None) -> None:
        self._orchestrator = orchestrator or TransferOrchestrator(ids=self.ids, events=self.events)
        if self.withdrawal_day is None:
            self.withdrawal_day = self._today()

    @classmethod
    def open(
        cls,
        account_number: str,
        holder_name: str,
        initial_balance: Decimal | int | str,
        pin: str,
        category: AccountCategory = AccountCategory.SAVINGS,
        *,
        minimum_balance: Decimal | int | str | None = None,
        daily_withdrawal_limit: Decimal | int | str | None = None,
        max_deposit_amount: Decimal | int | str | None = None,
        max_pin_attempts: int | None = None,
        pin_hash_rounds: int | None = None,
        clock: Callable[[], datetime] | None = None,
        events: EventLogger | None = None,
        ids: IdGenerator | None = None,
        orchestrator: TransferOrchestrator | None = None,
    ) -> "Account":
        """
        Validate opening parameters and create an active account.

        The minimum balance defaults by category (savings vs current) and the
        PIN is kept only as a salted hash.
        """
        if not account_number or not account_number.strip():
            raise BankingError(
                InvalidAccount(str(account_number), "Account number cannot be empty", malformed=True)
            )
        if not is_valid_name(holder_name):
            raise BankingError(InvalidAccount(account_number, "Holder name is invalid", malformed=True))
        if not is_valid_pin(pin):
            raise BankingError(InvalidAccount(account_number, "PIN must be 4 digits", malformed=True))

        balance = to_amount(initial_balance)
        if balance < 0:
            raise BankingError(InvalidAmount(balance, "Initial balance cannot be negative"))

        if minimum_balance is None:
            minimum_balance = (
                settings.savings_minimum_balance
                if category is AccountCategory.SAVINGS
                else settings.current_minimum_balance
            )

        account = cls(
            account_number=account_number,
            holder_name=holder_name,
            balance=balance,
            category=category,
            pin_hash=PinHash.from_pin(pin, pin_hash_rounds or settings.pin_hash_rounds),
            minimum_balance=to_amount(minimum_balance),
            daily_withdrawal_limit=to_amount(
                settings.daily_withdrawal_limit if daily_withdrawal_limit is None else daily_withdrawal_limit
            ),
            max_deposit_amount=to_amount(
                settings.max_deposit_amount if max_deposit_amount is None else max_deposit_amount
            ),
            max_pin_attempts=max_pin_attempts or settings.max_pin_attempts,
            clock=clock or _utc_now,
            events=events or default_event_logger,
            ids=ids or default_id_generator,
            orchestrator=orchestrator,
        )
        account.events.record("ACCOUNT", account_number, "OPENED", f"{category.value} balance={balance}")
        logger.info(
            "account_opened",
            account_number=account_number,
            category=category.value,
            balance=str(balance),
        )
        return account

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE

    @property
    def available_balance(self) -> Decimal:
        with self._lock:
            return max(ZERO, self.balance - self.minimum_balance)

    @property
    def remaining_daily_limit(self) -> Decimal:
        with self._lock:
            self._roll_daily_window()
            return self.daily_withdrawal_limit - self.daily_withdrawn

    def verify_pin(self, entered_pin: str | None) -> None:
        with self._lock:
            self._ensure_active("Account has been closed")

            if not self.pin_hash.matches(entered_pin):
                self.failed_pin_attempts += 1
                detail = AuthenticationFailure(
                    account_number=self.account_number,
                    attempt_number=self.failed_pin_attempts,
                    max_attempts=self.max_pin_attempts,
                )
                if detail.account_locked:
                    self.status = AccountStatus.LOCKED
                    PIN_LOCKOUTS_TOTAL.inc()
                    self.events.record("SECURITY", self.account_number, "ACCOUNT_LOCKED", detail.message())
                    logger.warning(
                        "account_locked",
                        account_number=self.account_number,
                        failed_attempts=self.failed_pin_attempts,
                    )
                else:
                    self.events.record("SECURITY", self.account_number, "PIN_FAILED", detail.message())
                    logger.info(
                        "pin_verification_failed",
                        account_number=self.account_number,
                        attempt=self.failed_pin_attempts,
                        remaining=detail.remaining_attempts,
                    )
                raise BankingError(detail)

            self.failed_pin_attempts = 0

    def deposit(self, amount: Decimal | int | str) -> None:
        with self._lock, _observed("deposit"):
            self._ensure_active("Cannot deposit to inactive account")

            value = to_amount(amount)
            if value <= 0:
                raise BankingError(InvalidAmount(value, "Deposit amount must be positive"))
            if value > self.max_deposit_amount:
                raise BankingError(
                    InvalidAmount(
                        value,
                        "Deposit exceeds per-deposit ceiling",
                        min_allowed=Decimal("1"),
                        max_allowed=self.max_deposit_amount,
                    )
                )

            self.balance += value
            LEDGER_VOLUME_TOTAL.labels(operation="deposit").inc(float(value))
            self.events.record("TRANSACTION", self.account_number, "DEPOSIT", f"amount={value}")
            logger.info(
                "deposit_completed",
                account_number=self.account_number,
                amount=str(value),
                balance=str(self.balance),
            )

    def withdraw(self, amount: Decimal | int | str, pin: str | None) -> None:
        with self._lock, _observed("withdraw"):
            self.verify_pin(pin)
            self._ensure_active("Account is not active")

            value = to_amount(amount)
            if value <= 0:
                raise BankingError(InvalidAmount(value, "Withdrawal amount must be positive"))

            self._roll_daily_window()
            if value > self.daily_withdrawal_limit:
                raise BankingError(self._limit_exceeded(value, ZERO))
            if self.daily_withdrawn + value > self.daily_withdrawal_limit:
                raise BankingError(self._limit_exceeded(value, self.daily_withdrawn))

            if self.balance - value < self.minimum_balance:
                raise BankingError(
                    InsufficientBalance(
                        account_number=self.account_number,
                        current_balance=self.balance,
                        requested_amount=value,
                        minimum_balance=self.minimum_balance,
                    )
                )

            self.balance -= value
            self.daily_withdrawn += value
            LEDGER_VOLUME_TOTAL.labels(operation="withdraw").inc(float(value))
            self.events.record("TRANSACTION", self.account_number, "WITHDRAWAL", f"amount={value}")
            logger.info(
                "withdrawal_completed",
                account_number=self.account_number,
                amount=str(value),
                balance=str(self.balance),
                daily_withdrawn=str(self.daily_withdrawn),
                daily_limit=str(self.daily_withdrawal_limit),
            )

    def transfer(
        self,
        destination: "Account | None",
        amount: Decimal | int | str,
        pin: str | None,
        orchestrator: TransferOrchestrator | None = None,
        *,
        transaction_id: str | None = None,
    ) -> str:
        """Move ``amount`` to ``destination``; returns the transaction id."""
        return (orchestrator or self._orchestrator).transfer(
            self, destination, amount, pin, transaction_id=transaction_id
        )

    def reverse_withdrawal(self, amount: Decimal) -> None:
        """Compensate a committed withdrawal: credit it back and release the daily quota."""
        with self._lock:
            self.balance += amount
            self.daily_withdrawn = max(ZERO, self.daily_withdrawn - amount)
            self.events.record("TRANSACTION", self.account_number, "REVERSAL", f"amount={amount}")
            logger.info(
                "withdrawal_reversed",
                account_number=self.account_number,
                amount=str(amount),
                balance=str(self.balance),
                daily_withdrawn=str(self.daily_withdrawn),
            )

    def close_account(self, pin: str | None) -> Decimal:
        """Close the account and hand back its balance for payout elsewhere."""
        with self._lock:
            self.verify_pin(pin)
            self._ensure_active("Account already closed")

            closing_balance = self.balance
            self.balance = ZERO
            self.status = AccountStatus.CLOSED
            self.events.record("ACCOUNT", self.account_number, "CLOSED", f"returned={closing_balance}")
            logger.info(
                "account_closed",
                account_number=self.account_number,
                closing_balance=str(closing_balance),
            )
            return closing_balance

    def reactivate(self) -> None:
        with self._lock:
            self.status = AccountStatus.ACTIVE
            self.failed_pin_attempts = 0
            self.events.record("ACCOUNT", self.account_number, "REACTIVATED")
            logger.info("account_reactivated", account_number=self.account_number)

    def reset_daily_limit(self) -> None:
        with self._lock:
            self.daily_withdrawn = ZERO
            self.withdrawal_day = self._today()

    def _ensure_active(self, reason: str) -> None:
        if self.status is AccountStatus.LOCKED:
            raise BankingError(
                AccountInactive(self.account_number, AccountStatus.LOCKED.value, "Too many failed PIN attempts")
            )
        if self.status is AccountStatus.CLOSED:
            raise BankingError(AccountInactive(self.account_number, AccountStatus.CLOSED.value, reason))

    def _limit_exceeded(self, amount: Decimal, already_used: Decimal) -> DailyLimitExceeded:
        return DailyLimitExceeded(
            account_number=self.account_number,
            limit_type="WITHDRAWAL",
            daily_limit=self.daily_withdrawal_limit,
            already_used=already_used,
            attempted_amount=amount,
        )

    def _today(self) -> date:
        return self.clock().astimezone(UTC).date()

    def _roll_daily_window(self) -> None:
        today = self._today()
        if self.withdrawal_day != today:
            if self.daily_withdrawn:
                logger.info(
                    "daily_limit_reset",
                    account_number=self.account_number,
                    previous_day=str(self.withdrawal_day),
                    withdrawn=str(self.daily_withdrawn),
                )
            self.daily_withdrawn = ZERO
            self.withdrawal_day = today
