from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum

import structlog

from account_ledger.config import settings
from account_ledger.domain.account import Account
from account_ledger.domain.exceptions import (
    AccountInactive,
    BankingError,
    DailyLimitExceeded,
    ErrorKind,
    InsufficientBalance,
    InvalidAccount,
    InvalidAmount,
    ServiceUnavailable,
    TransactionFailed,
)
from account_ledger.domain.models import to_amount
from account_ledger.domain.transfers import TransferOrchestrator
from account_ledger.infrastructure.audit import EventLogger, default_event_logger
from account_ledger.infrastructure.ids import IdGenerator, default_id_generator
from account_ledger.infrastructure.metrics import PAYMENT_REQUESTS_TOTAL
from account_ledger.infrastructure.repositories import InMemoryAccountRepository
from account_ledger.validation import is_valid_amount, is_valid_upi_id


logger = structlog.get_logger()


class PaymentChannel(Enum):
    UPI = "UPI"
    IMPS = "IMPS"
    TRANSFER = "TRANSFER"
    BALANCE = "BALANCE"


IMPS_FAILURE_STAGES = {
    ErrorKind.SERVICE_UNAVAILABLE: "SERVICE_CHECK",
    ErrorKind.INVALID_ACCOUNT: "VALIDATION",
    ErrorKind.INVALID_AMOUNT: "VALIDATION",
}


@contextmanager
def _channel_request(channel: PaymentChannel) -> Iterator[None]:
    try:
        yield
    except BankingError as exc:
        PAYMENT_REQUESTS_TOTAL.labels(channel=channel.value, status="FAILED", error_code=exc.code).inc()
        raise
    PAYMENT_REQUESTS_TOTAL.labels(channel=channel.value, status="SUCCESS", error_code="").inc()


class PaymentService:
    """
    Channel façade over accounts and transfers.

    Each entry point first checks that the channel is up, then applies the
    channel's structural checks before delegating to the ledger.
    """

    def __init__(
        self,
        service_name: str = "PaymentGateway",
        accounts: InMemoryAccountRepository | None = None,
        orchestrator: TransferOrchestrator | None = None,
        ids: IdGenerator | None = None,
        events: EventLogger | None = None,
    ) -> None:
        self.service_name = service_name
        self._available = True
        self._ids = ids or default_id_generator
        self._events = events or default_event_logger
        self.accounts = accounts if accounts is not None else InMemoryAccountRepository()
        self.orchestrator = orchestrator or TransferOrchestrator(ids=self._ids, events=self._events)

    @property
    def available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available
        logger.info("payment_service_availability_changed", service=self.service_name, available=available)

    def process_upi_payment(
        self,
        account: Account,
        to_upi: str | None,
        amount: Decimal | int | str,
        pin: str | None,
    ) -> str:
        log = logger.bind(channel="UPI", account_number=account.account_number, payee=to_upi)

        with _channel_request(PaymentChannel.UPI):
            self._ensure_available()

            if not is_valid_upi_id(to_upi):
                raise BankingError(InvalidAccount(str(to_upi), "Invalid UPI ID format", malformed=True))

            value = to_amount(amount)
            if not is_valid_amount(value, 1, settings.upi_max_amount):
                raise BankingError(
                    InvalidAmount(
                        value,
                        "Amount out of allowed range",
                        min_allowed=Decimal("1"),
                        max_allowed=settings.upi_max_amount,
                    )
                )

            with account.lock:
                account.verify_pin(pin)

                if not account.is_active:
                    raise BankingError(AccountInactive(account.account_number, account.status.value))

                if account.available_balance < value:
                    raise BankingError(
                        InsufficientBalance(
                            account_number=account.account_number,
                            current_balance=account.balance,
                            requested_amount=value,
                            minimum_balance=account.minimum_balance,
                        )
                    )

                if account.remaining_daily_limit < value:
                    raise BankingError(
                        DailyLimitExceeded(
                            account_number=account.account_number,
                            limit_type="UPI",
                            daily_limit=account.daily_withdrawal_limit,
                            already_used=account.daily_withdrawn,
                            attempted_amount=value,
                        )
                    )

                account.withdraw(value, pin)

            transaction_id = self._ids.new_id("UPI")
            self._events.record(
                "TRANSACTION", transaction_id, "UPI_PAYMENT", f"{account.account_number} -> {to_upi}"
            )
            log.info("upi_payment_processed", transaction_id=transaction_id, amount=str(value))
            return transaction_id

    def process_imps_payment(
        self,
        account: Account,
        to_account: str | None,
        amount: Decimal | int | str,
        pin: str | None,
    ) -> str:
        """IMPS payment; every failure surfaces as a single ``TransactionFailed``."""
        transaction_id = self._ids.new_id("IMPS")
        log = logger.bind(channel="IMPS", transaction_id=transaction_id, account_number=account.account_number)

        with _channel_request(PaymentChannel.IMPS):
            try:
                self._ensure_available()

                if to_account is None or len(to_account) < settings.imps_min_account_length:
                    raise BankingError(InvalidAccount(str(to_account), "Invalid account number", malformed=True))

                account.withdraw(amount, pin)
            except BankingError as exc:
                stage = IMPS_FAILURE_STAGES.get(exc.kind, "PROCESSING")
                log.info("imps_payment_failed", failure_stage=stage, error_code=exc.code)
                raise BankingError(
                    TransactionFailed(
                        transaction_id=transaction_id,
                        transaction_type=PaymentChannel.IMPS.value,
                        failure_stage=stage,
                        reason=str(exc),
                        source_account=account.account_number,
                        destination_account=to_account,
                    )
                ) from exc

            self._events.record(
                "TRANSACTION", transaction_id, "IMPS_PAYMENT", f"{account.account_number} -> {to_account}"
            )
            log.info("imps_payment_processed", amount=str(amount))
            return transaction_id

    def process_direct_transfer(
        self,
        source_account: str,
        destination_account: str,
        amount: Decimal | int | str,
        pin: str | None,
    ) -> str:
        with _channel_request(PaymentChannel.TRANSFER):
            self._ensure_available()
            source = self.accounts.get_or_raise(source_account)
            destination = self.accounts.get_or_raise(destination_account)
            return self.orchestrator.transfer(source, destination, amount, pin)

    def check_balance(self, account: Account, pin: str | None) -> Decimal:
        """Read-only balance enquiry; safe to retry."""
        with _channel_request(PaymentChannel.BALANCE):
            self._ensure_available()
            account.verify_pin(pin)
            return account.balance

    def _ensure_available(self) -> None:
        if not self._available:
            raise BankingError(
                ServiceUnavailable(
                    service_name=self.service_name,
                    reason="Service temporarily down for maintenance",
                    retry_after_minutes=settings.service_retry_after_minutes,
                    retry_safe=True,
                )
            )
