import structlog

from account_ledger.application.processor import TransactionProcessor
from account_ledger.application.services import PaymentService
from account_ledger.config import settings
from account_ledger.domain.exceptions import BankingError
from account_ledger.domain.models import AccountCategory
from account_ledger.logging import configure_logging


logger = structlog.get_logger()


def main() -> int:
    """Open two accounts and run a short series of ledger operations."""
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
    )

    service = PaymentService(service_name="LedgerDemo")
    processor = TransactionProcessor()

    asha = service.accounts.open_account("100200300400", "Asha Rao", "50000", "4821")
    vikram = service.accounts.open_account(
        "500600700800", "Vikram Iyer", "12000", "1357", AccountCategory.CURRENT
    )

    logger.info(
        "ledger_demo_started",
        accounts=len(service.accounts),
        total=str(service.accounts.total_balance()),
    )

    transfer_id = service.process_direct_transfer(
        asha.account_number, vikram.account_number, "2500", "4821"
    )
    logger.info("ledger_demo_transfer", transaction_id=transfer_id)

    result = processor.process_withdrawal(asha, "120000", "4821")
    logger.info("ledger_demo_withdrawal", status=result.status.value, error_code=result.error_code)

    try:
        service.process_upi_payment(vikram, "vikram@okbank", "500", "0000")
    except BankingError as exc:
        logger.info("ledger_demo_upi_rejected", **exc.to_dict())

    logger.info(
        "ledger_demo_finished",
        total=str(service.accounts.total_balance()),
        transfers=service.orchestrator.statistics.completed,
        processor_success_rate=processor.statistics.success_rate,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
