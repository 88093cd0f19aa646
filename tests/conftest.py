"""Shared pytest fixtures for account ledger tests."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from account_ledger.application.processor import TransactionProcessor
from account_ledger.application.services import PaymentService
from account_ledger.domain.account import Account
from account_ledger.domain.models import AccountCategory
from account_ledger.domain.transfers import TransferOrchestrator
from account_ledger.infrastructure.audit import InMemoryEventLogger
from account_ledger.infrastructure.ids import DatedSequenceIdGenerator
from account_ledger.infrastructure.repositories import InMemoryAccountRepository


# Lowest bcrypt cost, keeps test account setup fast.
FAST_PIN_ROUNDS = 4


@pytest.fixture
def clock() -> MagicMock:
    """Controllable UTC clock; assign ``return_value`` to move time."""
    return MagicMock(return_value=datetime(2026, 3, 14, 10, 30, tzinfo=UTC))


@pytest.fixture
def events() -> InMemoryEventLogger:
    """Create in-memory audit sink."""
    return InMemoryEventLogger(max_events=500)


@pytest.fixture
def ids(clock: MagicMock) -> DatedSequenceIdGenerator:
    """Create deterministic identifier generator."""
    return DatedSequenceIdGenerator(clock=clock)


@pytest.fixture
def orchestrator(ids: DatedSequenceIdGenerator, events: InMemoryEventLogger) -> TransferOrchestrator:
    """Create transfer orchestrator shared by test accounts."""
    return TransferOrchestrator(ids=ids, events=events)


@pytest.fixture
def make_account(
    clock: MagicMock,
    events: InMemoryEventLogger,
    ids: DatedSequenceIdGenerator,
    orchestrator: TransferOrchestrator,
) -> Callable[..., Account]:
    """Factory for accounts wired to the test clock, audit sink and orchestrator."""

    def _make(
        account_number: str = "100200300400",
        holder_name: str = "Asha Rao",
        initial_balance: str = "50000",
        pin: str = "1234",
        category: AccountCategory = AccountCategory.SAVINGS,
        **options: Any,
    ) -> Account:
        options.setdefault("minimum_balance", "1000" if category is AccountCategory.SAVINGS else "5000")
        options.setdefault("daily_withdrawal_limit", "100000")
        options.setdefault("max_deposit_amount", "1000000")
        options.setdefault("max_pin_attempts", 3)
        return Account.open(
            account_number,
            holder_name,
            initial_balance,
            pin,
            category,
            pin_hash_rounds=FAST_PIN_ROUNDS,
            clock=clock,
            events=events,
            ids=ids,
            orchestrator=orchestrator,
            **options,
        )

    return _make


@pytest.fixture
def account_a(make_account: Callable[..., Account]) -> Account:
    """Savings account: balance 50000, minimum 1000, daily limit 100000, PIN 1234."""
    return make_account()


@pytest.fixture
def account_b(make_account: Callable[..., Account]) -> Account:
    """Current account: balance 20000, minimum 5000, PIN 5678."""
    return make_account("500600700800", "Vikram Iyer", "20000", "5678", AccountCategory.CURRENT)


@pytest.fixture
def repository(account_a: Account, account_b: Account) -> InMemoryAccountRepository:
    """Create repository holding both test accounts."""
    repo = InMemoryAccountRepository()
    repo.add(account_a)
    repo.add(account_b)
    return repo


@pytest.fixture
def service(
    repository: InMemoryAccountRepository,
    orchestrator: TransferOrchestrator,
    ids: DatedSequenceIdGenerator,
    events: InMemoryEventLogger,
) -> PaymentService:
    """Create PaymentService over the test repository."""
    return PaymentService(
        service_name="TestGateway",
        accounts=repository,
        orchestrator=orchestrator,
        ids=ids,
        events=events,
    )


@pytest.fixture
def sleep() -> MagicMock:
    """Stand-in for time.sleep so retry tests never wait."""
    return MagicMock()


@pytest.fixture
def processor(ids: DatedSequenceIdGenerator, sleep: MagicMock) -> TransactionProcessor:
    """Create TransactionProcessor whose simulated failures never fire."""
    return TransactionProcessor(
        ids=ids,
        resource_failure_rate=0.0,
        execution_failure_rate=0.0,
        draw=lambda: 1.0,
        sleep=sleep,
        base_delay=0.5,
        max_delay=5.0,
    )
