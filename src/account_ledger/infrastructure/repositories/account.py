import threading
from decimal import Decimal
from typing import Any

import structlog

from account_ledger.domain.account import Account
from account_ledger.domain.exceptions import BankingError, InvalidAccount
from account_ledger.domain.models import AccountCategory


logger = structlog.get_logger()


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, account_number: object) -> bool:
        with self._lock:
            return account_number in self._accounts

    def add(self, account: Account) -> None:
        with self._lock:
            if account.account_number in self._accounts:
                raise BankingError(InvalidAccount(account.account_number, "Account already exists"))
            self._accounts[account.account_number] = account
        logger.debug("account_registered", account_number=account.account_number)

    def open_account(
        self,
        account_number: str,
        holder_name: str,
        initial_balance: Decimal | int | str,
        pin: str,
        category: AccountCategory = AccountCategory.SAVINGS,
        **options: Any,
    ) -> Account:
        account = Account.open(account_number, holder_name, initial_balance, pin, category, **options)
        self.add(account)
        return account

    def get(self, account_number: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_number)

    def get_or_raise(self, account_number: str | None) -> Account:
        account = self.get(account_number) if account_number else None
        if account is None:
            raise BankingError(InvalidAccount(str(account_number), "Account not found"))
        return account

    def list_active(self) -> list[Account]:
        with self._lock:
            accounts = list(self._accounts.values())
        return [account for account in accounts if account.is_active]

    def remove(self, account_number: str) -> Account:
        with self._lock:
            account = self._accounts.pop(account_number, None)
        if account is None:
            raise BankingError(InvalidAccount(account_number, "Account not found"))
        return account

    def total_balance(self) -> Decimal:
        with self._lock:
            accounts = list(self._accounts.values())
        return sum((account.balance for account in accounts), Decimal("0.00"))
