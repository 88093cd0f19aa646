"""Repository implementations."""

from account_ledger.infrastructure.repositories.account import InMemoryAccountRepository


__all__ = [
    "InMemoryAccountRepository",
]
