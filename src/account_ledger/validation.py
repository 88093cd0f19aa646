"""Stateless validators for identifiers and amounts used at the ledger edges."""

import re
from decimal import Decimal, InvalidOperation


UPI_PATTERN = re.compile(r"[a-zA-Z0-9.\-_]+@[a-zA-Z]+")
ACCOUNT_NUMBER_PATTERN = re.compile(r"\d{9,18}")
IFSC_PATTERN = re.compile(r"[A-Z]{4}0[A-Z0-9]{6}")
PIN_PATTERN = re.compile(r"\d{4}")
NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z .'-]{1,99}")


def is_valid_upi_id(upi_id: str | None) -> bool:
    return upi_id is not None and UPI_PATTERN.fullmatch(upi_id) is not None


def is_valid_account_number(account_number: str | None) -> bool:
    return account_number is not None and ACCOUNT_NUMBER_PATTERN.fullmatch(account_number) is not None


def is_valid_ifsc(ifsc: str | None) -> bool:
    return ifsc is not None and IFSC_PATTERN.fullmatch(ifsc) is not None


def is_valid_pin(pin: str | None) -> bool:
    return pin is not None and PIN_PATTERN.fullmatch(pin) is not None


def is_valid_name(name: str | None) -> bool:
    return name is not None and NAME_PATTERN.fullmatch(name.strip()) is not None


def is_valid_amount(
    amount: Decimal | int | float | str,
    minimum: Decimal | int | None = None,
    maximum: Decimal | int | None = None,
) -> bool:
    """Positive, finite and, when bounds are given, within ``[minimum, maximum]``."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        return False
    if not value.is_finite() or value <= 0:
        return False
    if minimum is not None and value < minimum:
        return False
    return maximum is None or value <= maximum


def mask_account_number(account_number: str) -> str:
    if len(account_number) <= 4:
        return account_number
    return "X" * (len(account_number) - 4) + account_number[-4:]
