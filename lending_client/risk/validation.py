"""Input validation for user actions.

All checks run before a job is built and raise :class:`ValidationError`.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from eth_utils import is_address

from ..errors import ValidationError


def parse_amount(value: Any) -> Decimal:
    """Parse a user-entered amount into a positive ``Decimal``."""
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    require_positive(amount)
    return amount


def require_positive(amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")


def require_within(amount: Decimal, limit: Decimal, what: str) -> None:
    """Reject ``amount`` above ``limit``; ``what`` names the limit in the message."""
    if amount > limit:
        raise ValidationError(f"Amount exceeds {what} ({limit})")


def require_address(address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise ValidationError(f"Invalid address: {address!r}")
    return address


def require_duration(days: int) -> int:
    if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
        raise ValidationError("Loan duration must be a positive number of days")
    return days
