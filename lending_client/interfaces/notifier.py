"""Notifier protocol — alert channel abstraction."""
from typing import Protocol


class Notifier(Protocol):
    """Abstract interface for sending alerts."""

    async def send_alert(self, message: str, subject: str = "") -> bool: ...
