"""Alert sinks."""
from .telegram import TelegramNotifier

__all__ = ["TelegramNotifier"]
