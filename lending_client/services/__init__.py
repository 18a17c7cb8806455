"""Application services."""
from .liquidation_monitor import BorrowerRisk, LiquidationMonitor
from .position_service import PositionService
from .watchlist import WatchSet, WatchSource

__all__ = [
    "BorrowerRisk",
    "LiquidationMonitor",
    "PositionService",
    "WatchSet",
    "WatchSource",
]
