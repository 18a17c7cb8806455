"""Client for an over-collateralized lending protocol."""
from .config import AppConfig, load_config
from .errors import (
    LendingClientError,
    NotLiquidatableError,
    PriceUnavailableError,
    RpcError,
    UnsafeActionError,
    ValidationError,
    WatchListError,
)
from .services import LiquidationMonitor, PositionService

__all__ = [
    "AppConfig",
    "LendingClientError",
    "LiquidationMonitor",
    "NotLiquidatableError",
    "PositionService",
    "PriceUnavailableError",
    "RpcError",
    "UnsafeActionError",
    "ValidationError",
    "WatchListError",
    "load_config",
]
