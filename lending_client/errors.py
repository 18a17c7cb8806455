"""Exception hierarchy for the lending client."""
from __future__ import annotations

from decimal import Decimal


class LendingClientError(Exception):
    """Base class for every error raised by the lending client."""


class ValidationError(LendingClientError):
    """Input rejected before any network call or job was created."""


class UnsafeActionError(ValidationError):
    """The projected health factor of an action falls below the liquidation line."""

    def __init__(self, message: str, projected_health_factor: Decimal) -> None:
        super().__init__(message)
        self.projected_health_factor = projected_health_factor


class PriceUnavailableError(LendingClientError):
    """A price needed for a risk computation is missing, zero or stale."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Price for {symbol} is unavailable or stale")
        self.symbol = symbol


class WatchListError(LendingClientError):
    """A watch-set add/remove contract was violated."""


class NotLiquidatableError(LendingClientError):
    """The borrower is not liquidatable on a fresh snapshot."""


class RpcError(LendingClientError):
    """JSON-RPC transport or node error."""

    def __init__(self, message: str, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data
