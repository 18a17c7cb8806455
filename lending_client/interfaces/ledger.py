"""Ledger reader protocol — read side of the lending contracts."""
from decimal import Decimal
from typing import Protocol

from ..models import (
    AccountData,
    DebtPosition,
    LiquidationParams,
    PriceQuote,
    RiskConfig,
    SupplyPosition,
    Token,
)


class LedgerReader(Protocol):
    """Abstract interface for reading prices, balances and positions."""

    async def read_price(self, token: Token) -> PriceQuote: ...

    async def read_collateral(self, user: str, token: Token) -> int: ...

    async def read_debt(self, user: str) -> DebtPosition | None: ...

    async def read_outstanding_debt(self, user: str) -> int: ...

    async def read_token_risk_config(self, token: Token) -> RiskConfig: ...

    async def read_account_data(self, user: str) -> AccountData: ...

    async def read_liquidation_params(self) -> LiquidationParams: ...

    async def read_active_borrowers(self) -> list[str]: ...

    async def read_wallet_balance(self, user: str, token: Token) -> Decimal: ...

    async def read_allowance(self, owner: str, token: Token, spender: str) -> int: ...

    async def read_available_liquidity(self, token: Token) -> Decimal: ...

    async def read_supply(self, user: str, token: Token) -> SupplyPosition: ...
