"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

BPS = 10_000


@dataclass(frozen=True)
class Token:
    """Token descriptor."""

    address: str
    symbol: str
    decimals: int
    name: str = ""
    is_collateral: bool = False
    is_native: bool = False

    def to_units(self, raw: int) -> Decimal:
        """Convert a raw on-chain integer amount to token units."""
        return Decimal(raw).scaleb(-self.decimals)

    def to_raw(self, amount: Decimal) -> int:
        """Convert token units to a raw on-chain integer (truncating dust)."""
        return int(Decimal(amount).scaleb(self.decimals))


@dataclass(frozen=True)
class PriceQuote:
    """USD price of a token as reported by the oracle."""

    token: Token
    price: Decimal
    fresh: bool = True

    @property
    def usable(self) -> bool:
        return self.fresh and self.price > 0


@dataclass(frozen=True)
class RiskConfig:
    """Per-token risk parameters reported by the ledger, in basis points."""

    ltv_bps: int
    liquidation_threshold_bps: int
    allowed: bool = True


@dataclass(frozen=True)
class CollateralEntry:
    """Deposited collateral for one token."""

    token: Token
    deposited: Decimal
    ltv_bps: int
    liquidation_threshold_bps: int
    price: PriceQuote

    @property
    def value_usd(self) -> Decimal:
        return self.deposited * self.price.price

    @property
    def liquidation_threshold(self) -> Decimal:
        return Decimal(self.liquidation_threshold_bps) / BPS

    @property
    def ltv(self) -> Decimal:
        return Decimal(self.ltv_bps) / BPS


@dataclass(frozen=True)
class DebtPosition:
    """The user's single outstanding loan.

    ``accrued_interest`` is the ledger's figure (outstanding minus principal);
    it is never derived locally except for optimistic display.
    """

    token: Token
    principal: Decimal
    accrued_interest: Decimal
    annual_rate_bps: int
    origination_time: int
    duration_seconds: int
    active: bool
    price: PriceQuote | None = None

    @property
    def outstanding(self) -> Decimal:
        return self.principal + self.accrued_interest

    @property
    def maturity_time(self) -> int:
        return self.origination_time + self.duration_seconds


@dataclass(frozen=True)
class AccountData:
    """Aggregate figures from ``getUserCollateralData``."""

    total_collateral_usd: Decimal
    max_loan_usd: Decimal
    debt_usd: Decimal
    health_factor: Decimal


@dataclass(frozen=True)
class LiquidationParams:
    close_factor_bps: int
    liquidation_bonus_bps: int


@dataclass(frozen=True)
class SupplyPosition:
    """A lender's pool deposit."""

    token: Token
    deposited: Decimal
    deposit_time: int
    reward_claimed: Decimal


class ActionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    REPAY_ALL = "repay_all"
    LIQUIDATE = "liquidate"


class RiskTier(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    LIQUIDATABLE = "liquidatable"


@dataclass(frozen=True)
class PendingAction:
    """A hypothetical, not-yet-submitted change to a position.

    ``price`` overrides the snapshot price for ``token`` (e.g. a borrow of a
    token that is neither collateral nor current debt). ``seize_token`` is
    only meaningful for LIQUIDATE.
    """

    kind: ActionKind
    token: Token
    amount: Decimal
    price: PriceQuote | None = None
    seize_token: Token | None = None


@dataclass(frozen=True)
class PositionSnapshot:
    """A user's position at one point in time.

    Rebuilt from ledger reads on every refresh and never mutated. The health
    factor is derived by :mod:`lending_client.risk.health`, not stored.
    """

    user: str
    collateral: tuple[CollateralEntry, ...] = ()
    debt: DebtPosition | None = None
    ledger_health_factor: Decimal | None = None
    default_threshold: Decimal = Decimal("0.75")
    close_factor_bps: int = BPS
    liquidation_bonus_bps: int = 0

    @property
    def collateral_value_usd(self) -> Decimal:
        return sum((c.value_usd for c in self.collateral), Decimal(0))

    @property
    def debt_value_usd(self) -> Decimal:
        if self.debt is None or not self.debt.active or self.debt.price is None:
            return Decimal(0)
        return self.debt.outstanding * self.debt.price.price

    @property
    def has_debt(self) -> bool:
        return self.debt is not None and self.debt.active and self.debt.outstanding > 0

    def collateral_for(self, token: Token) -> CollateralEntry | None:
        for entry in self.collateral:
            if entry.token.address.lower() == token.address.lower():
                return entry
        return None


@dataclass(frozen=True)
class ProjectedSnapshot:
    """Result of applying a :class:`PendingAction` to a snapshot."""

    snapshot: PositionSnapshot
    action: PendingAction
    current_health_factor: Decimal
    health_factor: Decimal
    tier: RiskTier

    @property
    def collateral_value_usd(self) -> Decimal:
        return self.snapshot.collateral_value_usd

    @property
    def debt_value_usd(self) -> Decimal:
        return self.snapshot.debt_value_usd

    @property
    def is_safe(self) -> bool:
        """False when the action would leave the position liquidatable."""
        return self.tier is not RiskTier.LIQUIDATABLE
