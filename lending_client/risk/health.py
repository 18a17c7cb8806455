"""Health factor engine.

Pure functions over :class:`PositionSnapshot`. Nothing here touches the
network or mutates its inputs; all arithmetic is done in ``Decimal``.

    health_factor = collateral_usd * weighted_threshold / debt_usd

A position with no debt reports ``SENTINEL_MAX``.
"""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from ..errors import PriceUnavailableError, ValidationError
from ..models import (
    BPS,
    ActionKind,
    CollateralEntry,
    DebtPosition,
    PendingAction,
    PositionSnapshot,
    PriceQuote,
    ProjectedSnapshot,
    RiskTier,
    Token,
)

SENTINEL_MAX = Decimal(999)
LIQUIDATION_HF = Decimal(1)
WARNING_HF = Decimal("1.2")

HF_DECIMALS = 18
YEAR_SECONDS = 365 * 24 * 60 * 60

_ZERO = Decimal(0)


def risk_tier(health_factor: Decimal) -> RiskTier:
    if health_factor < LIQUIDATION_HF:
        return RiskTier.LIQUIDATABLE
    if health_factor < WARNING_HF:
        return RiskTier.WARNING
    return RiskTier.SAFE


def require_prices(snapshot: PositionSnapshot) -> None:
    """Raise PriceUnavailableError if any price the health factor needs is unusable."""
    for entry in snapshot.collateral:
        if entry.deposited > 0 and not entry.price.usable:
            raise PriceUnavailableError(entry.token.symbol)
    if snapshot.has_debt:
        debt = snapshot.debt
        if debt.price is None or not debt.price.usable:
            raise PriceUnavailableError(debt.token.symbol)


def _value_weighted(entries: tuple[CollateralEntry, ...]) -> Decimal | None:
    """Σ(value_i × LT_i) / Σ value_i, or None when it cannot be computed."""
    funded = [e for e in entries if e.deposited > 0]
    if not funded or any(e.liquidation_threshold_bps <= 0 for e in funded):
        return None
    total = sum((e.value_usd for e in funded), _ZERO)
    if total <= 0:
        return None
    weighted = sum((e.value_usd * e.liquidation_threshold for e in funded), _ZERO)
    return weighted / total


def weighted_threshold(snapshot: PositionSnapshot) -> Decimal:
    """Effective liquidation threshold of the whole position.

    Falls back to back-solving from the ledger's own health factor
    (an approximation) and finally to the configured default.
    """
    threshold = _value_weighted(snapshot.collateral)
    if threshold is not None:
        return threshold

    ledger_hf = snapshot.ledger_health_factor
    collateral = snapshot.collateral_value_usd
    debt = snapshot.debt_value_usd
    if (
        ledger_hf is not None
        and _ZERO < ledger_hf < SENTINEL_MAX
        and collateral > 0
        and debt > 0
    ):
        return ledger_hf * debt / collateral

    return snapshot.default_threshold


def _health(collateral_usd: Decimal, debt_usd: Decimal, threshold: Decimal) -> Decimal:
    if debt_usd <= 0:
        return SENTINEL_MAX
    if collateral_usd <= 0:
        return _ZERO
    return collateral_usd * threshold / debt_usd


def health_factor(snapshot: PositionSnapshot) -> Decimal:
    if not snapshot.has_debt:
        return SENTINEL_MAX
    require_prices(snapshot)
    return _health(
        snapshot.collateral_value_usd,
        snapshot.debt_value_usd,
        weighted_threshold(snapshot),
    )


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def _same_token(a: Token, b: Token) -> bool:
    return a.address.lower() == b.address.lower()


def _quote_for(snapshot: PositionSnapshot, action: PendingAction) -> PriceQuote:
    quote = action.price
    if quote is None:
        entry = snapshot.collateral_for(action.token)
        if entry is not None:
            quote = entry.price
        elif snapshot.debt is not None and _same_token(snapshot.debt.token, action.token):
            quote = snapshot.debt.price
    if quote is None or not quote.usable:
        raise PriceUnavailableError(action.token.symbol)
    return quote


def _adjust_collateral(
    snapshot: PositionSnapshot, token: Token, delta: Decimal
) -> tuple[CollateralEntry, ...]:
    entry = snapshot.collateral_for(token)
    if entry is None:
        raise ValidationError(f"{token.symbol} is not an accepted collateral token")
    updated = replace(entry, deposited=max(entry.deposited + delta, _ZERO))
    return tuple(updated if e is entry else e for e in snapshot.collateral)


def _reduce_debt(debt: DebtPosition, amount: Decimal) -> DebtPosition:
    # Repayments settle accrued interest before principal
    interest_paid = min(amount, debt.accrued_interest)
    principal_paid = amount - interest_paid
    return replace(
        debt,
        accrued_interest=debt.accrued_interest - interest_paid,
        principal=max(debt.principal - principal_paid, _ZERO),
    )


def _require_debt_token(snapshot: PositionSnapshot, token: Token) -> DebtPosition:
    debt = snapshot.debt
    if debt is None or not debt.active:
        raise ValidationError("There is no active loan to repay")
    if not _same_token(debt.token, token):
        raise ValidationError(f"The active loan is denominated in {debt.token.symbol}")
    return debt


def _apply(snapshot: PositionSnapshot, action: PendingAction) -> PositionSnapshot:
    kind = action.kind
    amount = action.amount

    if kind is ActionKind.DEPOSIT:
        return replace(snapshot, collateral=_adjust_collateral(snapshot, action.token, amount))

    if kind is ActionKind.WITHDRAW:
        return replace(snapshot, collateral=_adjust_collateral(snapshot, action.token, -amount))

    if kind is ActionKind.BORROW:
        quote = _quote_for(snapshot, action)
        debt = snapshot.debt
        if debt is None or not debt.active:
            debt = DebtPosition(
                token=action.token,
                principal=amount,
                accrued_interest=_ZERO,
                annual_rate_bps=0,
                origination_time=0,
                duration_seconds=0,
                active=True,
                price=quote,
            )
        elif _same_token(debt.token, action.token):
            debt = replace(debt, principal=debt.principal + amount)
        else:
            raise ValidationError(
                f"An active loan in {debt.token.symbol} already exists"
            )
        return replace(snapshot, debt=debt)

    if kind is ActionKind.REPAY:
        debt = _require_debt_token(snapshot, action.token)
        return replace(snapshot, debt=_reduce_debt(debt, amount))

    if kind is ActionKind.REPAY_ALL:
        return replace(snapshot, debt=None)

    if kind is ActionKind.LIQUIDATE:
        if action.seize_token is None:
            raise ValidationError("Liquidation needs a collateral token to seize")
        debt = _require_debt_token(snapshot, action.token)
        repay_value = amount * _quote_for(snapshot, action).price

        seized = snapshot.collateral_for(action.seize_token)
        if seized is None:
            raise ValidationError(
                f"{action.seize_token.symbol} is not held as collateral"
            )
        if not seized.price.usable:
            raise PriceUnavailableError(seized.token.symbol)
        bonus = Decimal(1) + Decimal(snapshot.liquidation_bonus_bps) / BPS
        seized_units = repay_value * bonus / seized.price.price

        return replace(
            snapshot,
            collateral=_adjust_collateral(snapshot, action.seize_token, -seized_units),
            debt=_reduce_debt(debt, amount),
        )

    raise ValidationError(f"Unsupported action: {kind}")


def project(snapshot: PositionSnapshot, action: PendingAction) -> ProjectedSnapshot:
    """Apply ``action`` to a copy of ``snapshot`` and recompute the health factor."""
    if action.amount < 0:
        raise ValidationError("Amount must be positive")

    current = health_factor(snapshot)
    if action.kind in (ActionKind.DEPOSIT, ActionKind.WITHDRAW):
        _quote_for(snapshot, action)

    projected = _apply(snapshot, action)
    # The ledger's own figure only describes the position before the action
    projected = replace(projected, ledger_health_factor=None)
    if _value_weighted(projected.collateral) is None:
        projected = replace(projected, default_threshold=weighted_threshold(snapshot))

    hf = health_factor(projected)
    return ProjectedSnapshot(
        snapshot=projected,
        action=action,
        current_health_factor=current,
        health_factor=hf,
        tier=risk_tier(hf),
    )


# ---------------------------------------------------------------------------
# Borrowing power and display helpers
# ---------------------------------------------------------------------------


def max_borrow_usd(snapshot: PositionSnapshot) -> Decimal:
    """Remaining borrowing power in USD: Σ value_i × LTV_i − debt, floored at 0."""
    require_prices(snapshot)
    capacity = sum((e.value_usd * e.ltv for e in snapshot.collateral), _ZERO)
    return max(capacity - snapshot.debt_value_usd, _ZERO)


def max_safe_withdraw(
    snapshot: PositionSnapshot, token: Token, target: Decimal = WARNING_HF
) -> Decimal:
    """Largest amount of ``token`` that keeps the health factor at ``target``."""
    entry = snapshot.collateral_for(token)
    if entry is None or entry.deposited <= 0:
        return _ZERO
    if not snapshot.has_debt:
        return entry.deposited

    require_prices(snapshot)
    if _value_weighted(snapshot.collateral) is not None:
        weighted_sum = sum(
            (e.value_usd * e.liquidation_threshold for e in snapshot.collateral), _ZERO
        )
        token_threshold = entry.liquidation_threshold
    else:
        token_threshold = weighted_threshold(snapshot)
        weighted_sum = snapshot.collateral_value_usd * token_threshold

    headroom = weighted_sum - Decimal(target) * snapshot.debt_value_usd
    if headroom <= 0 or token_threshold <= 0:
        return _ZERO
    amount = headroom / (entry.price.price * token_threshold)
    return min(amount, entry.deposited)


def estimate_accrued_interest(
    principal: Decimal, annual_rate_bps: int, created_at: int, now: int
) -> Decimal:
    """Simple-interest estimate used only until the ledger is re-read."""
    elapsed = max(now - created_at, 0)
    return Decimal(principal) * annual_rate_bps * elapsed / (BPS * YEAR_SECONDS)


def clamp_ledger_health_factor(raw: int) -> Decimal:
    """Scale the ledger's 18-decimal health factor; "infinite" values become the sentinel."""
    value = Decimal(raw).scaleb(-HF_DECIMALS)
    return min(value, SENTINEL_MAX)


def display_price(quote: PriceQuote | None, fallback: Decimal = Decimal(1)) -> Decimal:
    """Price for display only.

    Unusable quotes show ``fallback`` so balances still render. Never use
    this for health factors or eligibility checks.
    """
    if quote is None or not quote.usable:
        return fallback
    return quote.price
