"""Position snapshot builder."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Sequence

from ..config import RiskSettings
from ..interfaces.ledger import LedgerReader
from ..models import CollateralEntry, PositionSnapshot, Token

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Assembles a :class:`PositionSnapshot` from fresh ledger reads.

    Every collateral token is included, even with a zero deposit, so a
    projected deposit always finds its entry and risk parameters.
    """

    def __init__(
        self,
        reader: LedgerReader,
        collateral_tokens: Sequence[Token],
        risk: RiskSettings | None = None,
    ) -> None:
        self._reader = reader
        self._collateral_tokens = tuple(collateral_tokens)
        self._default_threshold = Decimal(
            str((risk or RiskSettings()).default_liquidation_threshold)
        )

    async def _collateral_entry(self, user: str, token: Token) -> CollateralEntry:
        raw, risk_config, price = await asyncio.gather(
            self._reader.read_collateral(user, token),
            self._reader.read_token_risk_config(token),
            self._reader.read_price(token),
        )
        return CollateralEntry(
            token=token,
            deposited=token.to_units(raw),
            ltv_bps=risk_config.ltv_bps,
            liquidation_threshold_bps=risk_config.liquidation_threshold_bps,
            price=price,
        )

    async def get_snapshot(self, user: str) -> PositionSnapshot:
        """Read collateral, debt, prices and liquidation parameters for ``user``."""
        entries = await asyncio.gather(
            *(self._collateral_entry(user, token) for token in self._collateral_tokens)
        )
        debt, account, params = await asyncio.gather(
            self._reader.read_debt(user),
            self._reader.read_account_data(user),
            self._reader.read_liquidation_params(),
        )

        snapshot = PositionSnapshot(
            user=user,
            collateral=tuple(entries),
            debt=debt,
            ledger_health_factor=account.health_factor,
            default_threshold=self._default_threshold,
            close_factor_bps=params.close_factor_bps,
            liquidation_bonus_bps=params.liquidation_bonus_bps,
        )
        logger.debug(
            "Snapshot for %s: collateral $%s, debt $%s",
            user,
            snapshot.collateral_value_usd,
            snapshot.debt_value_usd,
        )
        return snapshot
