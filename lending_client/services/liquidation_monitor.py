"""Liquidation monitor — watches borrowers, classifies them and liquidates."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator

from ..chains.evm.client import EvmRpcClient
from ..config import AppConfig
from ..errors import NotLiquidatableError, PriceUnavailableError, ValidationError
from ..interfaces.ledger import LedgerReader
from ..interfaces.notifier import Notifier
from ..interfaces.signing import SigningBackend
from ..ledger.calls import LedgerCalls
from ..ledger.reader import ContractLedgerReader
from ..models import BPS, PositionSnapshot, RiskTier, Token
from ..notifications import TelegramNotifier
from ..risk.health import SENTINEL_MAX, health_factor, risk_tier
from ..risk.snapshot import SnapshotBuilder
from ..risk.validation import parse_amount, require_address, require_within
from ..tx.models import Approval, JobEvent, TransactionJob
from ..tx.orchestrator import TransactionOrchestrator, plan_steps
from .watchlist import WatchSet, WatchSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BorrowerRisk:
    """Classification of one watched address."""

    address: str
    health_factor: Decimal
    tier: RiskTier
    collateral_value_usd: Decimal
    debt_value_usd: Decimal


def classify_snapshot(snapshot: PositionSnapshot) -> BorrowerRisk:
    hf = health_factor(snapshot)
    # 0 (no collateral left) and the sentinel are both reported as safe
    tier = RiskTier.SAFE if hf == 0 or hf >= SENTINEL_MAX else risk_tier(hf)
    return BorrowerRisk(
        address=snapshot.user,
        health_factor=hf,
        tier=tier,
        collateral_value_usd=snapshot.collateral_value_usd,
        debt_value_usd=snapshot.debt_value_usd,
    )


class LiquidationMonitor:
    """Owns the watch-set and drives liquidations through the orchestrator."""

    def __init__(
        self,
        reader: LedgerReader,
        snapshots: SnapshotBuilder,
        calls: LedgerCalls,
        orchestrator: TransactionOrchestrator,
        notifiers: list[Notifier] | None = None,
        check_interval_minutes: int = 5,
    ) -> None:
        self._reader = reader
        self._snapshots = snapshots
        self._calls = calls
        self._orchestrator = orchestrator
        self._notifiers = list(notifiers or [])
        self._check_interval_minutes = check_interval_minutes
        self._watch = WatchSet()

    @classmethod
    def from_config(cls, config: AppConfig) -> "LiquidationMonitor":
        reader = ContractLedgerReader(
            EvmRpcClient(config.chain), config.contracts, config.tokens, config.risk
        )
        notifiers: list[Notifier] = []
        if config.notifications.telegram.enabled:
            notifiers.append(TelegramNotifier(config.notifications.telegram))

        monitor = cls(
            reader=reader,
            snapshots=SnapshotBuilder(reader, config.collateral_tokens, config.risk),
            calls=LedgerCalls(config.contracts),
            orchestrator=TransactionOrchestrator.from_config(config),
            notifiers=notifiers,
            check_interval_minutes=config.monitor.check_interval_minutes,
        )
        for address in config.monitor.watch_addresses:
            monitor.add_address(address)
        return monitor

    @property
    def watch_set(self) -> WatchSet:
        return self._watch

    # ------------------------------------------------------------------
    # Watch-set
    # ------------------------------------------------------------------

    def add_address(self, address: str) -> str:
        checksummed = self._watch.add(address)
        logger.info("Watching %s", checksummed)
        return checksummed

    def remove_address(self, address: str) -> None:
        self._watch.remove(address)
        logger.info("Stopped watching %s", address)

    async def refresh_borrowers(self) -> int:
        """Sync the watch-set with the ledger's active borrowers."""
        borrowers = await self._reader.read_active_borrowers()
        added = self._watch.merge_ledger(borrowers)
        logger.info(
            "Ledger reports %d active borrower(s), %d new", len(borrowers), added
        )
        return added

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    async def classify(self, address: str) -> BorrowerRisk:
        """Classify ``address`` on a fresh snapshot.

        Raises PriceUnavailableError rather than guessing with a stale price.
        """
        snapshot = await self._snapshots.get_snapshot(address)
        return classify_snapshot(snapshot)

    async def scan(self) -> list[BorrowerRisk]:
        """Classify every watched address, skipping those without usable prices."""
        results: list[BorrowerRisk] = []
        for address in list(self._watch):
            try:
                results.append(await self.classify(address))
            except PriceUnavailableError as e:
                logger.warning("Skipping %s: %s", address, e)
        return results

    async def at_risk(self) -> list[BorrowerRisk]:
        """WARNING and LIQUIDATABLE rows, most at risk first."""
        rows = [r for r in await self.scan() if r.tier is not RiskTier.SAFE]
        return sorted(rows, key=lambda r: r.health_factor)

    # ------------------------------------------------------------------
    # Liquidation
    # ------------------------------------------------------------------

    async def liquidate(
        self,
        borrower: str,
        repay_token: Token,
        repay_amount: Any,
        seize_token: Token,
        backend: SigningBackend,
        liquidator: str,
    ) -> AsyncIterator[JobEvent]:
        """Re-check eligibility, then stream the APPROVE + liquidate job events."""
        require_address(borrower)
        require_address(liquidator)
        repay_amount = parse_amount(repay_amount)

        snapshot = await self._snapshots.get_snapshot(borrower)
        risk = classify_snapshot(snapshot)
        if risk.tier is not RiskTier.LIQUIDATABLE:
            raise NotLiquidatableError(
                f"{borrower} is not liquidatable (health factor {risk.health_factor:.4f})"
            )

        debt = snapshot.debt
        if debt.token.address.lower() != repay_token.address.lower():
            raise ValidationError(f"The borrower's debt is in {debt.token.symbol}")
        max_repay = debt.outstanding * snapshot.close_factor_bps / BPS
        require_within(repay_amount, max_repay, "the close factor limit")

        seized = snapshot.collateral_for(seize_token)
        if seized is None or seized.deposited <= 0:
            raise ValidationError(f"The borrower holds no {seize_token.symbol} collateral")

        balance = await self._reader.read_wallet_balance(liquidator, repay_token)
        require_within(repay_amount, balance, "wallet balance")

        raw_amount = repay_token.to_raw(repay_amount)
        spender = self._calls.collateral_manager
        allowance = await self._reader.read_allowance(liquidator, repay_token, spender)
        label = f"Liquidate {borrower}"
        steps = plan_steps(
            self._calls.liquidate(borrower, repay_token, raw_amount, seize_token),
            Approval(repay_token, spender, raw_amount),
            allowance,
            label,
        )
        job = TransactionJob(steps=steps, backend=backend, label=label)

        async for event in self._orchestrator.submit(job):
            yield event

    # ------------------------------------------------------------------
    # Alerting
    # ------------------------------------------------------------------

    @staticmethod
    def _format_wallet(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def _build_alert(self, risk: BorrowerRisk) -> tuple[str, str]:
        if risk.tier is RiskTier.LIQUIDATABLE:
            headline = f"🚨 LIQUIDATABLE — HF {risk.health_factor:.2f}"
            subject = "🚨 Position liquidatable"
        else:
            headline = f"⚠️ WARNING — HF {risk.health_factor:.2f}"
            subject = "⚠️ Position at risk"
        source = self._watch.source_of(risk.address)
        origin = "ledger borrower" if source is WatchSource.LEDGER else "watched"
        message = (
            f"{headline}\n"
            f"\n"
            f"Wallet: {self._format_wallet(risk.address)} ({origin})\n"
            f"Collateral: ${risk.collateral_value_usd:,.2f}\n"
            f"Debt: ${risk.debt_value_usd:,.2f}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )
        return message, subject

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    async def check_and_alert(self) -> list[BorrowerRisk]:
        """Refresh borrowers, classify them and alert on WARNING/LIQUIDATABLE."""
        await self.refresh_borrowers()
        rows = await self.at_risk()
        for risk in rows:
            logger.info(
                "At risk — %s · HF: %.4f · %s",
                risk.address, risk.health_factor, risk.tier.value,
            )
            message, subject = self._build_alert(risk)
            await self._send_alert(message, subject=subject)
        return rows

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Run the monitoring loop until cancelled."""
        interval = check_interval_minutes or self._check_interval_minutes
        logger.info("Starting liquidation monitor (checking every %d minutes)", interval)

        while True:
            try:
                await self.check_and_alert()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in monitoring loop: %s", e)
                await asyncio.sleep(60)
