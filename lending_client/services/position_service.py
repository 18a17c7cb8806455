"""User-facing facade: snapshots, projections and job builders."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, AsyncIterator

from web3 import AsyncWeb3

from ..chains.evm.client import EvmRpcClient
from ..config import AppConfig
from ..errors import PriceUnavailableError, UnsafeActionError, ValidationError
from ..interfaces.ledger import LedgerReader
from ..interfaces.signing import JsonRpcProvider, SigningBackend
from ..ledger.calls import LedgerCalls
from ..ledger.reader import ContractLedgerReader
from ..models import BPS, ActionKind, PendingAction, PositionSnapshot, ProjectedSnapshot, Token
from ..risk import health
from ..risk.snapshot import SnapshotBuilder
from ..risk.validation import parse_amount, require_duration, require_within
from ..tx.backends import DelegatedProviderBackend, StandardWalletBackend
from ..tx.models import Approval, ContractCall, JobEvent, TransactionJob
from ..tx.orchestrator import TransactionOrchestrator, plan_steps

logger = logging.getLogger(__name__)


class PositionService:
    """Builds validated transaction jobs for every user action.

    Builders raise :class:`ValidationError` (or :class:`UnsafeActionError`)
    before any job exists; the returned job is submitted separately.
    """

    def __init__(
        self,
        config: AppConfig,
        reader: LedgerReader,
        snapshots: SnapshotBuilder,
        calls: LedgerCalls,
        orchestrator: TransactionOrchestrator,
    ) -> None:
        self._config = config
        self._reader = reader
        self._snapshots = snapshots
        self._calls = calls
        self._orchestrator = orchestrator

    @classmethod
    def from_config(cls, config: AppConfig) -> "PositionService":
        reader = ContractLedgerReader(
            EvmRpcClient(config.chain), config.contracts, config.tokens, config.risk
        )
        return cls(
            config=config,
            reader=reader,
            snapshots=SnapshotBuilder(reader, config.collateral_tokens, config.risk),
            calls=LedgerCalls(config.contracts),
            orchestrator=TransactionOrchestrator.from_config(config),
        )

    @property
    def orchestrator(self) -> TransactionOrchestrator:
        return self._orchestrator

    # ------------------------------------------------------------------
    # Signing backends
    # ------------------------------------------------------------------

    def wallet_backend(self, w3: AsyncWeb3, account: str) -> StandardWalletBackend:
        return StandardWalletBackend(
            w3, account, self._config.transactions.wallet_receipt_timeout_seconds
        )

    def delegated_backend(
        self, provider: JsonRpcProvider, from_address: str
    ) -> DelegatedProviderBackend:
        tx_cfg = self._config.transactions
        return DelegatedProviderBackend(
            provider,
            from_address,
            poll_interval=tx_cfg.poll_interval_seconds,
            max_attempts=tx_cfg.max_poll_attempts,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_snapshot(self, user: str) -> PositionSnapshot:
        return await self._snapshots.get_snapshot(user)

    @staticmethod
    def project(snapshot: PositionSnapshot, action: PendingAction) -> ProjectedSnapshot:
        return health.project(snapshot, action)

    async def max_safe_withdraw(self, user: str, token: Token) -> Decimal:
        snapshot = await self._snapshots.get_snapshot(user)
        target = Decimal(str(self._config.risk.safe_withdraw_target))
        return health.max_safe_withdraw(snapshot, token, target)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_job(self, job: TransactionJob) -> AsyncIterator[JobEvent]:
        return self._orchestrator.submit(job)

    async def run_job(self, job: TransactionJob) -> JobEvent:
        return await self._orchestrator.run(job)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _build_job(
        self,
        act_call: ContractCall,
        backend: SigningBackend,
        label: str,
        owner: str,
        approval: Approval | None = None,
    ) -> TransactionJob:
        allowance = 0
        if approval is not None and not approval.token.is_native:
            allowance = await self._reader.read_allowance(
                owner, approval.token, approval.spender
            )
        steps = plan_steps(act_call, approval, allowance, label)
        logger.debug("Built '%s' with %d step(s)", label, len(steps))
        return TransactionJob(steps=steps, backend=backend, label=label)

    @staticmethod
    def _guard(projection: ProjectedSnapshot) -> None:
        if not projection.is_safe:
            hf = projection.health_factor
            raise UnsafeActionError(
                f"Action would leave the position liquidatable (health factor {hf:.2f})",
                hf,
            )

    async def _require_balance(self, user: str, token: Token, amount: Decimal) -> None:
        balance = await self._reader.read_wallet_balance(user, token)
        require_within(amount, balance, "wallet balance")

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    async def deposit_collateral(
        self, user: str, token: Token, amount: Any, backend: SigningBackend
    ) -> TransactionJob:
        amount = parse_amount(amount)
        if not token.is_collateral:
            raise ValidationError(f"{token.symbol} is not accepted as collateral")
        await self._require_balance(user, token, amount)

        raw = token.to_raw(amount)
        spender = self._calls.collateral_manager
        return await self._build_job(
            self._calls.deposit_collateral(token, raw),
            backend,
            f"Deposit {amount} {token.symbol}",
            user,
            Approval(token, spender, raw),
        )

    async def withdraw_collateral(
        self, user: str, token: Token, amount: Any, backend: SigningBackend
    ) -> TransactionJob:
        amount = parse_amount(amount)
        snapshot = await self._snapshots.get_snapshot(user)
        entry = snapshot.collateral_for(token)
        deposited = entry.deposited if entry else Decimal(0)
        require_within(amount, deposited, "deposited collateral")

        self._guard(health.project(snapshot, PendingAction(ActionKind.WITHDRAW, token, amount)))
        return await self._build_job(
            self._calls.withdraw_collateral(token, token.to_raw(amount)),
            backend,
            f"Withdraw {amount} {token.symbol}",
            user,
        )

    # ------------------------------------------------------------------
    # Pool liquidity
    # ------------------------------------------------------------------

    async def supply(
        self, user: str, token: Token, amount: Any, backend: SigningBackend
    ) -> TransactionJob:
        amount = parse_amount(amount)
        await self._require_balance(user, token, amount)

        raw = token.to_raw(amount)
        return await self._build_job(
            self._calls.supply(token, raw),
            backend,
            f"Supply {amount} {token.symbol}",
            user,
            Approval(token, self._calls.loan_manager, raw),
        )

    async def _require_withdrawable(self, user: str, token: Token, amount: Decimal) -> None:
        position = await self._reader.read_supply(user, token)
        require_within(amount, position.deposited, "supplied balance")
        liquidity = await self._reader.read_available_liquidity(token)
        if amount > liquidity:
            raise ValidationError(
                f"Insufficient liquidity: only {liquidity} {token.symbol} available"
            )

    async def withdraw_supply(
        self, user: str, token: Token, amount: Any, backend: SigningBackend
    ) -> TransactionJob:
        amount = parse_amount(amount)
        await self._require_withdrawable(user, token, amount)
        return await self._build_job(
            self._calls.withdraw_supply(token, token.to_raw(amount)),
            backend,
            f"Withdraw {amount} {token.symbol} from pool",
            user,
        )

    async def withdraw_all_supply(
        self, user: str, token: Token, backend: SigningBackend
    ) -> TransactionJob:
        position = await self._reader.read_supply(user, token)
        if position.deposited <= 0:
            raise ValidationError(f"No {token.symbol} supplied to the pool")
        await self._require_withdrawable(user, token, position.deposited)
        return await self._build_job(
            self._calls.withdraw_all_supply(token),
            backend,
            f"Withdraw all {token.symbol} from pool",
            user,
        )

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    async def borrow(
        self,
        user: str,
        token: Token,
        amount: Any,
        backend: SigningBackend,
        duration_days: int | None = None,
    ) -> TransactionJob:
        amount = parse_amount(amount)
        days = require_duration(
            duration_days or self._config.transactions.default_loan_duration_days
        )

        liquidity = await self._reader.read_available_liquidity(token)
        if amount > liquidity:
            raise ValidationError(
                f"Insufficient liquidity: only {liquidity} {token.symbol} available"
            )

        snapshot = await self._snapshots.get_snapshot(user)
        quote = await self._reader.read_price(token)
        if not quote.usable:
            raise PriceUnavailableError(token.symbol)
        if amount * quote.price > health.max_borrow_usd(snapshot):
            raise ValidationError("Amount exceeds available borrowing capacity")

        action = PendingAction(ActionKind.BORROW, token, amount, price=quote)
        self._guard(health.project(snapshot, action))
        return await self._build_job(
            self._calls.borrow(token, token.to_raw(amount), days),
            backend,
            f"Borrow {amount} {token.symbol}",
            user,
        )

    async def repay(
        self, user: str, token: Token, amount: Any, backend: SigningBackend
    ) -> TransactionJob:
        amount = parse_amount(amount)
        debt = await self._reader.read_debt(user)
        if debt is None:
            raise ValidationError("There is no active loan to repay")
        if debt.token.address.lower() != token.address.lower():
            raise ValidationError(f"The active loan is denominated in {debt.token.symbol}")
        require_within(amount, debt.outstanding, "outstanding debt")
        await self._require_balance(user, token, amount)

        raw = token.to_raw(amount)
        return await self._build_job(
            self._calls.repay(token, raw),
            backend,
            f"Repay {amount} {token.symbol}",
            user,
            Approval(token, self._calls.loan_manager, raw),
        )

    async def repay_all(
        self, user: str, token: Token, backend: SigningBackend
    ) -> TransactionJob:
        """Repay the whole loan; the approval carries a buffer for interest
        accrued between the read and the transaction landing."""
        debt = await self._reader.read_debt(user)
        if debt is None:
            raise ValidationError("There is no active loan to repay")
        if debt.token.address.lower() != token.address.lower():
            raise ValidationError(f"The active loan is denominated in {debt.token.symbol}")
        token = debt.token

        outstanding = await self._reader.read_outstanding_debt(user)
        if outstanding <= 0:
            raise ValidationError("There is no active loan to repay")
        await self._require_balance(user, token, token.to_units(outstanding))

        buffer_bps = self._config.transactions.repay_all_buffer_bps
        approve_amount = outstanding * (BPS + buffer_bps) // BPS
        return await self._build_job(
            self._calls.repay_all(token),
            backend,
            f"Repay all {token.symbol}",
            user,
            Approval(token, self._calls.loan_manager, approve_amount),
        )
