"""Test doubles and builders shared across the suite."""
from __future__ import annotations

import textwrap
from decimal import Decimal

from lending_client.models import (
    AccountData,
    CollateralEntry,
    DebtPosition,
    LiquidationParams,
    PriceQuote,
    RiskConfig,
    SupplyPosition,
    Token,
)
from lending_client.tx.models import ContractCall, TxReceipt

COLLATERAL_MANAGER = "0x1111111111111111111111111111111111111111"
LOAN_MANAGER = "0x2222222222222222222222222222222222222222"
PRICE_ORACLE = "0x3333333333333333333333333333333333333333"

USER = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
BORROWER = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
LIQUIDATOR = "0xcccccccccccccccccccccccccccccccccccccccc"


# ---------------------------------------------------------------------------
# Snapshot builders
# ---------------------------------------------------------------------------


def quote(token: Token, price: str | int, fresh: bool = True) -> PriceQuote:
    return PriceQuote(token=token, price=Decimal(price), fresh=fresh)


def collateral(
    token: Token, deposited: str | int, price: str | int, lt_bps: int = 8000, ltv_bps: int = 7200
) -> CollateralEntry:
    return CollateralEntry(
        token=token,
        deposited=Decimal(deposited),
        ltv_bps=ltv_bps,
        liquidation_threshold_bps=lt_bps,
        price=quote(token, price),
    )


def loan(
    token: Token, amount: str | int, price: str | int = 1, interest: str | int = 0
) -> DebtPosition:
    return DebtPosition(
        token=token,
        principal=Decimal(amount),
        accrued_interest=Decimal(interest),
        annual_rate_bps=500,
        origination_time=1_700_000_000,
        duration_seconds=30 * 86400,
        active=True,
        price=quote(token, price),
    )


# ---------------------------------------------------------------------------
# Fake ledger reader
# ---------------------------------------------------------------------------


class FakeLedgerReader:
    """In-memory LedgerReader; every read is counted in ``calls``."""

    def __init__(self) -> None:
        self.prices: dict[str, PriceQuote] = {}
        self.collateral: dict[tuple[str, str], int] = {}
        self.risk: dict[str, RiskConfig] = {}
        self.debts: dict[str, DebtPosition] = {}
        self.outstanding: dict[str, int] = {}
        self.health: dict[str, Decimal] = {}
        self.params = LiquidationParams(close_factor_bps=5000, liquidation_bonus_bps=600)
        self.borrowers: list[str] = []
        self.balances: dict[tuple[str, str], Decimal] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.liquidity: dict[str, Decimal] = {}
        self.supplies: dict[tuple[str, str], SupplyPosition] = {}
        self.calls: list[str] = []

    @staticmethod
    def _k(*parts: str) -> tuple[str, ...]:
        return tuple(p.lower() for p in parts)

    def set_price(self, token: Token, price: str | int, fresh: bool = True) -> None:
        self.prices[token.address.lower()] = quote(token, price, fresh)

    def set_collateral(
        self, user: str, token: Token, amount: str | int, lt_pct: int = 80, ltv_pct: int = 72
    ) -> None:
        self.collateral[self._k(user, token.address)] = token.to_raw(Decimal(amount))
        self.risk[token.address.lower()] = RiskConfig(ltv_pct * 100, lt_pct * 100)

    def set_balance(self, user: str, token: Token, amount: str | int) -> None:
        self.balances[self._k(user, token.address)] = Decimal(amount)

    def set_allowance(self, owner: str, token: Token, spender: str, raw: int) -> None:
        self.allowances[self._k(owner, token.address, spender)] = raw

    async def read_price(self, token: Token) -> PriceQuote:
        self.calls.append("read_price")
        return self.prices.get(token.address.lower(), quote(token, 0, fresh=False))

    async def read_collateral(self, user: str, token: Token) -> int:
        self.calls.append("read_collateral")
        return self.collateral.get(self._k(user, token.address), 0)

    async def read_token_risk_config(self, token: Token) -> RiskConfig:
        self.calls.append("read_token_risk_config")
        return self.risk.get(token.address.lower(), RiskConfig(7200, 8000))

    async def read_debt(self, user: str) -> DebtPosition | None:
        self.calls.append("read_debt")
        return self.debts.get(user.lower())

    async def read_outstanding_debt(self, user: str) -> int:
        self.calls.append("read_outstanding_debt")
        return self.outstanding.get(user.lower(), 0)

    async def read_account_data(self, user: str) -> AccountData:
        self.calls.append("read_account_data")
        return AccountData(
            total_collateral_usd=Decimal(0),
            max_loan_usd=Decimal(0),
            debt_usd=Decimal(0),
            health_factor=self.health.get(user.lower(), Decimal(999)),
        )

    async def read_liquidation_params(self) -> LiquidationParams:
        self.calls.append("read_liquidation_params")
        return self.params

    async def read_active_borrowers(self) -> list[str]:
        self.calls.append("read_active_borrowers")
        return list(self.borrowers)

    async def read_wallet_balance(self, user: str, token: Token) -> Decimal:
        self.calls.append("read_wallet_balance")
        return self.balances.get(self._k(user, token.address), Decimal(0))

    async def read_allowance(self, owner: str, token: Token, spender: str) -> int:
        self.calls.append("read_allowance")
        return self.allowances.get(self._k(owner, token.address, spender), 0)

    async def read_available_liquidity(self, token: Token) -> Decimal:
        self.calls.append("read_available_liquidity")
        return self.liquidity.get(token.address.lower(), Decimal(0))

    async def read_supply(self, user: str, token: Token) -> SupplyPosition:
        self.calls.append("read_supply")
        return self.supplies.get(
            self._k(user, token.address),
            SupplyPosition(
                token=token, deposited=Decimal(0), deposit_time=0, reward_claimed=Decimal(0)
            ),
        )


# ---------------------------------------------------------------------------
# Fake signing backend
# ---------------------------------------------------------------------------


class RecordingBackend:
    """SigningBackend double that records every call.

    ``send_errors`` / ``wait_errors`` map a step's method name to the
    exception raised for it.
    """

    name = "recording"

    def __init__(
        self,
        switch_error: Exception | None = None,
        send_errors: dict[str, Exception] | None = None,
        wait_errors: dict[str, Exception] | None = None,
    ) -> None:
        self.switch_error = switch_error
        self.send_errors = send_errors or {}
        self.wait_errors = wait_errors or {}
        self.switched_to: list[int] = []
        self.sent: list[ContractCall] = []
        self.waited: list[str] = []
        self._hash_methods: dict[str, str] = {}

    async def request_switch(self, chain_id: int) -> None:
        self.switched_to.append(chain_id)
        if self.switch_error:
            raise self.switch_error

    async def send(self, call: ContractCall) -> str:
        if call.method in self.send_errors:
            raise self.send_errors[call.method]
        self.sent.append(call)
        tx_hash = f"0x{len(self.sent):064x}"
        self._hash_methods[tx_hash] = call.method
        return tx_hash

    async def wait(self, tx_hash: str) -> TxReceipt:
        self.waited.append(tx_hash)
        method = self._hash_methods[tx_hash]
        if method in self.wait_errors:
            raise self.wait_errors[method]
        return TxReceipt(tx_hash=tx_hash, success=True, block_number=1)

    @property
    def sent_methods(self) -> list[str]:
        return [c.method for c in self.sent]


# ---------------------------------------------------------------------------
# Config YAML
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    chain:
      chain_id: 5042002
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    contracts:
      collateral_manager: "{COLLATERAL_MANAGER}"
      loan_manager: "{LOAN_MANAGER}"
      price_oracle: "{PRICE_ORACLE}"
    tokens:
      - symbol: ETH
        address: "0x4444444444444444444444444444444444444444"
        decimals: 18
        collateral: true
      - symbol: USDC
        address: "0x6666666666666666666666666666666666666666"
        decimals: 6
    transactions:
      poll_interval_seconds: 0.5
      settlement_delay_seconds: 3
    monitor:
      check_interval_minutes: 10
      watch_addresses: ["{BORROWER}"]
    notifications:
      telegram:
        enabled: true
        bot_token: "tok"
        chat_id: 999
""")
