"""Contract-backed ledger reader — prices, balances, positions."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Sequence

from ..chains.evm import abi
from ..chains.evm.client import EvmRpcClient
from ..config import ContractsConfig, RiskSettings
from ..errors import RpcError
from ..models import (
    AccountData,
    DebtPosition,
    LiquidationParams,
    PriceQuote,
    RiskConfig,
    SupplyPosition,
    Token,
)
from ..risk.health import clamp_ledger_health_factor

logger = logging.getLogger(__name__)

# Oracle prices and USD aggregates carry 8 fractional digits
USD_DECIMALS = 8
MAX_UINT256 = 2**256 - 1


class ContractLedgerReader:
    """Read-only view of the lending contracts over JSON-RPC."""

    def __init__(
        self,
        client: EvmRpcClient,
        contracts: ContractsConfig,
        tokens: Sequence[Token],
        risk: RiskSettings | None = None,
    ) -> None:
        self._client = client
        self._contracts = contracts
        self._tokens = {t.address.lower(): t for t in tokens}
        self._risk_scale = (risk or RiskSettings()).risk_config_scale_bps

    async def _call(
        self,
        to: str,
        signature: str,
        args: Sequence[Any],
        out_types: Sequence[str],
    ) -> tuple[Any, ...]:
        data = abi.encode_call(signature, args)
        result = await self._client.eth_call(to, data)
        return abi.decode_result(out_types, result)

    def token_for(self, address: str) -> Token:
        """Resolve a token by address; unknown tokens get 18-decimal defaults."""
        token = self._tokens.get(address.lower())
        if token is None:
            logger.debug("Unknown token %s, assuming 18 decimals", address)
            return Token(address=address, symbol="UNKNOWN", decimals=18)
        return token

    # ------------------------------------------------------------------
    # Prices and risk parameters
    # ------------------------------------------------------------------

    async def read_price(self, token: Token) -> PriceQuote:
        """Read the oracle price; a reverted or zero read is reported as stale."""
        try:
            (raw,) = await self._call(
                self._contracts.price_oracle,
                "getPrice(address)",
                [token.address],
                ["uint256"],
            )
        except RpcError as e:
            if e.code is None:
                raise
            logger.warning("Oracle price for %s unavailable: %s", token.symbol, e)
            return PriceQuote(token=token, price=Decimal(0), fresh=False)

        price = Decimal(raw).scaleb(-USD_DECIMALS)
        return PriceQuote(token=token, price=price, fresh=raw > 0)

    async def read_token_risk_config(self, token: Token) -> RiskConfig:
        allowed, ltv, threshold = await self._call(
            self._contracts.collateral_manager,
            "tokenConfig(address)",
            [token.address],
            ["bool", "uint256", "uint256"],
        )
        return RiskConfig(
            ltv_bps=int(ltv) * self._risk_scale,
            liquidation_threshold_bps=int(threshold) * self._risk_scale,
            allowed=bool(allowed),
        )

    async def read_liquidation_params(self) -> LiquidationParams:
        (close_factor,) = await self._call(
            self._contracts.collateral_manager, "closeFactorBps()", [], ["uint256"]
        )
        (bonus,) = await self._call(
            self._contracts.collateral_manager, "liquidationBonusBps()", [], ["uint256"]
        )
        return LiquidationParams(
            close_factor_bps=int(close_factor), liquidation_bonus_bps=int(bonus)
        )

    # ------------------------------------------------------------------
    # Collateral and debt
    # ------------------------------------------------------------------

    async def read_collateral(self, user: str, token: Token) -> int:
        (raw,) = await self._call(
            self._contracts.collateral_manager,
            "collateralBalances(address,address)",
            [user, token.address],
            ["uint256"],
        )
        return int(raw)

    async def read_account_data(self, user: str) -> AccountData:
        collateral, max_loan, debt, health = await self._call(
            self._contracts.collateral_manager,
            "getUserCollateralData(address)",
            [user],
            ["uint256", "uint256", "uint256", "uint256"],
        )
        return AccountData(
            total_collateral_usd=Decimal(collateral).scaleb(-USD_DECIMALS),
            max_loan_usd=Decimal(max_loan).scaleb(-USD_DECIMALS),
            debt_usd=Decimal(debt).scaleb(-USD_DECIMALS),
            health_factor=clamp_ledger_health_factor(int(health)),
        )

    async def read_outstanding_debt(self, user: str) -> int:
        (raw,) = await self._call(
            self._contracts.loan_manager,
            "getOutstandingLoan(address)",
            [user],
            ["uint256"],
        )
        return int(raw)

    async def read_debt(self, user: str) -> DebtPosition | None:
        """Read the user's loan; ``None`` when there is no active loan."""
        token_addr, principal, rate, _total_interest, created_at, duration, active = (
            await self._call(
                self._contracts.loan_manager,
                "loans(address)",
                [user],
                ["address", "uint256", "uint256", "uint256", "uint256", "uint256", "bool"],
            )
        )
        if not active or principal == 0:
            return None

        token = self.token_for(token_addr)
        outstanding = await self.read_outstanding_debt(user)
        interest = max(outstanding - principal, 0)
        price = await self.read_price(token)

        return DebtPosition(
            token=token,
            principal=token.to_units(principal),
            accrued_interest=token.to_units(interest),
            annual_rate_bps=int(rate),
            origination_time=int(created_at),
            duration_seconds=int(duration),
            active=True,
            price=price,
        )

    async def read_active_borrowers(self) -> list[str]:
        (borrowers,) = await self._call(
            self._contracts.loan_manager, "getActiveBorrowers()", [], ["address[]"]
        )
        return list(borrowers)

    # ------------------------------------------------------------------
    # Wallet and pool
    # ------------------------------------------------------------------

    async def read_wallet_balance(self, user: str, token: Token) -> Decimal:
        if token.is_native:
            raw = int(await self._client.rpc_call("eth_getBalance", [user, "latest"]), 16)
            return token.to_units(raw)
        (raw,) = await self._call(token.address, "balanceOf(address)", [user], ["uint256"])
        return token.to_units(int(raw))

    async def read_allowance(self, owner: str, token: Token, spender: str) -> int:
        if token.is_native:
            return MAX_UINT256
        (raw,) = await self._call(
            token.address, "allowance(address,address)", [owner, spender], ["uint256"]
        )
        return int(raw)

    async def read_available_liquidity(self, token: Token) -> Decimal:
        (raw,) = await self._call(
            self._contracts.loan_manager,
            "getAvailableLiquidity(address)",
            [token.address],
            ["uint256"],
        )
        return token.to_units(int(raw))

    async def read_supply(self, user: str, token: Token) -> SupplyPosition:
        deposited, deposit_time, reward_claimed = await self._call(
            self._contracts.loan_manager,
            "lenders(address,address)",
            [user, token.address],
            ["uint256", "uint256", "uint256"],
        )
        return SupplyPosition(
            token=token,
            deposited=token.to_units(int(deposited)),
            deposit_time=int(deposit_time),
            reward_claimed=token.to_units(int(reward_claimed)),
        )
