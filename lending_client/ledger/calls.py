"""Builders for the ledger's state-changing calls.

Method names and argument order are defined by the deployed contracts.
"""
from __future__ import annotations

from ..config import ContractsConfig
from ..models import Token
from ..tx.models import ContractCall

DAY_SECONDS = 24 * 60 * 60


class LedgerCalls:
    """Builds :class:`ContractCall` values for every user action."""

    def __init__(self, contracts: ContractsConfig) -> None:
        self.collateral_manager = contracts.collateral_manager
        self.loan_manager = contracts.loan_manager

    # Collateral

    def deposit_collateral(self, token: Token, amount: int) -> ContractCall:
        return ContractCall(
            self.collateral_manager, "deposit(address,uint256)", (token.address, amount)
        )

    def withdraw_collateral(self, token: Token, amount: int) -> ContractCall:
        return ContractCall(
            self.collateral_manager, "withdraw(address,uint256)", (token.address, amount)
        )

    def liquidate(
        self, borrower: str, repay_token: Token, repay_amount: int, seize_token: Token
    ) -> ContractCall:
        return ContractCall(
            self.collateral_manager,
            "liquidate(address,address,uint256,address)",
            (borrower, repay_token.address, repay_amount, seize_token.address),
        )

    # Pool liquidity

    def supply(self, token: Token, amount: int) -> ContractCall:
        return ContractCall(
            self.loan_manager, "depositToPool(address,uint256)", (token.address, amount)
        )

    def withdraw_supply(self, token: Token, amount: int) -> ContractCall:
        return ContractCall(
            self.loan_manager, "withdraw(address,uint256)", (token.address, amount)
        )

    def withdraw_all_supply(self, token: Token) -> ContractCall:
        return ContractCall(self.loan_manager, "withdrawAll(address)", (token.address,))

    # Loans

    def borrow(self, token: Token, principal: int, duration_days: int) -> ContractCall:
        return ContractCall(
            self.loan_manager,
            "requestLoan(address,uint256,uint256)",
            (token.address, principal, duration_days * DAY_SECONDS),
        )

    def repay(self, token: Token, amount: int) -> ContractCall:
        return ContractCall(
            self.loan_manager, "repay(address,uint256)", (token.address, amount)
        )

    def repay_all(self, token: Token) -> ContractCall:
        return ContractCall(self.loan_manager, "repayAll(address)", (token.address,))
