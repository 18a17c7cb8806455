"""Ledger access: contract reads and call builders."""
from .calls import LedgerCalls
from .reader import ContractLedgerReader

__all__ = ["ContractLedgerReader", "LedgerCalls"]
