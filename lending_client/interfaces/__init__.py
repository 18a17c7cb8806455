"""Protocol interfaces for the lending client."""
from .ledger import LedgerReader
from .notifier import Notifier
from .signing import JsonRpcProvider, SigningBackend

__all__ = ["JsonRpcProvider", "LedgerReader", "Notifier", "SigningBackend"]
