"""Signing backend protocol — the one capability the orchestrator depends on."""
from typing import Any, Protocol

from ..tx.models import ContractCall, TxReceipt


class SigningBackend(Protocol):
    """Abstract interface for submitting transactions and confirming them."""

    @property
    def name(self) -> str: ...

    async def request_switch(self, chain_id: int) -> None: ...

    async def send(self, call: ContractCall) -> str: ...

    async def wait(self, tx_hash: str) -> TxReceipt: ...


class JsonRpcProvider(Protocol):
    """Raw request/response provider used by the delegated backend."""

    async def rpc_call(self, method: str, params: list[Any]) -> Any: ...
