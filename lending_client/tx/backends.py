"""Signing backends.

Two implementations of the same capability: a standard connected wallet
driven through web3.py, and a delegated provider that only speaks raw
JSON-RPC and has to be polled for receipts.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from .models import ContractCall, FailureKind, TransactionFailure, TxReceipt

if TYPE_CHECKING:
    from ..interfaces.signing import JsonRpcProvider

logger = logging.getLogger(__name__)


def _tx_params(sender: str, call: ContractCall) -> dict[str, Any]:
    params: dict[str, Any] = {
        "from": sender,
        "to": Web3.to_checksum_address(call.to),
        "data": call.encode(),
    }
    if call.value:
        params["value"] = call.value
    return params


class StandardWalletBackend:
    """Connected wallet reached through an ``AsyncWeb3`` instance.

    Confirmation uses the library's own wait primitive and timeout.
    """

    name = "wallet"

    def __init__(
        self, w3: AsyncWeb3, account: str, receipt_timeout: float = 120.0
    ) -> None:
        self._w3 = w3
        self.account = Web3.to_checksum_address(account)
        self._receipt_timeout = receipt_timeout

    async def request_switch(self, chain_id: int) -> None:
        try:
            current = await self._w3.eth.chain_id
        except Exception as e:
            raise TransactionFailure(FailureKind.NETWORK_SWITCH_FAILED, str(e)) from e
        if current != chain_id:
            raise TransactionFailure(
                FailureKind.NETWORK_SWITCH_FAILED,
                f"wallet is on chain {current}, expected {chain_id}",
            )

    async def send(self, call: ContractCall) -> str:
        tx_hash = await self._w3.eth.send_transaction(_tx_params(self.account, call))
        return Web3.to_hex(tx_hash)

    async def wait(self, tx_hash: str) -> TxReceipt:
        try:
            raw = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as e:
            raise TransactionFailure(
                FailureKind.CONFIRMATION_TIMEOUT, tx_hash=tx_hash
            ) from e

        receipt = TxReceipt.from_rpc(tx_hash, raw)
        if not receipt.success:
            raise TransactionFailure(FailureKind.REVERTED, tx_hash=tx_hash)
        return receipt


class DelegatedProviderBackend:
    """Embedded/delegated wallet reached only through raw JSON-RPC requests.

    Receipts are polled with ``eth_getTransactionReceipt`` every
    ``poll_interval`` seconds, at most ``max_attempts`` times.
    """

    name = "delegated"

    def __init__(
        self,
        provider: JsonRpcProvider,
        from_address: str,
        poll_interval: float = 1.0,
        max_attempts: int = 30,
    ) -> None:
        self._provider = provider
        self.from_address = from_address
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def request_switch(self, chain_id: int) -> None:
        try:
            await self._provider.rpc_call(
                "wallet_switchEthereumChain", [{"chainId": hex(chain_id)}]
            )
        except Exception as e:
            raise TransactionFailure(FailureKind.NETWORK_SWITCH_FAILED, str(e)) from e

    async def send(self, call: ContractCall) -> str:
        params: dict[str, Any] = {
            "from": self.from_address,
            "to": call.to,
            "data": call.encode(),
        }
        if call.value:
            params["value"] = hex(call.value)
        return await self._provider.rpc_call("eth_sendTransaction", [params])

    async def wait(self, tx_hash: str) -> TxReceipt:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = await self._provider.rpc_call(
                    "eth_getTransactionReceipt", [tx_hash]
                )
            except Exception as e:
                logger.warning("Receipt poll %d for %s failed: %s", attempt, tx_hash, e)
                last_error = e
                raw = None

            if raw:
                receipt = TxReceipt.from_rpc(tx_hash, raw)
                if not receipt.success:
                    raise TransactionFailure(FailureKind.REVERTED, tx_hash=tx_hash)
                return receipt

            logger.debug(
                "Receipt for %s not yet available (%d/%d)",
                tx_hash, attempt, self.max_attempts,
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.poll_interval)

        reason = f"no receipt after {self.max_attempts} polls"
        if last_error is not None:
            reason += f" (last error: {last_error})"
        raise TransactionFailure(
            FailureKind.CONFIRMATION_TIMEOUT,
            reason,
            tx_hash=tx_hash,
        )
