"""Integration tests for the two signing backends."""
from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import TimeExhausted

from lending_client.tx.backends import DelegatedProviderBackend, StandardWalletBackend
from lending_client.tx.models import ContractCall, FailureKind, TransactionFailure
from tests.factories import COLLATERAL_MANAGER, USER

TX_HASH = "0x" + "ab" * 32


@pytest.fixture()
def call() -> ContractCall:
    return ContractCall(
        to=COLLATERAL_MANAGER,
        signature="withdraw(address,uint256)",
        args=("0x4444444444444444444444444444444444444444", 5),
    )


def _provider(**answers) -> MagicMock:
    """Provider whose ``rpc_call`` answers per method; callables get the params."""
    provider = MagicMock()

    async def rpc_call(method, params):
        answer = answers.get(method)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(params)
        return answer

    provider.rpc_call = AsyncMock(side_effect=rpc_call)
    return provider


def _receipt_calls(provider: MagicMock) -> int:
    return sum(
        1 for c in provider.rpc_call.call_args_list if c.args[0] == "eth_getTransactionReceipt"
    )


class TestDelegatedProvider:
    @pytest.mark.asyncio
    async def test_switch_payload(self) -> None:
        provider = _provider(wallet_switchEthereumChain=None)
        backend = DelegatedProviderBackend(provider, USER)

        await backend.request_switch(5042002)

        provider.rpc_call.assert_awaited_once_with(
            "wallet_switchEthereumChain", [{"chainId": "0x4cef52"}]
        )

    @pytest.mark.asyncio
    async def test_switch_failure(self) -> None:
        provider = _provider(wallet_switchEthereumChain=RuntimeError("Unrecognized chain ID"))
        backend = DelegatedProviderBackend(provider, USER)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.request_switch(5042002)

        assert exc_info.value.kind is FailureKind.NETWORK_SWITCH_FAILED

    @pytest.mark.asyncio
    async def test_send_builds_transaction(self, call: ContractCall) -> None:
        provider = _provider(eth_sendTransaction=TX_HASH)
        backend = DelegatedProviderBackend(provider, USER)

        assert await backend.send(call) == TX_HASH

        method, params = provider.rpc_call.call_args.args
        assert method == "eth_sendTransaction"
        assert params[0]["from"] == USER
        assert params[0]["to"] == COLLATERAL_MANAGER
        assert params[0]["data"] == call.encode()
        assert "value" not in params[0]

    @pytest.mark.asyncio
    async def test_receipt_found_after_polling(self) -> None:
        answers = iter([None, None, {"status": "0x1", "blockNumber": "0x10"}])
        provider = _provider(eth_getTransactionReceipt=lambda params: next(answers))
        backend = DelegatedProviderBackend(provider, USER, poll_interval=0)

        receipt = await backend.wait(TX_HASH)

        assert receipt.success
        assert receipt.block_number == 16
        assert _receipt_calls(provider) == 3

    @pytest.mark.asyncio
    async def test_exhausted_polls_time_out(self) -> None:
        provider = _provider(eth_getTransactionReceipt=None)
        backend = DelegatedProviderBackend(provider, USER, poll_interval=0, max_attempts=30)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.wait(TX_HASH)

        assert exc_info.value.kind is FailureKind.CONFIRMATION_TIMEOUT
        assert exc_info.value.tx_hash == TX_HASH
        assert "30 polls" in exc_info.value.message
        assert "last error" not in exc_info.value.message
        assert _receipt_calls(provider) == 30

    @pytest.mark.asyncio
    async def test_poll_errors_keep_polling(self) -> None:
        answers = iter([ConnectionError("blip"), {"status": "0x1"}])

        def receipt(params):
            answer = next(answers)
            if isinstance(answer, Exception):
                raise answer
            return answer

        provider = _provider(eth_getTransactionReceipt=receipt)
        backend = DelegatedProviderBackend(provider, USER, poll_interval=0)

        assert (await backend.wait(TX_HASH)).success
        assert _receipt_calls(provider) == 2

    @pytest.mark.asyncio
    async def test_persistent_poll_errors_surface_in_timeout(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        provider = _provider(eth_getTransactionReceipt=ConnectionError("rpc down"))
        backend = DelegatedProviderBackend(provider, USER, poll_interval=0, max_attempts=30)

        with caplog.at_level(logging.WARNING, logger="lending_client.tx.backends"):
            with pytest.raises(TransactionFailure) as exc_info:
                await backend.wait(TX_HASH)

        assert exc_info.value.kind is FailureKind.CONFIRMATION_TIMEOUT
        assert "last error: rpc down" in exc_info.value.message
        assert _receipt_calls(provider) == 30
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 30
        assert "rpc down" in warnings[0].getMessage()

    @pytest.mark.asyncio
    async def test_failed_receipt_is_reverted(self) -> None:
        provider = _provider(eth_getTransactionReceipt={"status": "0x0"})
        backend = DelegatedProviderBackend(provider, USER, poll_interval=0)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.wait(TX_HASH)

        assert exc_info.value.kind is FailureKind.REVERTED
        assert _receipt_calls(provider) == 1


def _w3(chain_id: int = 5042002) -> MagicMock:
    w3 = MagicMock()

    async def _chain_id():
        return chain_id

    type(w3.eth).chain_id = property(lambda self: _chain_id())
    w3.eth.send_transaction = AsyncMock(return_value=bytes.fromhex("ab" * 32))
    w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"status": 1, "blockNumber": 7, "gasUsed": 21000}
    )
    return w3


class TestStandardWallet:
    @pytest.mark.asyncio
    async def test_matching_chain(self) -> None:
        backend = StandardWalletBackend(_w3(), USER)
        await backend.request_switch(5042002)

    @pytest.mark.asyncio
    async def test_wrong_chain(self) -> None:
        backend = StandardWalletBackend(_w3(chain_id=1), USER)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.request_switch(5042002)

        assert exc_info.value.kind is FailureKind.NETWORK_SWITCH_FAILED
        assert "chain 1" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_send_returns_hex_hash(self, call: ContractCall) -> None:
        w3 = _w3()
        backend = StandardWalletBackend(w3, USER)

        assert await backend.send(call) == TX_HASH

        params = w3.eth.send_transaction.call_args.args[0]
        assert params["from"].lower() == USER
        assert params["data"] == call.encode()

    @pytest.mark.asyncio
    async def test_wait_success(self) -> None:
        backend = StandardWalletBackend(_w3(), USER, receipt_timeout=5)
        receipt = await backend.wait(TX_HASH)
        assert receipt.success
        assert receipt.gas_used == 21000

    @pytest.mark.asyncio
    async def test_wait_timeout(self) -> None:
        w3 = _w3()
        w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeExhausted("too slow"))
        backend = StandardWalletBackend(w3, USER, receipt_timeout=5)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.wait(TX_HASH)

        assert exc_info.value.kind is FailureKind.CONFIRMATION_TIMEOUT
        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_wait_reverted(self) -> None:
        w3 = _w3()
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0})
        backend = StandardWalletBackend(w3, USER)

        with pytest.raises(TransactionFailure) as exc_info:
            await backend.wait(TX_HASH)

        assert exc_info.value.kind is FailureKind.REVERTED
