"""EVM JSON-RPC client with fallback support."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import ChainConfig
from ...errors import RpcError

logger = logging.getLogger(__name__)


class EvmRpcClient:
    """EVM JSON-RPC client with automatic endpoint fallback.

    Transport failures rotate to the next endpoint. A JSON-RPC ``error``
    object returned by a node is deterministic (reverts, rejected requests)
    and is raised immediately as :class:`RpcError`.
    """

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.chain_id = config.chain_id
        self.current_rpc_index = 0
        self._request_id = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

            if rpc_index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", rpc_url)
                self.current_rpc_index = rpc_index

            if "error" in result:
                error = result["error"] or {}
                raise RpcError(
                    f"RPC Error: {error.get('message', error)}",
                    code=error.get("code"),
                    data=error.get("data"),
                )
            return result.get("result")

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call and return the raw return data."""
        return await self.rpc_call("eth_call", [{"to": to, "data": data}, block])

    async def get_chain_id(self) -> int:
        return int(await self.rpc_call("eth_chainId", []), 16)

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Fetch a receipt; ``None`` while the transaction is still pending."""
        return await self.rpc_call("eth_getTransactionReceipt", [tx_hash])
