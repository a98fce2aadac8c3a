"""
NEAR JSON-RPC Client

Minimal aiohttp client for read-only contract queries.

API Documentation: https://docs.near.org/api/rpc/contracts#call-a-contract-function
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import aiohttp

from .errors import RpcError

# RPC Endpoints
MAINNET_RPC_URL = "https://free.rpc.fastnear.com"
TESTNET_RPC_URL = "https://test.rpc.fastnear.com"

FINALITY_FINAL = "final"


@dataclass(frozen=True)
class BlockReference:
    """
    Block to run a query against: either a finality level or a height.

    Old heights may be garbage collected by non-archival nodes, finality
    always resolves.
    """
    finality: Optional[str] = None
    block_height: Optional[int] = None

    @classmethod
    def final(cls) -> "BlockReference":
        return cls(finality=FINALITY_FINAL)

    @classmethod
    def at_height(cls, height: int) -> "BlockReference":
        return cls(block_height=height)

    def to_params(self) -> Dict[str, Union[str, int]]:
        if self.block_height is not None:
            return {"block_id": self.block_height}
        return {"finality": self.finality or FINALITY_FINAL}


@dataclass
class RpcClientConfig:
    """Configuration for the RPC client."""
    rpc_url: str = MAINNET_RPC_URL
    request_timeout: float = 10.0


class NearRpcClient:
    """
    NEAR JSON-RPC client.

    Provides:
    - call(): raw JSON-RPC 2.0 request, raises RpcError on any failure
    - call_function(): view call against a contract at a block reference

    Usage:
        client = NearRpcClient(RpcClientConfig(rpc_url=...))
        await client.start()
        result = await client.call_function("token.near", "ft_metadata", {}, BlockReference.final())
        await client.stop()
    """

    def __init__(self, config: Optional[RpcClientConfig] = None):
        self.config = config or RpcClientConfig()
        self._logger = logging.getLogger("NearRpcClient")
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0

    async def start(self):
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout)
            )

    async def stop(self):
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # =========================================================================
    # JSON-RPC
    # =========================================================================

    async def call(self, method: str, params: Dict[str, Any]) -> Any:
        """
        Send a JSON-RPC request and return its `result`.

        Raises RpcError for transport failures, non-200 responses, invalid
        JSON and `error` responses.
        """
        if self._session is None:
            await self.start()

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params
        }

        try:
            async with self._session.post(
                self.config.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"}
            ) as response:
                if response.status != 200:
                    raise RpcError(f"HTTP {response.status} from {method}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RpcError(f"{method} transport error: {e}") from e
        except json.JSONDecodeError as e:
            raise RpcError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RpcError(f"{method} returned unexpected payload")

        error = data.get("error")
        if error:
            name = error.get("name", "") if isinstance(error, dict) else ""
            cause = ""
            if isinstance(error, dict) and isinstance(error.get("cause"), dict):
                cause = error["cause"].get("name", "")
            raise RpcError(f"{method} failed: {error}", name=name, cause=cause)

        return data.get("result")

    async def call_function(
        self,
        account_id: str,
        method_name: str,
        args: Dict[str, Any],
        block_reference: BlockReference
    ) -> Dict[str, Any]:
        """
        View call on a contract.

        Older nodes report contract execution errors inside `result.error`
        instead of a JSON-RPC error; both raise RpcError.
        """
        params = {
            "request_type": "call_function",
            "account_id": account_id,
            "method_name": method_name,
            "args_base64": base64.b64encode(json.dumps(args).encode()).decode(),
        }
        params.update(block_reference.to_params())

        result = await self.call("query", params)

        if not isinstance(result, dict):
            raise RpcError(f"call_function {account_id}.{method_name} returned no result")
        if result.get("error"):
            raise RpcError(
                f"call_function {account_id}.{method_name} failed: {result['error']}",
                name="HANDLER_ERROR",
                cause="CONTRACT_EXECUTION_ERROR"
            )
        return result
