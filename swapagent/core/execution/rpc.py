"""Minimal async JSON-RPC client for the deployment chain."""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ...config import settings
from ...errors import RpcError, RpcTimeout

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise RpcError(f"Unexpected numeric value from RPC: {value!r}")


class JsonRpcClient:
    """
    Thin wrapper over ``eth_*`` methods.

    Every call carries an explicit timeout. Transport failures surface as
    ``RpcError``; timeouts as ``RpcTimeout`` so callers can tell "the chain
    said no" from "the chain did not answer".
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[float] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url or settings.rpc_url
        self.timeout = timeout if timeout is not None else settings.rpc_timeout_seconds
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)
        self._ids = itertools.count(1)

    async def call(self, method: str, params: List[Any], *, timeout: Optional[float] = None) -> Any:
        """Make an RPC call and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(
                self.rpc_url,
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise RpcTimeout(f"{method} timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise RpcError(f"{method} failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise RpcError(f"{method} request error: {exc}") from exc
        except ValueError as exc:
            raise RpcError(f"{method} returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise RpcError(f"{method} returned a malformed response")

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    f"{method}: {error.get('message', 'unknown error')}",
                    rpc_code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(f"{method}: {error}")

        return body.get("result")

    async def eth_call(self, to: str, data: str, *, from_address: Optional[str] = None, block: str = "latest") -> str:
        call_obj: Dict[str, Any] = {"to": to, "data": data}
        if from_address:
            call_obj["from"] = from_address
        result = await self.call("eth_call", [call_obj, block])
        if not isinstance(result, str):
            raise RpcError("eth_call returned no data")
        return result

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return _to_int(await self.call("eth_getBalance", [address, block]))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return _to_int(await self.call("eth_getTransactionCount", [address, block]))

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return _to_int(await self.call("eth_estimateGas", [tx]))

    async def fee_history(self, block_count: int = 1, newest: str = "latest", percentiles: Optional[List[int]] = None) -> Dict[str, Any]:
        result = await self.call("eth_feeHistory", [hex(block_count), newest, percentiles or [50]])
        return result or {}

    async def gas_price(self) -> int:
        return _to_int(await self.call("eth_gasPrice", []))

    async def send_raw_transaction(self, raw_tx: str) -> str:
        tx_hash = await self.call("eth_sendRawTransaction", [raw_tx])
        if not isinstance(tx_hash, str):
            raise RpcError("eth_sendRawTransaction returned no hash")
        logger.info("Transaction submitted: %s", tx_hash)
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def block_number(self) -> int:
        return _to_int(await self.call("eth_blockNumber", []))

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
