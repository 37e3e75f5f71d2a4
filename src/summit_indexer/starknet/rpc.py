"""Minimal Starknet JSON-RPC client over httpx."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from summit_indexer.errors import RpcError

log = logging.getLogger(__name__)


class StarknetRpc:
    """Issues JSON-RPC 2.0 requests against a Starknet node.

    One ``httpx.AsyncClient`` is kept for the lifetime of the object so
    consecutive calls reuse the connection.
    """

    def __init__(self, rpc_url: str, timeout: int = 30) -> None:
        self._rpc_url = rpc_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10))
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Any = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params if params is not None else [],
            "id": next(self._ids),
        }
        resp = await self._client.post(self._rpc_url, json=payload)
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, dict):
            raise RpcError(method, f"unexpected response body: {body!r}")
        if body.get("error"):
            raise RpcError(method, body["error"])
        return body.get("result")

    async def close(self) -> None:
        await self._client.aclose()
