"""Beast metadata fetcher - calls getBeast() on the Beasts contract."""

from __future__ import annotations

import logging

import httpx

from summit_indexer.errors import RpcError
from summit_indexer.models.stats import BeastRpcData
from summit_indexer.starknet.felt import felt, get_selector, to_hex
from summit_indexer.starknet.rpc import StarknetRpc

log = logging.getLogger(__name__)

GET_BEAST_SELECTOR = to_hex(get_selector("get_beast"))


class BeastMetadataFetcher:
    """Resolves token_id -> [id, prefix, suffix, level, health, shiny, animated].

    Any failure is reported as ``None`` so the caller retries the token the
    next time it shows up.
    """

    def __init__(self, rpc: StarknetRpc, beasts_address: str) -> None:
        self._rpc = rpc
        self._beasts_address = beasts_address

    async def fetch(self, token_id: int) -> BeastRpcData | None:
        params = {
            "request": {
                "contract_address": self._beasts_address,
                "entry_point_selector": GET_BEAST_SELECTOR,
                "calldata": [to_hex(token_id), "0x0"],  # u256 low, high
            },
            "block_id": "latest",
        }
        try:
            result = await self._rpc.request("starknet_call", params)
        except (RpcError, httpx.HTTPError, ValueError) as exc:
            # ValueError covers a body that is not JSON
            log.warning("getBeast(%d) failed: %s", token_id, exc)
            return None

        if not isinstance(result, list) or len(result) < 7:
            log.warning("getBeast(%d) returned unexpected result: %r", token_id, result)
            return None
        try:
            values = [felt(v) for v in result[:7]]
        except (TypeError, ValueError, AttributeError) as exc:
            log.warning("getBeast(%d) returned unparseable result %r: %s", token_id, result, exc)
            return None
        return BeastRpcData(*values)

    async def close(self) -> None:
        await self._rpc.close()
