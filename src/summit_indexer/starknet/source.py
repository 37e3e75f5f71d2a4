"""RPC block source - polls Starknet for new blocks with receipts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from summit_indexer.models.events import Block, BlockHeader, RawEvent
from summit_indexer.starknet.felt import felt, to_address
from summit_indexer.starknet.rpc import StarknetRpc

log = logging.getLogger(__name__)


class RpcBlockSource:
    """Delivers blocks in increasing order via starknet_getBlockWithReceipts.

    Only events emitted by ``tracked_addresses`` are kept. ``event_index`` is
    the event's position across the whole block (all receipts, all
    emitters), so it is stable across replays.
    """

    def __init__(
        self,
        rpc: StarknetRpc,
        tracked_addresses: set[int],
        start_block: int,
        max_blocks_per_poll: int = 50,
    ) -> None:
        self._rpc = rpc
        self._tracked = tracked_addresses
        self._next_block = start_block
        self._max_blocks = max_blocks_per_poll

    @property
    def next_block(self) -> int:
        return self._next_block

    def set_position(self, block_number: int) -> None:
        """Restore position from persisted state."""
        self._next_block = block_number

    async def poll(self) -> list[Block]:
        head = await self._rpc.request("starknet_blockNumber")
        if head < self._next_block:
            return []

        last = min(head, self._next_block + self._max_blocks - 1)
        blocks: list[Block] = []
        for number in range(self._next_block, last + 1):
            raw = await self._rpc.request(
                "starknet_getBlockWithReceipts", {"block_id": {"block_number": number}},
            )
            blocks.append(self._parse_block(number, raw))
            self._next_block = number + 1

        log.debug("Fetched blocks %d..%d (head %d)", blocks[0].number, last, head)
        return blocks

    def _parse_block(self, number: int, raw: dict) -> Block:
        header = BlockHeader(
            block_number=number,
            timestamp=datetime.fromtimestamp(raw.get("timestamp", 0), tz=timezone.utc),
        )
        events: list[RawEvent] = []
        index = 0
        for tx in raw.get("transactions", []):
            receipt = tx.get("receipt", {})
            if receipt.get("execution_status", "SUCCEEDED") != "SUCCEEDED":
                continue
            tx_hash = to_address(receipt.get("transaction_hash") or tx["transaction"]["transaction_hash"])
            for ev in receipt.get("events", []):
                position = index
                index += 1
                if felt(ev["from_address"]) not in self._tracked:
                    continue
                events.append(RawEvent(
                    contract_address=to_address(ev["from_address"]),
                    keys=tuple(ev.get("keys", [])),
                    data=tuple(ev.get("data", [])),
                    transaction_hash=tx_hash,
                    event_index=position,
                    block_number=number,
                ))
        return Block(header=header, events=events)

    async def close(self) -> None:
        await self._rpc.close()
