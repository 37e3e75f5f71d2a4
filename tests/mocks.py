"""Mock implementations of the external-facing components."""

from __future__ import annotations

from typing import Awaitable, Callable

from summit_indexer.models.events import Block
from summit_indexer.models.stats import BeastRpcData


class MockMetadataFetcher:
    """Implements MetadataFetcher. Unknown tokens return None, like a failed call."""

    def __init__(self, beasts: dict[int, BeastRpcData] | None = None) -> None:
        self.beasts = dict(beasts or {})
        self.fetch_calls: list[int] = []
        self.closed = False

    async def fetch(self, token_id: int) -> BeastRpcData | None:
        self.fetch_calls.append(token_id)
        return self.beasts.get(token_id)

    async def close(self) -> None:
        self.closed = True


class MockBlockSource:
    """Implements BlockSource. Returns pre-loaded blocks, one batch per poll."""

    def __init__(self) -> None:
        self.batches: list[list[Block]] = []
        self.positions: list[int] = []
        self.on_empty: Callable[[], Awaitable[None]] | None = None
        self.closed = False

    async def poll(self) -> list[Block]:
        if self.batches:
            return self.batches.pop(0)
        if self.on_empty is not None:
            await self.on_empty()
        return []

    def set_position(self, block_number: int) -> None:
        self.positions.append(block_number)

    async def close(self) -> None:
        self.closed = True

    def enqueue(self, *blocks: Block) -> None:
        """Test helper: stage blocks for the next poll."""
        self.batches.append(list(blocks))
