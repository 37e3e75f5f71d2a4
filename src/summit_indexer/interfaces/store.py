"""IndexStore protocol - relational persistence for indexed game state."""

from __future__ import annotations

from typing import Protocol

from summit_indexer.models.records import BlockBatches
from summit_indexer.models.stats import (
    BeastContext,
    BeastMetadata,
    EntityLink,
)


class IndexStore(Protocol):
    """Reads block context and commits per-block batches."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Checkpoint ─────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        ...

    async def set_cursor(self, block_number: int) -> None:
        ...

    async def reset_cursor(self) -> None:
        ...

    # ── Context lookups ────────────────────────────────────

    async def get_tracked_contexts(self, token_ids: list[int]) -> dict[int, BeastContext]:
        """One joined query over beast_stats, beasts and beast_owners."""
        ...

    async def get_metadata(self, token_ids: list[int]) -> dict[int, BeastMetadata]:
        ...

    async def get_owners(self, token_ids: list[int]) -> dict[int, str]:
        ...

    async def get_kills_by_token(self, token_ids: list[int]) -> dict[int, int]:
        ...

    async def get_entity_links(self, entity_hashes: list[str]) -> dict[str, EntityLink]:
        ...

    # ── Writes ─────────────────────────────────────────────

    async def write_batches(self, batches: BlockBatches) -> None:
        """Commit every table batch for one block, or none of them."""
        ...

    async def backfill_entity_links(self) -> list[int]:
        """Link beast_data entity hashes to known token ids. Returns the token ids."""
        ...
