"""MetadataFetcher protocol - resolves beast identity for new tokens."""

from __future__ import annotations

from typing import Protocol

from summit_indexer.models.stats import BeastRpcData


class MetadataFetcher(Protocol):
    """Fetches immutable beast metadata from the Beasts contract."""

    async def fetch(self, token_id: int) -> BeastRpcData | None:
        """Return the beast's metadata, or None if unavailable (retry later)."""
        ...

    async def close(self) -> None:
        ...
