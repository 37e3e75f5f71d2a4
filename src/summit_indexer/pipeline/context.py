"""Context resolver - batch-loads the state a block's events need."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from summit_indexer.errors import ContextLookupError
from summit_indexer.interfaces.metadata import MetadataFetcher
from summit_indexer.interfaces.source import DecodedEvent
from summit_indexer.interfaces.store import IndexStore
from summit_indexer.models.events import RawEvent
from summit_indexer.models.stats import BeastContext, BeastRpcData, BlockContext

log = logging.getLogger(__name__)


@dataclass
class BlockScan:
    """Decoded events of one block plus the keys they will look up."""

    events: list[tuple[RawEvent, DecodedEvent]] = field(default_factory=list)
    context_tokens: set[int] = field(default_factory=set)
    kill_tokens: set[int] = field(default_factory=set)
    transfer_tokens: set[int] = field(default_factory=set)  # need getBeast()
    entity_hashes: set[str] = field(default_factory=set)


@dataclass
class LookupTimings:
    """Milliseconds spent per lookup phase."""

    rpc: int = 0
    join: int = 0
    fallback: int = 0
    kills: int = 0
    links: int = 0

    @property
    def ctx(self) -> int:
        return self.join + self.fallback + self.kills + self.links


def _ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ContextResolver:
    """Resolves previous stats, metadata and owner for every referenced token.

    At most two store passes for beast context: one join over the stats
    projection, then one fallback over metadata and owners for tokens that
    have never had a stats update. Independent lookups run concurrently.
    """

    def __init__(self, store: IndexStore, fetcher: MetadataFetcher) -> None:
        self._store = store
        self._fetcher = fetcher

    async def resolve(self, scan: BlockScan) -> tuple[BlockContext, LookupTimings]:
        timings = LookupTimings()

        async def timed(coro, attr: str):
            start = time.monotonic()
            try:
                return await coro
            finally:
                setattr(timings, attr, _ms(start))

        tokens = sorted(scan.context_tokens)
        try:
            tracked, kills, links, fetched = await asyncio.gather(
                timed(self._store.get_tracked_contexts(tokens), "join"),
                timed(self._store.get_kills_by_token(sorted(scan.kill_tokens)), "kills"),
                timed(self._store.get_entity_links(sorted(scan.entity_hashes)), "links"),
                timed(self._fetch_metadata(sorted(scan.transfer_tokens)), "rpc"),
            )
            missing = [t for t in tokens if t not in tracked]
            metadata, owners = {}, {}
            if missing:
                start = time.monotonic()
                metadata, owners = await asyncio.gather(
                    self._store.get_metadata(missing),
                    self._store.get_owners(missing),
                )
                timings.fallback = _ms(start)
        except ContextLookupError:
            raise
        except Exception as exc:
            raise ContextLookupError(f"context lookup failed: {exc}") from exc

        beasts: dict[int, BeastContext] = dict(tracked)
        for token_id in missing:
            beasts[token_id] = BeastContext(
                metadata=metadata.get(token_id),
                owner=owners.get(token_id),
            )

        if fetched:
            log.info("RPC metadata fetch: %d tokens in %dms", len(fetched), timings.rpc)
        return BlockContext(
            beasts=beasts,
            kills_by_token=kills,
            entity_links=links,
            fetched_metadata=fetched,
        ), timings

    async def _fetch_metadata(self, token_ids: list[int]) -> dict[int, BeastRpcData | None]:
        if not token_ids:
            return {}
        results = await asyncio.gather(*(self._fetcher.fetch(t) for t in token_ids))
        return dict(zip(token_ids, results))
