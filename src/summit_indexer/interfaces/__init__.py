"""Protocol interfaces for all summit_indexer components."""

from summit_indexer.interfaces.metadata import MetadataFetcher
from summit_indexer.interfaces.source import BlockSource, DecodedEvent
from summit_indexer.interfaces.store import IndexStore

__all__ = [
    "BlockSource", "DecodedEvent",
    "MetadataFetcher",
    "IndexStore",
]
