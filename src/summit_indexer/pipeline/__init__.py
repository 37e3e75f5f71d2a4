"""Block pipeline - context lookup, stat reconciliation, market resolution."""

from summit_indexer.pipeline.context import ContextResolver
from summit_indexer.pipeline.market import MarketResolver
from summit_indexer.pipeline.processor import BlockProcessor
from summit_indexer.pipeline.reconciler import StatReconciler
from summit_indexer.pipeline.state import IndexerState

__all__ = [
    "BlockProcessor",
    "ContextResolver",
    "IndexerState",
    "MarketResolver",
    "StatReconciler",
]
