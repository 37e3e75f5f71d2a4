"""Starknet integration components."""

from summit_indexer.starknet.decoder import EventDecoder
from summit_indexer.starknet.metadata import BeastMetadataFetcher
from summit_indexer.starknet.rpc import StarknetRpc
from summit_indexer.starknet.source import RpcBlockSource

__all__ = ["EventDecoder", "BeastMetadataFetcher", "StarknetRpc", "RpcBlockSource"]
