"""Exception hierarchy for the summit indexer."""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer errors."""


class ConfigError(IndexerError):
    """Configuration is missing or invalid. Fatal at startup."""


class DecodeError(IndexerError):
    """A raw event could not be decoded. Skips the single event."""

    def __init__(self, message: str, selector: str | None = None) -> None:
        super().__init__(message)
        self.selector = selector


class UnknownSelector(DecodeError):
    """No decoder is registered for (contract, selector)."""


class ContextLookupError(IndexerError):
    """Batched state lookup failed. Aborts the current block."""


class BatchWriteError(IndexerError):
    """A table batch failed to commit. Aborts the block and stops the daemon."""

    def __init__(self, table: str, cause: BaseException) -> None:
        super().__init__(f"write to {table} failed: {cause}")
        self.table = table
        self.cause = cause


class RpcError(IndexerError):
    """Starknet JSON-RPC returned an error payload."""

    def __init__(self, method: str, error: object) -> None:
        super().__init__(f"{method}: {error}")
        self.method = method
        self.error = error
