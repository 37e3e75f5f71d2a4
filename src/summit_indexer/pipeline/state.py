"""Process-lifetime indexer state threaded through the block processor."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

PROGRESS_LOG_SECONDS = 5.0
PROGRESS_LOG_BLOCKS = 1000


@dataclass
class IndexerState:
    """Advisory caches and counters that survive between blocks.

    Losing this state on restart only costs redundant metadata fetches.
    """

    fetched_tokens: set[int] = field(default_factory=set)
    last_event_block: int | None = None
    blocks_without_events: int = 0
    last_progress_log: float = field(default_factory=time.monotonic)

    def is_fetched(self, token_id: int) -> bool:
        return token_id in self.fetched_tokens

    def mark_fetched(self, token_ids: set[int] | list[int]) -> None:
        self.fetched_tokens.update(token_ids)

    def record_event_block(self, block_number: int) -> int | None:
        """Note a block with events; return the gap since the previous one."""
        gap = None if self.last_event_block is None else block_number - self.last_event_block
        self.last_event_block = block_number
        self.blocks_without_events = 0
        return gap

    def record_empty_block(self, now: float | None = None) -> bool:
        """Count an empty block; True when an idle progress line is due."""
        now = time.monotonic() if now is None else now
        self.blocks_without_events += 1
        if (
            now - self.last_progress_log >= PROGRESS_LOG_SECONDS
            or self.blocks_without_events % PROGRESS_LOG_BLOCKS == 0
        ):
            self.last_progress_log = now
            return True
        return False
