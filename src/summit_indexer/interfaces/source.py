"""BlockSource protocol - delivers blocks in increasing order."""

from __future__ import annotations

from typing import Protocol, Union

from summit_indexer.models.events import (
    BattleEvent,
    BeastTransferEvent,
    Block,
    CollectableEntityEvent,
    CorpseEvent,
    EntityStatsEvent,
    PackedStatBatchEvent,
    PoisonEvent,
    QuestRewardsClaimedEvent,
    RewardClaimedEvent,
    RewardEarnedEvent,
    SingleStatUpdateEvent,
    SkullClaimEvent,
    TokenTransferEvent,
)

DecodedEvent = Union[
    BeastTransferEvent,
    TokenTransferEvent,
    PackedStatBatchEvent,
    SingleStatUpdateEvent,
    BattleEvent,
    RewardEarnedEvent,
    RewardClaimedEvent,
    PoisonEvent,
    QuestRewardsClaimedEvent,
    CorpseEvent,
    SkullClaimEvent,
    EntityStatsEvent,
    CollectableEntityEvent,
]


class BlockSource(Protocol):
    """Streams blocks from the chain, strictly increasing by number."""

    async def poll(self) -> list[Block]:
        """Fetch the next run of blocks after the current position."""
        ...

    def set_position(self, block_number: int) -> None:
        """Resume so the next block delivered is ``block_number``."""
        ...

    async def close(self) -> None:
        ...
