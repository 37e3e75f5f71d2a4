"""Data models for the summit indexer."""

from summit_indexer.models.amounts import TokenAmount
from summit_indexer.models.config import (
    ContractAddresses,
    DojoConfig,
    IndexerConfig,
    TokenAddresses,
)
from summit_indexer.models.events import (
    BattleEvent,
    BeastTransferEvent,
    Block,
    BlockHeader,
    CollectableEntityEvent,
    CorpseEvent,
    EntityStatsEvent,
    PackedStatBatchEvent,
    PoisonEvent,
    QuestRewardsClaimedEvent,
    RawEvent,
    RewardClaimedEvent,
    RewardEarnedEvent,
    SingleStatUpdateEvent,
    SkullClaimEvent,
    TokenTransferEvent,
)
from summit_indexer.models.records import (
    BlockBatches,
    ConsumableDelta,
    EventKey,
    EventSite,
    LogEntry,
    TransferLeg,
)
from summit_indexer.models.stats import (
    BeastContext,
    BeastMetadata,
    BeastRpcData,
    BeastStatsSnapshot,
    BlockContext,
    EntityLink,
    LiveBeastStats,
)

__all__ = [
    "TokenAmount",
    "ContractAddresses", "DojoConfig", "IndexerConfig", "TokenAddresses",
    "RawEvent", "Block", "BlockHeader",
    "BeastTransferEvent", "TokenTransferEvent",
    "PackedStatBatchEvent", "SingleStatUpdateEvent", "BattleEvent",
    "RewardEarnedEvent", "RewardClaimedEvent", "PoisonEvent",
    "QuestRewardsClaimedEvent", "CorpseEvent", "SkullClaimEvent",
    "EntityStatsEvent", "CollectableEntityEvent",
    "BlockBatches", "ConsumableDelta", "EventKey", "EventSite", "LogEntry", "TransferLeg",
    "BeastContext", "BeastMetadata", "BeastRpcData", "BeastStatsSnapshot",
    "BlockContext", "EntityLink", "LiveBeastStats",
]
