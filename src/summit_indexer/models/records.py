"""Row types produced while processing a block, grouped per destination table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from summit_indexer.models.stats import LiveBeastStats

# Sub-index slots within one base event. Stat slots follow TRACKED_STATS order.
SUMMIT_CHANGE_SLOT = 50
ITEM_STRIDE = 100


@dataclass(frozen=True, order=True)
class EventKey:
    """Position of a log entry relative to the chain event that produced it.

    ``sub_index`` 0 is the primary entry for the event. Derived entries use
    ``item * ITEM_STRIDE + slot`` where ``item`` is the position inside a
    batched event and ``slot`` identifies the derivation. Replaying the same
    event always reproduces the same keys.
    """

    base_index: int
    sub_index: int = 0

    @classmethod
    def derived(cls, base_index: int, item: int, slot: int) -> EventKey:
        if not 0 < slot < ITEM_STRIDE:
            raise ValueError(f"slot out of range: {slot}")
        return cls(base_index, item * ITEM_STRIDE + slot)


@dataclass
class LogEntry:
    """Append-only summit_log fact row."""

    block_number: int
    key: EventKey
    category: str
    sub_category: str
    data: dict[str, Any]
    transaction_hash: str
    created_at: str
    indexed_at: str
    player: str | None = None
    token_id: int | None = None


@dataclass(frozen=True)
class EventSite:
    """Where a chain event sits, plus the timestamps stamped on its rows."""

    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str

    def log(
        self,
        category: str,
        sub_category: str,
        data: dict[str, Any],
        player: str | None = None,
        token_id: int | None = None,
        key: EventKey | None = None,
    ) -> LogEntry:
        return LogEntry(
            block_number=self.block_number,
            key=key or EventKey(self.event_index),
            category=category,
            sub_category=sub_category,
            data=data,
            transaction_hash=self.transaction_hash,
            created_at=self.created_at,
            indexed_at=self.indexed_at,
            player=player,
            token_id=token_id,
        )


@dataclass(frozen=True)
class TransferLeg:
    """One side of a consumable transfer, kept until end-of-block market resolution."""

    transaction_hash: str
    token: str
    address: str
    amount: int  # whole units, positive = received
    event_index: int
    involves_pool: bool


@dataclass(frozen=True)
class ConsumableDelta:
    """Signed change of one consumable column for one owner."""

    owner: str
    column: str
    delta: int
    block_number: int
    transaction_hash: str
    event_index: int
    updated_at: str


# ── Table rows ─────────────────────────────────────────────


@dataclass
class BeastStatsRow:
    stats: LiveBeastStats
    block_number: int
    transaction_hash: str
    created_at: str
    indexed_at: str


@dataclass
class BattleRow:
    attacking_beast_token_id: int
    attacking_player: str | None
    attack_index: int
    defending_beast_token_id: int
    attack_count: int
    attack_damage: int
    critical_attack_count: int
    critical_attack_damage: int
    counter_attack_count: int
    counter_attack_damage: int
    critical_counter_attack_count: int
    critical_counter_attack_damage: int
    attack_potions: int
    revive_potions: int
    xp_gained: int
    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str


@dataclass
class RewardsEarnedRow:
    beast_token_id: int
    owner: str | None
    amount: int
    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str


@dataclass
class RewardsClaimedRow:
    player: str
    amount: str
    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str


@dataclass
class PoisonRow:
    beast_token_id: int
    block_timestamp: int
    count: int
    player: str
    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str


@dataclass
class CorpseRow:
    adventurer_id: int
    player: str
    block_number: int
    transaction_hash: str
    event_index: int
    created_at: str
    indexed_at: str


@dataclass
class SkullsClaimedRow:
    beast_token_id: int
    skulls: int
    updated_at: str


@dataclass
class QuestRewardsRow:
    beast_token_id: int
    amount: int
    updated_at: str


@dataclass
class BeastOwnerRow:
    token_id: int
    owner: str
    updated_at: str


@dataclass
class BeastRow:
    token_id: int
    beast_id: int
    prefix: int
    suffix: int
    level: int
    health: int
    shiny: int
    animated: int
    created_at: str
    indexed_at: str


@dataclass
class BeastDataRow:
    """entity_hash-keyed Loot Survivor record. Kills and deaths only grow."""

    entity_hash: str
    updated_at: str
    token_id: int | None = None
    adventurers_killed: int = 0
    last_death_timestamp: int = 0
    last_killed_by: int = 0

    def merge(self, newer: BeastDataRow) -> BeastDataRow:
        """Combine two rows for the same entity with the table's merge rules."""
        return BeastDataRow(
            entity_hash=self.entity_hash,
            updated_at=newer.updated_at,
            token_id=self.token_id if self.token_id is not None else newer.token_id,
            adventurers_killed=max(self.adventurers_killed, newer.adventurers_killed),
            last_death_timestamp=max(self.last_death_timestamp, newer.last_death_timestamp),
            last_killed_by=(
                newer.last_killed_by
                if newer.last_killed_by and newer.last_death_timestamp >= self.last_death_timestamp
                else self.last_killed_by
            ),
        )


@dataclass
class BlockBatches:
    """All rows produced for one block, keyed by destination table."""

    beast_stats: list[BeastStatsRow] = field(default_factory=list)
    battles: list[BattleRow] = field(default_factory=list)
    rewards_earned: list[RewardsEarnedRow] = field(default_factory=list)
    rewards_claimed: list[RewardsClaimedRow] = field(default_factory=list)
    poison_events: list[PoisonRow] = field(default_factory=list)
    corpse_events: list[CorpseRow] = field(default_factory=list)
    skulls_claimed: list[SkullsClaimedRow] = field(default_factory=list)
    quest_rewards_claimed: list[QuestRewardsRow] = field(default_factory=list)
    summit_log: list[LogEntry] = field(default_factory=list)
    beast_owners: list[BeastOwnerRow] = field(default_factory=list)
    beasts: list[BeastRow] = field(default_factory=list)
    beast_data: list[BeastDataRow] = field(default_factory=list)
    consumables: list[ConsumableDelta] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(self.counts().values())

    def counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in vars(self).items()}
