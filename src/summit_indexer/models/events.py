"""Raw chain input and decoded contract event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from summit_indexer.models.amounts import TokenAmount
from summit_indexer.models.stats import LiveBeastStats


# ── Raw input ──────────────────────────────────────────────


@dataclass(frozen=True)
class RawEvent:
    """A single event as delivered by the block stream."""

    contract_address: str
    keys: tuple[str, ...]
    data: tuple[str, ...]
    transaction_hash: str
    event_index: int  # block-wide position
    block_number: int


@dataclass(frozen=True)
class BlockHeader:
    block_number: int
    timestamp: datetime


@dataclass(frozen=True)
class Block:
    header: BlockHeader
    events: list[RawEvent] = field(default_factory=list)

    @property
    def number(self) -> int:
        return self.header.block_number


# ── Beasts NFT / ERC20 ─────────────────────────────────────


@dataclass(frozen=True)
class BeastTransferEvent:
    """ERC721 Transfer on the Beasts contract."""

    from_address: str
    to_address: str
    token_id: int


@dataclass(frozen=True)
class TokenTransferEvent:
    """ERC20 Transfer on one of the tracked fungible tokens.

    ``token`` is the column role: xlife_count, attack_count, revive_count,
    poison_count or survivor.
    """

    token: str
    from_address: str
    to_address: str
    amount: TokenAmount


# ── Summit game ────────────────────────────────────────────


@dataclass(frozen=True)
class PackedStatBatchEvent:
    """BeastUpdatesEvent: several packed stat words in one event."""

    updates: tuple[LiveBeastStats, ...]


@dataclass(frozen=True)
class SingleStatUpdateEvent:
    """LiveBeastStatsEvent: one packed stat word."""

    stats: LiveBeastStats


@dataclass(frozen=True)
class BattleEvent:
    attacking_beast_token_id: int
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


@dataclass(frozen=True)
class RewardEarnedEvent:
    beast_token_id: int
    amount: int


@dataclass(frozen=True)
class RewardClaimedEvent:
    player: str
    amount: int


@dataclass(frozen=True)
class PoisonEvent:
    beast_token_id: int
    count: int
    player: str


@dataclass(frozen=True)
class QuestRewardsClaimedEvent:
    """Packed (beast_token_id, amount) pairs, already unpacked."""

    rewards: tuple[tuple[int, int], ...]


# ── Corpse / Skull contracts ───────────────────────────────


@dataclass(frozen=True)
class CorpseEvent:
    player: str
    adventurer_ids: tuple[int, ...]
    corpse_amount: int


@dataclass(frozen=True)
class SkullClaimEvent:
    beast_token_ids: tuple[int, ...]
    skulls_claimed: int


# ── Dojo world (Loot Survivor) ─────────────────────────────


@dataclass(frozen=True)
class EntityStatsEvent:
    dungeon: str
    entity_hash: str
    adventurers_killed: int


@dataclass(frozen=True)
class CollectableEntityEvent:
    dungeon: str
    entity_hash: str
    last_killed_by: int
    timestamp: int
