"""Event decoder - turns raw Starknet events into typed game events."""

from __future__ import annotations

import logging
from typing import Callable

from summit_indexer.errors import DecodeError, UnknownSelector
from summit_indexer.interfaces.source import DecodedEvent
from summit_indexer.models.amounts import TokenAmount
from summit_indexer.models.config import IndexerConfig
from summit_indexer.models.events import (
    BattleEvent,
    BeastTransferEvent,
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
from summit_indexer.starknet.felt import felt, get_selector, to_address, to_hex
from summit_indexer.starknet.packing import unpack_live_beast_stats, unpack_quest_reward

log = logging.getLogger(__name__)

TRANSFER = get_selector("Transfer")
BEAST_UPDATES = get_selector("BeastUpdatesEvent")
LIVE_BEAST_STATS = get_selector("LiveBeastStatsEvent")
BATTLE = get_selector("BattleEvent")
REWARDS_EARNED = get_selector("RewardsEarnedEvent")
REWARDS_CLAIMED = get_selector("RewardsClaimedEvent")
POISON = get_selector("PoisonEvent")
QUEST_REWARDS_CLAIMED = get_selector("QuestRewardsClaimedEvent")
CORPSE = get_selector("CorpseEvent")
SKULL = get_selector("SkullEvent")
STORE_SET_RECORD = get_selector("StoreSetRecord")

# Consumable ERC20 -> consumables column. The paid asset is tracked as "survivor".
TOKEN_COLUMNS = {
    "xlife": "xlife_count",
    "attack": "attack_count",
    "revive": "revive_count",
    "poison": "poison_count",
    "survivor": "survivor",
}


class _Reader:
    """Sequential felt reader over an event's data array."""

    def __init__(self, felts: tuple[str, ...]) -> None:
        self._felts = felts
        self._pos = 0

    def next(self) -> int:
        if self._pos >= len(self._felts):
            raise DecodeError(f"payload too short: wanted felt #{self._pos}")
        value = felt(self._felts[self._pos])
        self._pos += 1
        return value

    def take(self, n: int) -> list[int]:
        return [self.next() for _ in range(n)]

    def span(self) -> list[int]:
        """Length-prefixed array."""
        return self.take(self.next())


class EventDecoder:
    """Routes raw events by (contract address, selector) to field decoders.

    Raises ``UnknownSelector`` for events no decoder is registered for and
    ``DecodeError`` for malformed payloads.
    """

    def __init__(self, cfg: IndexerConfig) -> None:
        c = cfg.contracts
        summit, beasts = felt(c.summit), felt(c.beasts)
        self._routes: dict[tuple[int, int], Callable[[RawEvent], DecodedEvent]] = {
            (beasts, TRANSFER): self._beast_transfer,
            (summit, BEAST_UPDATES): self._beast_updates,
            (summit, LIVE_BEAST_STATS): self._live_beast_stats,
            (summit, BATTLE): self._battle,
            (summit, REWARDS_EARNED): self._rewards_earned,
            (summit, REWARDS_CLAIMED): self._rewards_claimed,
            (summit, POISON): self._poison,
            (summit, QUEST_REWARDS_CLAIMED): self._quest_rewards,
            (felt(c.corpse), CORPSE): self._corpse,
            (felt(c.skull), SKULL): self._skull,
            (felt(c.dojo_world), STORE_SET_RECORD): self._store_set_record,
        }
        self._token_roles: dict[int, str] = {}
        for role, column in TOKEN_COLUMNS.items():
            address = felt(getattr(cfg.tokens, role))
            self._token_roles[address] = column
            self._routes[(address, TRANSFER)] = self._token_transfer

        dojo = cfg.dojo
        self._models: dict[int, Callable[[list[int]], DecodedEvent]] = {}
        if dojo.entity_stats_selector:
            self._models[felt(dojo.entity_stats_selector)] = self._entity_stats
        if dojo.collectable_entity_selector:
            self._models[felt(dojo.collectable_entity_selector)] = self._collectable_entity

    @property
    def tracked_addresses(self) -> set[int]:
        return {address for address, _ in self._routes}

    def decode(self, raw: RawEvent) -> DecodedEvent:
        if not raw.keys:
            raise DecodeError("event has no keys")
        try:
            selector = felt(raw.keys[0])
            address = felt(raw.contract_address)
        except ValueError as exc:
            raise DecodeError(f"malformed routing key: {exc}", selector=raw.keys[0]) from exc
        handler = self._routes.get((address, selector))
        if handler is None:
            raise UnknownSelector(
                f"no decoder for {raw.contract_address} / {to_hex(selector)}",
                selector=to_hex(selector),
            )
        try:
            return handler(raw)
        except DecodeError as exc:
            exc.selector = to_hex(selector)
            raise
        except (IndexError, ValueError) as exc:
            raise DecodeError(f"malformed payload: {exc}", selector=to_hex(selector)) from exc

    # ── ERC721 / ERC20 ─────────────────────────────────────

    def _beast_transfer(self, raw: RawEvent) -> BeastTransferEvent:
        keys = _Reader(raw.keys[1:])
        from_address, to_address_, low, high = keys.take(4)
        return BeastTransferEvent(
            from_address=to_address(from_address),
            to_address=to_address(to_address_),
            token_id=TokenAmount.from_u256(low, high).raw,
        )

    def _token_transfer(self, raw: RawEvent) -> TokenTransferEvent:
        keys = _Reader(raw.keys[1:])
        data = _Reader(raw.data)
        from_address, to_address_ = keys.take(2)
        low, high = data.take(2)
        return TokenTransferEvent(
            token=self._token_roles[felt(raw.contract_address)],
            from_address=to_address(from_address),
            to_address=to_address(to_address_),
            amount=TokenAmount.from_u256(low, high),
        )

    # ── Summit ─────────────────────────────────────────────

    def _beast_updates(self, raw: RawEvent) -> PackedStatBatchEvent:
        words = _Reader(raw.data).span()
        return PackedStatBatchEvent(
            updates=tuple(unpack_live_beast_stats(w) for w in words),
        )

    def _live_beast_stats(self, raw: RawEvent) -> SingleStatUpdateEvent:
        return SingleStatUpdateEvent(stats=unpack_live_beast_stats(_Reader(raw.data).next()))

    def _battle(self, raw: RawEvent) -> BattleEvent:
        return BattleEvent(*_Reader(raw.data).take(14))

    def _rewards_earned(self, raw: RawEvent) -> RewardEarnedEvent:
        token_id, amount = _Reader(raw.data).take(2)
        return RewardEarnedEvent(beast_token_id=token_id, amount=amount)

    def _rewards_claimed(self, raw: RawEvent) -> RewardClaimedEvent:
        player, amount = _Reader(raw.data).take(2)
        return RewardClaimedEvent(player=to_address(player), amount=amount)

    def _poison(self, raw: RawEvent) -> PoisonEvent:
        token_id, count, player = _Reader(raw.data).take(3)
        return PoisonEvent(beast_token_id=token_id, count=count, player=to_address(player))

    def _quest_rewards(self, raw: RawEvent) -> QuestRewardsClaimedEvent:
        words = _Reader(raw.data).span()
        return QuestRewardsClaimedEvent(rewards=tuple(unpack_quest_reward(w) for w in words))

    # ── Corpse / Skull ─────────────────────────────────────

    def _corpse(self, raw: RawEvent) -> CorpseEvent:
        data = _Reader(raw.data)
        player = data.next()
        ids = data.span()
        return CorpseEvent(
            player=to_address(player),
            adventurer_ids=tuple(ids),
            corpse_amount=data.next(),
        )

    def _skull(self, raw: RawEvent) -> SkullClaimEvent:
        data = _Reader(raw.data)
        ids = data.span()
        return SkullClaimEvent(beast_token_ids=tuple(ids), skulls_claimed=data.next())

    # ── Dojo world ─────────────────────────────────────────

    def _store_set_record(self, raw: RawEvent) -> DecodedEvent:
        if len(raw.keys) < 2:
            raise DecodeError("StoreSetRecord without model selector")
        model = felt(raw.keys[1])
        handler = self._models.get(model)
        if handler is None:
            raise UnknownSelector(f"untracked dojo model {to_hex(model)}")
        data = _Reader(raw.data)
        keys = data.span()
        values = data.span()
        return handler(keys + values)

    def _entity_stats(self, fields: list[int]) -> EntityStatsEvent:
        if len(fields) < 3:
            raise DecodeError("EntityStats record too short")
        dungeon, entity_hash, adventurers_killed = fields[:3]
        return EntityStatsEvent(
            dungeon=to_hex(dungeon),
            entity_hash=to_address(entity_hash),
            adventurers_killed=adventurers_killed,
        )

    def _collectable_entity(self, fields: list[int]) -> CollectableEntityEvent:
        # keys: dungeon, entity_hash, index
        # values: seed, level, health, prefix, suffix, killed_by, timestamp
        if len(fields) < 10:
            raise DecodeError("CollectableEntity record too short")
        return CollectableEntityEvent(
            dungeon=to_hex(fields[0]),
            entity_hash=to_address(fields[1]),
            last_killed_by=fields[8],
            timestamp=fields[9],
        )
