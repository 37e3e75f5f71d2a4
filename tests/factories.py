"""Synthetic raw event factories for testing."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from summit_indexer.models.config import (
    BEAST_DUNGEON,
    LOOT_SURVIVOR_DUNGEON,
    ContractAddresses,
    TokenAddresses,
)
from summit_indexer.models.events import Block, BlockHeader, RawEvent
from summit_indexer.models.stats import LiveBeastStats
from summit_indexer.starknet.decoder import (
    BATTLE,
    BEAST_UPDATES,
    CORPSE,
    LIVE_BEAST_STATS,
    POISON,
    QUEST_REWARDS_CLAIMED,
    REWARDS_CLAIMED,
    REWARDS_EARNED,
    SKULL,
    STORE_SET_RECORD,
    TRANSFER,
)
from summit_indexer.starknet.packing import pack_live_beast_stats, pack_quest_reward

CONTRACTS = ContractAddresses()
TOKENS = TokenAddresses()

ZERO = "0x0"
ONE = 10 ** 18
BLOCK_TIME = 1_700_000_000

ENTITY_STATS_MODEL = "0x1234"
COLLECTABLE_ENTITY_MODEL = "0x5678"

TX_A = "0x" + "a" * 64
TX_B = "0x" + "b" * 64


def _hex(*values: int) -> tuple[str, ...]:
    return tuple(hex(v) for v in values)


def _u256(value: int) -> tuple[str, str]:
    return hex(value & ((1 << 128) - 1)), hex(value >> 128)


def _raw(
    contract: str, keys: tuple[str, ...], data: tuple[str, ...],
    tx: str, index: int,
) -> RawEvent:
    return RawEvent(
        contract_address=contract,
        keys=keys,
        data=data,
        transaction_hash=tx,
        event_index=index,
        block_number=0,
    )


def make_block(number: int, *events: RawEvent, timestamp: int = BLOCK_TIME) -> Block:
    """Wrap events in a block, stamping them with its number."""
    return Block(
        header=BlockHeader(number, datetime.fromtimestamp(timestamp, tz=timezone.utc)),
        events=[replace(e, block_number=number) for e in events],
    )


# ── Beasts NFT / ERC20 ─────────────────────────────────────


def make_beast_transfer(
    token_id: int, to: str, from_: str = ZERO, tx: str = TX_A, index: int = 0,
) -> RawEvent:
    return _raw(
        CONTRACTS.beasts,
        (hex(TRANSFER), from_, to, *_u256(token_id)),
        (),
        tx, index,
    )


def make_token_transfer(
    token: str, from_: str, to: str, amount: int, tx: str = TX_A, index: int = 0,
) -> RawEvent:
    """ERC20 Transfer; ``token`` is a TokenAddresses field, ``amount`` base units."""
    return _raw(
        getattr(TOKENS, token),
        (hex(TRANSFER), from_, to),
        _u256(amount),
        tx, index,
    )


# ── Summit ─────────────────────────────────────────────────


def make_beast_updates(*stats: LiveBeastStats, tx: str = TX_A, index: int = 0) -> RawEvent:
    words = [pack_live_beast_stats(s) for s in stats]
    return _raw(CONTRACTS.summit, _hex(BEAST_UPDATES), _hex(len(words), *words), tx, index)


def make_live_stats(stats: LiveBeastStats, tx: str = TX_A, index: int = 0) -> RawEvent:
    return _raw(
        CONTRACTS.summit, _hex(LIVE_BEAST_STATS), _hex(pack_live_beast_stats(stats)), tx, index,
    )


def make_battle(
    attacker: int,
    defender: int,
    attack_index: int = 0,
    attack_count: int = 1,
    attack_damage: int = 10,
    critical_attack_count: int = 0,
    critical_attack_damage: int = 0,
    xp_gained: int = 1,
    tx: str = TX_A,
    index: int = 0,
) -> RawEvent:
    data = _hex(
        attacker, attack_index, defender,
        attack_count, attack_damage,
        critical_attack_count, critical_attack_damage,
        0, 0,  # counter attack
        0, 0,  # critical counter attack
        0, 0,  # attack / revive potions
        xp_gained,
    )
    return _raw(CONTRACTS.summit, _hex(BATTLE), data, tx, index)


def make_reward_earned(token_id: int, amount: int, tx: str = TX_A, index: int = 0) -> RawEvent:
    return _raw(CONTRACTS.summit, _hex(REWARDS_EARNED), _hex(token_id, amount), tx, index)


def make_reward_claimed(player: str, amount: int, tx: str = TX_A, index: int = 0) -> RawEvent:
    return _raw(CONTRACTS.summit, _hex(REWARDS_CLAIMED), (player, hex(amount)), tx, index)


def make_poison(
    token_id: int, count: int, player: str, tx: str = TX_A, index: int = 0,
) -> RawEvent:
    return _raw(CONTRACTS.summit, _hex(POISON), (hex(token_id), hex(count), player), tx, index)


def make_quest_rewards(
    *rewards: tuple[int, int], tx: str = TX_A, index: int = 0,
) -> RawEvent:
    words = [pack_quest_reward(t, a) for t, a in rewards]
    return _raw(
        CONTRACTS.summit, _hex(QUEST_REWARDS_CLAIMED), _hex(len(words), *words), tx, index,
    )


# ── Corpse / Skull ─────────────────────────────────────────


def make_corpse(
    player: str, adventurer_ids: list[int], corpse_amount: int,
    tx: str = TX_A, index: int = 0,
) -> RawEvent:
    data = (player, *_hex(len(adventurer_ids), *adventurer_ids, corpse_amount))
    return _raw(CONTRACTS.corpse, _hex(CORPSE), data, tx, index)


def make_skull(
    token_ids: list[int], skulls_claimed: int, tx: str = TX_A, index: int = 0,
) -> RawEvent:
    data = _hex(len(token_ids), *token_ids, skulls_claimed)
    return _raw(CONTRACTS.skull, _hex(SKULL), data, tx, index)


# ── Dojo world ─────────────────────────────────────────────


def _store_set_record(
    model: str, keys: list[int], values: list[int], tx: str, index: int,
) -> RawEvent:
    entity_id = hex(keys[1]) if len(keys) > 1 else "0x0"
    return _raw(
        CONTRACTS.dojo_world,
        (hex(STORE_SET_RECORD), model, entity_id),
        _hex(len(keys), *keys, len(values), *values),
        tx, index,
    )


def make_entity_stats(
    entity_hash: str, adventurers_killed: int, dungeon: str = BEAST_DUNGEON,
    tx: str = TX_A, index: int = 0,
) -> RawEvent:
    return _store_set_record(
        ENTITY_STATS_MODEL,
        [int(dungeon, 16), int(entity_hash, 16)],
        [adventurers_killed],
        tx, index,
    )


def make_collectable_entity(
    entity_hash: str, killed_by: int, timestamp: int,
    dungeon: str = LOOT_SURVIVOR_DUNGEON, tx: str = TX_A, index: int = 0,
) -> RawEvent:
    return _store_set_record(
        COLLECTABLE_ENTITY_MODEL,
        [int(dungeon, 16), int(entity_hash, 16), 0],
        [1234, 5, 0, 10, 20, killed_by, timestamp],  # seed level health prefix suffix
        tx, index,
    )
