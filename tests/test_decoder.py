"""Tests 7-12: Raw event decoding."""

from __future__ import annotations

from dataclasses import replace

import pytest

from summit_indexer.errors import DecodeError, UnknownSelector
from summit_indexer.models.config import ContractAddresses, TokenAddresses
from summit_indexer.models.events import (
    BattleEvent,
    BeastTransferEvent,
    CollectableEntityEvent,
    CorpseEvent,
    EntityStatsEvent,
    PackedStatBatchEvent,
    PoisonEvent,
    QuestRewardsClaimedEvent,
    RewardClaimedEvent,
    SingleStatUpdateEvent,
    SkullClaimEvent,
    TokenTransferEvent,
)
from summit_indexer.models.stats import LiveBeastStats
from summit_indexer.starknet.decoder import EventDecoder
from summit_indexer.starknet.felt import felt

from tests.conftest import BEAST_HASH, PLAYER_A, PLAYER_B, make_test_config
from tests.factories import (
    ONE,
    make_battle,
    make_beast_transfer,
    make_beast_updates,
    make_collectable_entity,
    make_corpse,
    make_entity_stats,
    make_live_stats,
    make_poison,
    make_quest_rewards,
    make_reward_claimed,
    make_skull,
    make_token_transfer,
)


@pytest.fixture
def decoder():
    return EventDecoder(make_test_config())


# ── Test 7: Transfers ────────────────────────────────────────────


def test_decode_beast_transfer(decoder):
    event = decoder.decode(make_beast_transfer(100, PLAYER_A))
    assert isinstance(event, BeastTransferEvent)
    assert event.token_id == 100
    assert event.to_address == PLAYER_A
    assert felt(event.from_address) == 0


def test_decode_token_transfer_role_and_amount(decoder):
    event = decoder.decode(make_token_transfer("attack", PLAYER_A, PLAYER_B, 3 * ONE + 7))
    assert isinstance(event, TokenTransferEvent)
    assert event.token == "attack_count"
    assert event.amount.whole_units == 3
    assert event.from_address == PLAYER_A

    paid = decoder.decode(make_token_transfer("survivor", PLAYER_A, PLAYER_B, ONE))
    assert paid.token == "survivor"


# ── Test 8: Summit stat events ───────────────────────────────────


def test_decode_packed_stat_batch(decoder):
    a = LiveBeastStats(token_id=100, current_health=50, spirit=3)
    b = LiveBeastStats(token_id=101, extra_lives=2, wisdom=True)
    event = decoder.decode(make_beast_updates(a, b))
    assert isinstance(event, PackedStatBatchEvent)
    assert event.updates == (a, b)


def test_decode_single_stat_update(decoder):
    stats = LiveBeastStats(token_id=42, luck=9)
    event = decoder.decode(make_live_stats(stats))
    assert isinstance(event, SingleStatUpdateEvent)
    assert event.stats == stats


# ── Test 9: Summit game events ───────────────────────────────────


def test_decode_battle(decoder):
    event = decoder.decode(make_battle(100, 200, attack_index=4, attack_count=2, attack_damage=15))
    assert isinstance(event, BattleEvent)
    assert event.attacking_beast_token_id == 100
    assert event.defending_beast_token_id == 200
    assert event.attack_index == 4
    assert event.attack_count == 2
    assert event.attack_damage == 15
    assert event.xp_gained == 1


def test_decode_rewards_and_poison(decoder):
    claimed = decoder.decode(make_reward_claimed(PLAYER_A, 5 * ONE))
    assert isinstance(claimed, RewardClaimedEvent)
    assert claimed.player == PLAYER_A
    assert claimed.amount == 5 * ONE

    poison = decoder.decode(make_poison(100, 3, PLAYER_B))
    assert isinstance(poison, PoisonEvent)
    assert (poison.beast_token_id, poison.count, poison.player) == (100, 3, PLAYER_B)


def test_decode_quest_rewards(decoder):
    event = decoder.decode(make_quest_rewards((100, 5), (101, 7)))
    assert isinstance(event, QuestRewardsClaimedEvent)
    assert event.rewards == ((100, 5), (101, 7))


# ── Test 10: Corpse and skull contracts ──────────────────────────


def test_decode_corpse_and_skull(decoder):
    corpse = decoder.decode(make_corpse(PLAYER_A, [11, 12, 13], 30))
    assert isinstance(corpse, CorpseEvent)
    assert corpse.adventurer_ids == (11, 12, 13)
    assert corpse.corpse_amount == 30

    skull = decoder.decode(make_skull([100, 101], 9))
    assert isinstance(skull, SkullClaimEvent)
    assert skull.beast_token_ids == (100, 101)
    assert skull.skulls_claimed == 9


# ── Test 11: Dojo model records ──────────────────────────────────


def test_decode_dojo_models(decoder):
    stats = decoder.decode(make_entity_stats(BEAST_HASH, 7))
    assert isinstance(stats, EntityStatsEvent)
    assert stats.entity_hash == BEAST_HASH
    assert stats.adventurers_killed == 7
    assert felt(stats.dungeon) == 6

    entity = decoder.decode(make_collectable_entity(BEAST_HASH, killed_by=42, timestamp=1_000))
    assert isinstance(entity, CollectableEntityEvent)
    assert entity.last_killed_by == 42
    assert entity.timestamp == 1_000


def test_untracked_dojo_model_is_unknown():
    decoder = EventDecoder(make_test_config(dojo=replace(make_test_config().dojo, entity_stats_selector="")))
    with pytest.raises(UnknownSelector):
        decoder.decode(make_entity_stats(BEAST_HASH, 7))


# ── Test 12: Unknown and malformed events ────────────────────────


def test_unknown_selector(decoder):
    raw = make_battle(1, 2)
    wrong_contract = replace(raw, contract_address=ContractAddresses().beasts)
    with pytest.raises(UnknownSelector) as exc_info:
        decoder.decode(wrong_contract)
    assert exc_info.value.selector is not None


def test_short_payload_is_decode_error(decoder):
    raw = make_battle(1, 2)
    truncated = replace(raw, data=raw.data[:5])
    with pytest.raises(DecodeError, match="too short") as exc_info:
        decoder.decode(truncated)
    assert not isinstance(exc_info.value, UnknownSelector)
    assert exc_info.value.selector is not None


def test_oversized_stat_word_is_decode_error(decoder):
    raw = make_live_stats(LiveBeastStats(token_id=1))
    bad = replace(raw, data=(hex(1 << 251),))
    with pytest.raises(DecodeError):
        decoder.decode(bad)


def test_unparseable_routing_key_is_decode_error(decoder):
    raw = make_battle(1, 2)
    with pytest.raises(DecodeError, match="malformed routing key") as exc_info:
        decoder.decode(replace(raw, keys=("not-a-felt",)))
    assert not isinstance(exc_info.value, UnknownSelector)
    assert exc_info.value.selector == "not-a-felt"

    with pytest.raises(DecodeError):
        decoder.decode(replace(raw, contract_address="0xsummit"))


def test_tracked_addresses_cover_all_emitters(decoder):
    contracts, tokens = ContractAddresses(), TokenAddresses()
    tracked = decoder.tracked_addresses
    for address in (contracts.summit, contracts.beasts, contracts.corpse, contracts.skull,
                    contracts.dojo_world, tokens.attack, tokens.survivor):
        assert felt(address) in tracked
    assert felt(contracts.pool) not in tracked
