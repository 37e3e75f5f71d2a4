"""Tests 22-23: Battle log aggregation."""

from __future__ import annotations

from summit_indexer.models.records import EventKey, EventSite, LogEntry
from summit_indexer.pipeline.batches import aggregate_battle_logs, battle_damage

from tests.factories import TX_A, TX_B


def _battle(tx: str, index: int, attacker: int, **counters) -> LogEntry:
    data = {
        "attacking_beast_token_id": attacker,
        "attack_index": index,
        "defending_beast_token_id": 999,
        "attacking_beast_owner": "0xowner",
        "attacking_beast_id": attacker % 75,
        "attack_count": 1,
        "attack_damage": 10,
        "critical_attack_count": 0,
        "critical_attack_damage": 0,
        "xp_gained": 2,
        **counters,
    }
    return EventSite(1000, tx, index, "c", "i").log("Battle", "BattleEvent", data)


# ── Test 22: Battles in one transaction fold together ────────────


def test_battles_fold_per_transaction():
    upgrade = EventSite(1000, TX_A, 1, "c", "i").log("Beast Upgrade", "Spirit", {"new_value": 3})
    logs = [
        _battle(TX_A, 0, attacker=100),
        upgrade,
        _battle(TX_A, 2, attacker=101, attack_count=2, critical_attack_count=1,
                critical_attack_damage=25),
        _battle(TX_B, 3, attacker=102),
    ]

    out = aggregate_battle_logs(logs)

    assert [e.key for e in out] == [EventKey(0), EventKey(1), EventKey(3)]
    folded = out[0]
    assert folded.data["attacking_beast_token_id"] == 100
    assert folded.data["beast_count"] == 2
    assert folded.data["attack_count"] == 3
    assert folded.data["xp_gained"] == 4
    assert folded.data["total_damage"] == 10 + (2 * 10 + 25)
    assert out[1] is upgrade


# ── Test 23: A lone battle still gets totals ─────────────────────


def test_single_battle_gets_totals():
    out = aggregate_battle_logs([_battle(TX_B, 3, attacker=102, attack_count=4)])
    assert out[0].data["beast_count"] == 1
    assert out[0].data["total_damage"] == 40
    assert out[0].data["defending_beast_token_id"] == 999


def test_battle_damage_treats_missing_as_zero():
    assert battle_damage({}) == 0
    assert battle_damage({"attack_count": 3, "attack_damage": 5, "critical_attack_count": None}) == 15
