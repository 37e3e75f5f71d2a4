"""Battle log aggregation applied to a block's summit_log batch."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from summit_indexer.models.records import LogEntry

SUMMED_FIELDS = (
    "attack_count", "attack_damage",
    "critical_attack_count", "critical_attack_damage",
    "counter_attack_count", "counter_attack_damage",
    "critical_counter_attack_count", "critical_counter_attack_damage",
    "attack_potions", "revive_potions", "xp_gained",
)

FIRST_ATTACKER_FIELDS = (
    "attacking_beast_token_id", "attack_index", "defending_beast_token_id",
    "attacking_beast_owner", "attacking_beast_id", "attacking_beast_prefix",
    "attacking_beast_suffix", "attacking_beast_shiny", "attacking_beast_animated",
)


def is_battle_log(entry: LogEntry) -> bool:
    return entry.category == "Battle" and entry.sub_category == "BattleEvent"


def battle_damage(data: dict[str, Any]) -> int:
    return (
        int(data.get("attack_count") or 0) * int(data.get("attack_damage") or 0)
        + int(data.get("critical_attack_count") or 0) * int(data.get("critical_attack_damage") or 0)
    )


def aggregate_battle_logs(logs: list[LogEntry]) -> list[LogEntry]:
    """Fold BattleEvent logs that share a transaction into one entry.

    The folded entry keeps the first battle's key and attacker identity,
    sums the counters and adds ``beast_count`` and ``total_damage``. Other
    entries pass through in order.
    """
    by_tx: dict[str, list[LogEntry]] = {}
    for entry in logs:
        if is_battle_log(entry):
            by_tx.setdefault(entry.transaction_hash, []).append(entry)

    out: list[LogEntry] = []
    for entry in logs:
        if not is_battle_log(entry):
            out.append(entry)
            continue
        group = by_tx[entry.transaction_hash]
        if entry is not group[0]:
            continue
        out.append(_fold(group))
    return out


def _fold(group: list[LogEntry]) -> LogEntry:
    first = group[0]
    if len(group) == 1:
        data = {**first.data, "beast_count": 1, "total_damage": battle_damage(first.data)}
        return replace(first, data=data)

    data: dict[str, Any] = {f: first.data.get(f) for f in FIRST_ATTACKER_FIELDS}
    for f in SUMMED_FIELDS:
        data[f] = sum(int(e.data.get(f) or 0) for e in group)
    data["beast_count"] = len(group)
    data["total_damage"] = sum(battle_damage(e.data) for e in group)
    return replace(first, data=data)
