"""Per-block batch writer with a fixed conflict policy per table."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import astuple, fields
from typing import Any, Callable, Coroutine, Iterable, TypeVar

import aiosqlite

from summit_indexer.errors import BatchWriteError
from summit_indexer.models.records import (
    BattleRow,
    BeastDataRow,
    BeastOwnerRow,
    BeastRow,
    BeastStatsRow,
    BlockBatches,
    ConsumableDelta,
    CorpseRow,
    LogEntry,
    PoisonRow,
    QuestRewardsRow,
    RewardsClaimedRow,
    RewardsEarnedRow,
    SkullsClaimedRow,
)
from summit_indexer.models.stats import LiveBeastStats

log = logging.getLogger(__name__)

T = TypeVar("T")

CONSUMABLE_COLUMNS = ("xlife_count", "attack_count", "revive_count", "poison_count")

_STAT_COLUMNS = [f.name for f in fields(LiveBeastStats)]


def dedupe_last(rows: Iterable[T], key: Callable[[T], Any]) -> list[T]:
    """Keep the last row for every key, in first-seen key order."""
    out: dict[Any, T] = {}
    for row in rows:
        out[key(row)] = row
    return list(out.values())


def merge_beast_data(rows: Iterable[BeastDataRow]) -> list[BeastDataRow]:
    """Fold rows for the same entity using the table's monotonic merge rules."""
    out: dict[str, BeastDataRow] = {}
    for row in rows:
        existing = out.get(row.entity_hash)
        out[row.entity_hash] = existing.merge(row) if existing else row
    return list(out.values())


def _append_sql(table: str, columns: list[str]) -> str:
    return (
        f"INSERT INTO {table} ({', '.join(columns)})"
        f" VALUES ({', '.join('?' * len(columns))})"
        " ON CONFLICT DO NOTHING"
    )


def _upsert_sql(table: str, columns: list[str], key: str) -> str:
    updates = ", ".join(f"{c}=excluded.{c}" for c in columns if c != key)
    return (
        f"INSERT INTO {table} ({', '.join(columns)})"
        f" VALUES ({', '.join('?' * len(columns))})"
        f" ON CONFLICT({key}) DO UPDATE SET {updates}"
    )


def _columns(row_type: type) -> list[str]:
    return [f.name for f in fields(row_type)]


class BatchWriter:
    """Commits one block's table batches in a single transaction.

    Tables are written concurrently; there is no ordering dependency
    between them. Any failure rolls back every table and raises
    ``BatchWriteError`` so the block is retried from scratch.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def write(self, batches: BlockBatches) -> None:
        jobs: dict[str, Coroutine[Any, Any, None]] = {}

        def add(table: str, rows: list, writer: Callable[[list], Coroutine[Any, Any, None]]) -> None:
            if rows:
                jobs[table] = writer(rows)

        # Latest state
        add("beast_stats", dedupe_last(batches.beast_stats, lambda r: r.stats.token_id), self._beast_stats)
        add("beast_owners", dedupe_last(batches.beast_owners, lambda r: r.token_id), self._beast_owners)
        add("skulls_claimed", dedupe_last(batches.skulls_claimed, lambda r: r.beast_token_id), self._skulls)
        add("quest_rewards_claimed", dedupe_last(batches.quest_rewards_claimed, lambda r: r.beast_token_id),
            self._quest_rewards)
        # Insert once
        add("beasts", dedupe_last(batches.beasts, lambda r: r.token_id), self._beasts)
        # Monotonic merge
        add("beast_data", merge_beast_data(batches.beast_data), self._beast_data)
        # Append only
        add("battles", batches.battles, self._append("battles", BattleRow))
        add("rewards_earned", batches.rewards_earned, self._append("rewards_earned", RewardsEarnedRow))
        add("rewards_claimed", batches.rewards_claimed, self._append("rewards_claimed", RewardsClaimedRow))
        add("poison_events", batches.poison_events, self._append("poison_events", PoisonRow))
        add("corpse_events", batches.corpse_events, self._append("corpse_events", CorpseRow))
        add("summit_log", batches.summit_log, self._summit_log)
        # Additive with floor
        add("consumables", batches.consumables, self._consumables)

        if not jobs:
            return

        results = await asyncio.gather(*jobs.values(), return_exceptions=True)
        for table, result in zip(jobs, results):
            if isinstance(result, BaseException):
                await self._db.rollback()
                log.error("Batch write to %s failed: %s", table, result)
                raise BatchWriteError(table, result) from result
        await self._db.commit()

    # ── Latest-state upserts ───────────────────────────────

    async def _beast_stats(self, rows: list[BeastStatsRow]) -> None:
        columns = _STAT_COLUMNS + ["block_number", "transaction_hash", "created_at", "indexed_at"]
        await self._db.executemany(
            _upsert_sql("beast_stats", columns, "token_id"),
            [
                tuple(int(v) for v in astuple(r.stats))
                + (r.block_number, r.transaction_hash, r.created_at, r.indexed_at)
                for r in rows
            ],
        )

    async def _beast_owners(self, rows: list[BeastOwnerRow]) -> None:
        await self._db.executemany(
            _upsert_sql("beast_owners", _columns(BeastOwnerRow), "token_id"),
            [astuple(r) for r in rows],
        )

    async def _skulls(self, rows: list[SkullsClaimedRow]) -> None:
        await self._db.executemany(
            _upsert_sql("skulls_claimed", _columns(SkullsClaimedRow), "beast_token_id"),
            [astuple(r) for r in rows],
        )

    async def _quest_rewards(self, rows: list[QuestRewardsRow]) -> None:
        await self._db.executemany(
            _upsert_sql("quest_rewards_claimed", _columns(QuestRewardsRow), "beast_token_id"),
            [astuple(r) for r in rows],
        )

    async def _beasts(self, rows: list[BeastRow]) -> None:
        await self._db.executemany(
            _append_sql("beasts", _columns(BeastRow)),
            [astuple(r) for r in rows],
        )

    # ── Monotonic merge ────────────────────────────────────

    async def _beast_data(self, rows: list[BeastDataRow]) -> None:
        await self._db.executemany(
            "INSERT INTO beast_data (entity_hash, updated_at, token_id, adventurers_killed,"
            "  last_death_timestamp, last_killed_by)"
            " VALUES (?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(entity_hash) DO UPDATE SET"
            " token_id=coalesce(beast_data.token_id, excluded.token_id),"
            " adventurers_killed=max(beast_data.adventurers_killed, excluded.adventurers_killed),"
            " last_killed_by=CASE"
            "   WHEN excluded.last_killed_by != 0"
            "    AND excluded.last_death_timestamp >= beast_data.last_death_timestamp"
            "   THEN excluded.last_killed_by ELSE beast_data.last_killed_by END,"
            " last_death_timestamp=max(beast_data.last_death_timestamp, excluded.last_death_timestamp),"
            " updated_at=excluded.updated_at",
            [astuple(r) for r in rows],
        )

    # ── Append only ────────────────────────────────────────

    def _append(self, table: str, row_type: type) -> Callable[[list], Coroutine[Any, Any, None]]:
        sql = _append_sql(table, _columns(row_type))

        async def write(rows: list) -> None:
            await self._db.executemany(sql, [astuple(r) for r in rows])

        return write

    async def _summit_log(self, rows: list[LogEntry]) -> None:
        await self._db.executemany(
            "INSERT INTO summit_log (block_number, transaction_hash, event_index, sub_index,"
            "  category, sub_category, data, player, token_id, created_at, indexed_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT DO NOTHING",
            [
                (
                    e.block_number, e.transaction_hash, e.key.base_index, e.key.sub_index,
                    e.category, e.sub_category, json.dumps(e.data), e.player, e.token_id,
                    e.created_at, e.indexed_at,
                )
                for e in rows
            ],
        )

    # ── Additive with floor ────────────────────────────────

    async def _consumables(self, rows: list[ConsumableDelta]) -> None:
        for d in rows:
            if d.column not in CONSUMABLE_COLUMNS:
                raise ValueError(f"not a consumable column: {d.column}")
            cur = await self._db.execute(
                "INSERT INTO consumable_ledger (block_number, transaction_hash, event_index,"
                "  owner, column_name, direction, delta)"
                " VALUES (?, ?, ?, ?, ?, ?, ?)"
                " ON CONFLICT DO NOTHING",
                (
                    d.block_number, d.transaction_hash, d.event_index, d.owner, d.column,
                    "credit" if d.delta > 0 else "debit", d.delta,
                ),
            )
            if cur.rowcount != 1:
                continue  # already applied by an earlier pass over this block
            await self._db.execute(
                f"INSERT INTO consumables (owner, {d.column}, updated_at)"
                " VALUES (?, max(?, 0), ?)"
                f" ON CONFLICT(owner) DO UPDATE SET"
                f" {d.column}=max(consumables.{d.column} + ?, 0),"
                " updated_at=excluded.updated_at",
                (d.owner, d.delta, d.updated_at, d.delta),
            )
