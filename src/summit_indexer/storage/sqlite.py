"""SQLite implementation of the IndexStore protocol."""

from __future__ import annotations

import json
from dataclasses import fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from summit_indexer.errors import ContextLookupError
from summit_indexer.models.records import BlockBatches, EventKey, LogEntry
from summit_indexer.models.stats import (
    BeastContext,
    BeastMetadata,
    EntityLink,
    LiveBeastStats,
)
from summit_indexer.starknet.felt import compute_entity_hash
from summit_indexer.storage.writer import BatchWriter

STAT_COLUMNS = [f.name for f in fields(LiveBeastStats)]

SCHEMA = """
-- Last fully written block
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_block INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Latest live stats per beast
CREATE TABLE IF NOT EXISTS beast_stats (
    token_id INTEGER PRIMARY KEY,
    current_health INTEGER NOT NULL DEFAULT 0,
    bonus_health INTEGER NOT NULL DEFAULT 0,
    bonus_xp INTEGER NOT NULL DEFAULT 0,
    attack_streak INTEGER NOT NULL DEFAULT 0,
    last_death_timestamp INTEGER NOT NULL DEFAULT 0,
    revival_count INTEGER NOT NULL DEFAULT 0,
    extra_lives INTEGER NOT NULL DEFAULT 0,
    summit_held_seconds INTEGER NOT NULL DEFAULT 0,
    spirit INTEGER NOT NULL DEFAULT 0,
    luck INTEGER NOT NULL DEFAULT 0,
    specials INTEGER NOT NULL DEFAULT 0,
    wisdom INTEGER NOT NULL DEFAULT 0,
    diplomacy INTEGER NOT NULL DEFAULT 0,
    rewards_earned INTEGER NOT NULL DEFAULT 0,
    rewards_claimed INTEGER NOT NULL DEFAULT 0,
    captured_summit INTEGER NOT NULL DEFAULT 0,
    used_revival_potion INTEGER NOT NULL DEFAULT 0,
    used_attack_potion INTEGER NOT NULL DEFAULT 0,
    max_attack_streak INTEGER NOT NULL DEFAULT 0,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL
);

-- Immutable beast identity
CREATE TABLE IF NOT EXISTS beasts (
    token_id INTEGER PRIMARY KEY,
    beast_id INTEGER NOT NULL,
    prefix INTEGER NOT NULL,
    suffix INTEGER NOT NULL,
    level INTEGER NOT NULL,
    health INTEGER NOT NULL,
    shiny INTEGER NOT NULL DEFAULT 0,
    animated INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS beast_owners (
    token_id INTEGER PRIMARY KEY,
    owner TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_beast_owners_owner ON beast_owners(owner);

-- Loot Survivor record per entity hash
CREATE TABLE IF NOT EXISTS beast_data (
    entity_hash TEXT PRIMARY KEY,
    token_id INTEGER,
    adventurers_killed INTEGER NOT NULL DEFAULT 0,
    last_death_timestamp INTEGER NOT NULL DEFAULT 0,
    last_killed_by INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_beast_data_token ON beast_data(token_id);

CREATE TABLE IF NOT EXISTS battles (
    attacking_beast_token_id INTEGER NOT NULL,
    attacking_player TEXT,
    attack_index INTEGER NOT NULL,
    defending_beast_token_id INTEGER NOT NULL,
    attack_count INTEGER NOT NULL,
    attack_damage INTEGER NOT NULL,
    critical_attack_count INTEGER NOT NULL,
    critical_attack_damage INTEGER NOT NULL,
    counter_attack_count INTEGER NOT NULL,
    counter_attack_damage INTEGER NOT NULL,
    critical_counter_attack_count INTEGER NOT NULL,
    critical_counter_attack_damage INTEGER NOT NULL,
    attack_potions INTEGER NOT NULL,
    revive_potions INTEGER NOT NULL,
    xp_gained INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index)
);

CREATE TABLE IF NOT EXISTS rewards_earned (
    beast_token_id INTEGER NOT NULL,
    owner TEXT,
    amount INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index)
);

CREATE TABLE IF NOT EXISTS rewards_claimed (
    player TEXT NOT NULL,
    amount TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index)
);

CREATE TABLE IF NOT EXISTS poison_events (
    beast_token_id INTEGER NOT NULL,
    block_timestamp INTEGER NOT NULL,
    count INTEGER NOT NULL,
    player TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index)
);

CREATE TABLE IF NOT EXISTS corpse_events (
    adventurer_id INTEGER NOT NULL,
    player TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index, adventurer_id)
);

CREATE TABLE IF NOT EXISTS skulls_claimed (
    beast_token_id INTEGER PRIMARY KEY,
    skulls INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS quest_rewards_claimed (
    beast_token_id INTEGER PRIMARY KEY,
    amount INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

-- Append-only activity feed
CREATE TABLE IF NOT EXISTS summit_log (
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    sub_index INTEGER NOT NULL DEFAULT 0,
    category TEXT NOT NULL,
    sub_category TEXT NOT NULL,
    data TEXT NOT NULL,
    player TEXT,
    token_id INTEGER,
    created_at TEXT NOT NULL,
    indexed_at TEXT NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index, sub_index)
);
CREATE INDEX IF NOT EXISTS idx_summit_log_category ON summit_log(category, sub_category);
CREATE INDEX IF NOT EXISTS idx_summit_log_player ON summit_log(player);

-- Consumable balances per owner
CREATE TABLE IF NOT EXISTS consumables (
    owner TEXT PRIMARY KEY,
    xlife_count INTEGER NOT NULL DEFAULT 0,
    attack_count INTEGER NOT NULL DEFAULT 0,
    revive_count INTEGER NOT NULL DEFAULT 0,
    poison_count INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);

-- Every consumable delta ever applied, so replays never apply twice
CREATE TABLE IF NOT EXISTS consumable_ledger (
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    event_index INTEGER NOT NULL,
    owner TEXT NOT NULL,
    column_name TEXT NOT NULL,
    direction TEXT NOT NULL,
    delta INTEGER NOT NULL,
    PRIMARY KEY (block_number, transaction_hash, event_index, owner, column_name, direction)
);
"""

TABLES = [
    "beast_stats", "beasts", "beast_owners", "beast_data",
    "battles", "rewards_earned", "rewards_claimed", "poison_events",
    "corpse_events", "skulls_claimed", "quest_rewards_claimed",
    "summit_log", "consumables", "consumable_ledger",
]

ENTITY_LINK_CHUNK = 500


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _placeholders(n: int) -> str:
    return ",".join("?" * n)


class SQLiteIndexStore:
    """SQLite-backed implementation of the IndexStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT last_block FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["last_block"] if row else None

    async def set_cursor(self, block_number: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, last_block, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET last_block=excluded.last_block,"
            " updated_at=excluded.updated_at",
            (block_number, _now()),
        )
        await self.db.commit()

    async def reset_cursor(self) -> None:
        await self.db.execute("DELETE FROM cursor")
        await self.db.commit()

    async def delete_market_logs(self) -> int:
        cur = await self.db.execute("DELETE FROM summit_log WHERE category='Market'")
        await self.db.commit()
        return cur.rowcount

    # ── Context lookups ────────────────────────────────────

    async def get_tracked_contexts(self, token_ids: list[int]) -> dict[int, BeastContext]:
        if not token_ids:
            return {}
        sql = (
            "SELECT s.*, b.beast_id, b.prefix, b.suffix, b.shiny, b.animated, o.owner"
            " FROM beast_stats s"
            " LEFT JOIN beasts b ON b.token_id = s.token_id"
            " LEFT JOIN beast_owners o ON o.token_id = s.token_id"
            f" WHERE s.token_id IN ({_placeholders(len(token_ids))})"
        )
        out: dict[int, BeastContext] = {}
        for row in await self._fetch(sql, token_ids):
            out[row["token_id"]] = BeastContext(
                prev_stats=_row_to_live_stats(row).snapshot(),
                metadata=_row_to_metadata(row) if row["beast_id"] is not None else None,
                owner=row["owner"],
            )
        return out

    async def get_metadata(self, token_ids: list[int]) -> dict[int, BeastMetadata]:
        if not token_ids:
            return {}
        sql = (
            "SELECT token_id, beast_id, prefix, suffix, shiny, animated FROM beasts"
            f" WHERE token_id IN ({_placeholders(len(token_ids))})"
        )
        return {row["token_id"]: _row_to_metadata(row) for row in await self._fetch(sql, token_ids)}

    async def get_owners(self, token_ids: list[int]) -> dict[int, str]:
        if not token_ids:
            return {}
        sql = (
            "SELECT token_id, owner FROM beast_owners"
            f" WHERE token_id IN ({_placeholders(len(token_ids))})"
        )
        return {row["token_id"]: row["owner"] for row in await self._fetch(sql, token_ids)}

    async def get_kills_by_token(self, token_ids: list[int]) -> dict[int, int]:
        if not token_ids:
            return {}
        sql = (
            "SELECT token_id, adventurers_killed FROM beast_data"
            f" WHERE token_id IN ({_placeholders(len(token_ids))})"
        )
        return {
            row["token_id"]: row["adventurers_killed"]
            for row in await self._fetch(sql, token_ids)
        }

    async def get_entity_links(self, entity_hashes: list[str]) -> dict[str, EntityLink]:
        if not entity_hashes:
            return {}
        sql = (
            "SELECT d.entity_hash, d.token_id, b.beast_id, b.prefix, b.suffix, o.owner"
            " FROM beast_data d"
            " JOIN beasts b ON b.token_id = d.token_id"
            " LEFT JOIN beast_owners o ON o.token_id = d.token_id"
            f" WHERE d.entity_hash IN ({_placeholders(len(entity_hashes))})"
        )
        return {
            row["entity_hash"]: EntityLink(
                entity_hash=row["entity_hash"],
                token_id=row["token_id"],
                beast_id=row["beast_id"],
                prefix=row["prefix"],
                suffix=row["suffix"],
                owner=row["owner"],
            )
            for row in await self._fetch(sql, entity_hashes)
        }

    async def _fetch(self, sql: str, params: list[Any]) -> list[aiosqlite.Row]:
        try:
            async with self.db.execute(sql, params) as cur:
                return list(await cur.fetchall())
        except aiosqlite.Error as exc:
            raise ContextLookupError(str(exc)) from exc

    # ── Writes ─────────────────────────────────────────────

    async def write_batches(self, batches: BlockBatches) -> None:
        await BatchWriter(self.db).write(batches)

    async def backfill_entity_links(self) -> list[int]:
        """Link every known beast's entity hash to its token id.

        Covers beasts minted before the configured start block, whose
        Loot Survivor records would otherwise never resolve to a token.
        """
        async with self.db.execute(
            "SELECT token_id, beast_id, prefix, suffix FROM beasts"
        ) as cur:
            rows = list(await cur.fetchall())

        now = _now()
        links = [
            (compute_entity_hash(r["beast_id"], r["prefix"], r["suffix"]), r["token_id"], now)
            for r in rows
        ]
        for start in range(0, len(links), ENTITY_LINK_CHUNK):
            await self.db.executemany(
                "INSERT INTO beast_data (entity_hash, token_id, updated_at) VALUES (?, ?, ?)"
                " ON CONFLICT(entity_hash) DO UPDATE SET"
                " token_id=coalesce(beast_data.token_id, excluded.token_id)",
                links[start:start + ENTITY_LINK_CHUNK],
            )
        await self.db.commit()
        return [r["token_id"] for r in rows]

    # ── Reads ──────────────────────────────────────────────

    async def get_beast_stats(self, token_id: int) -> LiveBeastStats | None:
        async with self.db.execute(
            "SELECT * FROM beast_stats WHERE token_id=?", (token_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_live_stats(row) if row else None

    async def get_logs(
        self, category: str | None = None, sub_category: str | None = None,
    ) -> list[LogEntry]:
        sql = "SELECT * FROM summit_log"
        clauses, params = [], []
        if category:
            clauses.append("category=?")
            params.append(category)
        if sub_category:
            clauses.append("sub_category=?")
            params.append(sub_category)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY block_number, event_index, sub_index"
        async with self.db.execute(sql, params) as cur:
            return [_row_to_log(row) async for row in cur]

    async def get_beast_data(self, entity_hash: str) -> dict[str, Any] | None:
        async with self.db.execute(
            "SELECT * FROM beast_data WHERE entity_hash=?", (entity_hash,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def get_consumables(self, owner: str) -> dict[str, int] | None:
        async with self.db.execute(
            "SELECT xlife_count, attack_count, revive_count, poison_count"
            " FROM consumables WHERE owner=?",
            (owner,),
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def get_owner(self, token_id: int) -> str | None:
        return (await self.get_owners([token_id])).get(token_id)

    async def table_counts(self) -> dict[str, int]:
        counts = {}
        for table in TABLES:
            async with self.db.execute(f"SELECT COUNT(*) AS c FROM {table}") as cur:
                row = await cur.fetchone()
                counts[table] = row["c"] if row else 0
        return counts


# ── Row converters ─────────────────────────────────────────


def _row_to_live_stats(row: aiosqlite.Row) -> LiveBeastStats:
    flags = {f.name for f in fields(LiveBeastStats) if f.type in ("bool", bool)}
    return LiveBeastStats(**{
        name: bool(row[name]) if name in flags else row[name]
        for name in STAT_COLUMNS
    })


def _row_to_metadata(row: aiosqlite.Row) -> BeastMetadata:
    return BeastMetadata(
        beast_id=row["beast_id"],
        prefix=row["prefix"],
        suffix=row["suffix"],
        shiny=row["shiny"],
        animated=row["animated"],
    )


def _row_to_log(row: aiosqlite.Row) -> LogEntry:
    return LogEntry(
        block_number=row["block_number"],
        key=EventKey(row["event_index"], row["sub_index"]),
        category=row["category"],
        sub_category=row["sub_category"],
        data=json.loads(row["data"]),
        transaction_hash=row["transaction_hash"],
        created_at=row["created_at"],
        indexed_at=row["indexed_at"],
        player=row["player"],
        token_id=row["token_id"],
    )
