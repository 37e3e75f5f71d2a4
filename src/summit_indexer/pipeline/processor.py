"""Block processor - decode, resolve, reconcile, resolve market, write.

Blocks are processed one at a time and events strictly in delivery order;
the reconciler depends on the state as of each exact event.
"""

from __future__ import annotations

import logging
import time
import typing
from datetime import datetime, timezone
from typing import Callable

from summit_indexer.errors import DecodeError, UnknownSelector
from summit_indexer.interfaces.metadata import MetadataFetcher
from summit_indexer.interfaces.source import DecodedEvent
from summit_indexer.interfaces.store import IndexStore
from summit_indexer.models.config import IndexerConfig
from summit_indexer.models.events import (
    BattleEvent,
    BeastTransferEvent,
    Block,
    CollectableEntityEvent,
    CorpseEvent,
    EntityStatsEvent,
    PackedStatBatchEvent,
    PoisonEvent,
    QuestRewardsClaimedEvent,
    RewardClaimedEvent,
    RewardEarnedEvent,
    SingleStatUpdateEvent,
    SkullClaimEvent,
    TokenTransferEvent,
)
from summit_indexer.models.records import (
    BattleRow,
    BeastDataRow,
    BeastOwnerRow,
    BeastRow,
    BeastStatsRow,
    BlockBatches,
    ConsumableDelta,
    CorpseRow,
    EventSite,
    PoisonRow,
    QuestRewardsRow,
    RewardsClaimedRow,
    RewardsEarnedRow,
    SkullsClaimedRow,
)
from summit_indexer.models.stats import BlockContext, EntityLink, LiveBeastStats
from summit_indexer.pipeline.batches import aggregate_battle_logs
from summit_indexer.pipeline.context import BlockScan, ContextResolver, LookupTimings
from summit_indexer.pipeline.market import PAID_ASSET, MarketResolver
from summit_indexer.pipeline.reconciler import StatReconciler
from summit_indexer.pipeline.state import IndexerState
from summit_indexer.starknet.decoder import EventDecoder
from summit_indexer.starknet.felt import compute_entity_hash, felt, is_zero_address

log = logging.getLogger(__name__)

# Beasts below this id were never minted with a name and are not announced.
FIRST_COLLECTABLE_TOKEN = 76


def _ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class _BlockRun:
    """Mutable per-block working set."""

    def __init__(self, block: Block, ctx: BlockContext, pool_address: str) -> None:
        self.block = block
        self.ctx = ctx
        self.batches = BlockBatches()
        self.market = MarketResolver(pool_address)
        self.fetched: set[int] = set()
        self.created_at = block.header.timestamp.isoformat()
        self.indexed_at = datetime.now(timezone.utc).isoformat()
        self.block_timestamp = int(block.header.timestamp.timestamp())

    def site(self, transaction_hash: str, event_index: int) -> EventSite:
        return EventSite(
            self.block.number, transaction_hash, event_index, self.created_at, self.indexed_at,
        )


class BlockProcessor:
    """Turns one block into table batches and commits them."""

    def __init__(
        self,
        cfg: IndexerConfig,
        store: IndexStore,
        fetcher: MetadataFetcher,
        state: IndexerState | None = None,
        decoder: EventDecoder | None = None,
    ) -> None:
        self._cfg = cfg
        self._store = store
        self.state = state or IndexerState()
        self.decoder = decoder or EventDecoder(cfg)
        self._resolver = ContextResolver(store, fetcher)
        self._reconciler = StatReconciler()
        self._beast_dungeon = felt(cfg.dojo.beast_dungeon)
        self._ls_dungeon = felt(cfg.dojo.loot_survivor_dungeon)

        self._handlers: dict[type, Callable[[_BlockRun, DecodedEvent, EventSite], None]] = {
            BeastTransferEvent: self._on_beast_transfer,
            TokenTransferEvent: self._on_token_transfer,
            PackedStatBatchEvent: self._on_stat_batch,
            SingleStatUpdateEvent: self._on_single_stat,
            BattleEvent: self._on_battle,
            RewardEarnedEvent: self._on_reward_earned,
            RewardClaimedEvent: self._on_reward_claimed,
            PoisonEvent: self._on_poison,
            QuestRewardsClaimedEvent: self._on_quest_rewards,
            CorpseEvent: self._on_corpse,
            SkullClaimEvent: self._on_skull,
            EntityStatsEvent: self._on_entity_stats,
            CollectableEntityEvent: self._on_collectable_entity,
        }
        unhandled = set(typing.get_args(DecodedEvent)) - set(self._handlers)
        if unhandled:
            raise TypeError(f"no handler for {sorted(t.__name__ for t in unhandled)}")

    async def process_block(self, block: Block) -> BlockBatches:
        """Process and write one block. Raises if the block must be retried."""
        start = time.monotonic()

        if not block.events:
            if self.state.record_empty_block():
                log.info(
                    "Block %d: %d blocks without events",
                    block.number, self.state.blocks_without_events,
                )
            return BlockBatches()

        scan_start = time.monotonic()
        scan = self._prescan(block)
        scan_ms = _ms(scan_start)

        ctx, timings = await self._resolver.resolve(scan)

        proc_start = time.monotonic()
        run = _BlockRun(block, ctx, self._cfg.contracts.pool)
        for raw, event in scan.events:
            site = run.site(raw.transaction_hash, raw.event_index)
            self._handlers[type(event)](run, event, site)

        run.batches.summit_log.extend(
            run.market.resolve_logs(block.number, run.created_at, run.indexed_at)
        )
        run.batches.summit_log = aggregate_battle_logs(run.batches.summit_log)
        proc_ms = _ms(proc_start)

        ins_start = time.monotonic()
        await self._store.write_batches(run.batches)
        ins_ms = _ms(ins_start)

        self.state.mark_fetched(run.fetched)
        gap = self.state.record_event_block(block.number)
        self._log_block(block, gap, _ms(start), scan_ms, timings, proc_ms, ins_ms, run.batches)
        return run.batches

    def _log_block(
        self, block: Block, gap: int | None, total: int, scan: int,
        t: LookupTimings, proc: int, ins: int, batches: BlockBatches,
    ) -> None:
        log.info(
            "Block %d: %d events (gap %s) %dms"
            " [scan:%d rpc:%d ctx:%d(j:%d f:%d bd:%d ls:%d) proc:%d ins:%d]"
            " {bs:%d bt:%d log:%d own:%d con:%d}",
            block.number, len(block.events), gap if gap is not None else "-", total,
            scan, t.rpc, t.ctx, t.join, t.fallback, t.kills, t.links, proc, ins,
            len(batches.beast_stats), len(batches.battles), len(batches.summit_log),
            len(batches.beast_owners), len(batches.consumables),
        )

    # ── Pre-scan ───────────────────────────────────────────

    def _prescan(self, block: Block) -> BlockScan:
        """Decode every event once and collect the keys to look up."""
        scan = BlockScan()
        for raw in block.events:
            try:
                event = self.decoder.decode(raw)
            except UnknownSelector as exc:
                log.debug("Skipping event %d in block %d: %s", raw.event_index, raw.block_number, exc)
                continue
            except DecodeError as exc:
                log.error(
                    "Failed to decode event at block %d, index %d: %s"
                    " (selector=%s keys=%s data=%s)",
                    raw.block_number, raw.event_index, exc, exc.selector,
                    list(raw.keys), list(raw.data),
                )
                continue
            scan.events.append((raw, event))

            if isinstance(event, BeastTransferEvent):
                if not is_zero_address(event.to_address) and not self.state.is_fetched(event.token_id):
                    scan.transfer_tokens.add(event.token_id)
            elif isinstance(event, PackedStatBatchEvent):
                scan.context_tokens.update(s.token_id for s in event.updates)
            elif isinstance(event, SingleStatUpdateEvent):
                scan.context_tokens.add(event.stats.token_id)
            elif isinstance(event, BattleEvent):
                scan.context_tokens.add(event.attacking_beast_token_id)
            elif isinstance(event, RewardEarnedEvent):
                scan.context_tokens.add(event.beast_token_id)
            elif isinstance(event, SkullClaimEvent):
                scan.context_tokens.update(event.beast_token_ids)
                scan.kill_tokens.update(event.beast_token_ids)
            elif isinstance(event, QuestRewardsClaimedEvent):
                scan.context_tokens.update(token_id for token_id, _ in event.rewards)
            elif isinstance(event, (EntityStatsEvent, CollectableEntityEvent)):
                scan.entity_hashes.add(event.entity_hash)
        return scan

    # ── Beasts NFT / ERC20 ─────────────────────────────────

    def _on_beast_transfer(self, run: _BlockRun, event: BeastTransferEvent, site: EventSite) -> None:
        token_id = event.token_id
        if is_zero_address(event.to_address):
            log.debug("Skipping burn of token %d", token_id)
            return

        run.batches.beast_owners.append(BeastOwnerRow(token_id, event.to_address, run.created_at))
        beast = run.ctx.beast(token_id)
        beast.owner = event.to_address

        if self.state.is_fetched(token_id) or token_id in run.fetched:
            return
        data = run.ctx.fetched_metadata.get(token_id)
        if data is None:
            return  # retried on the token's next transfer

        run.batches.beasts.append(BeastRow(
            token_id=token_id,
            beast_id=data.id,
            prefix=data.prefix,
            suffix=data.suffix,
            level=data.level,
            health=data.health,
            shiny=data.shiny,
            animated=data.animated,
            created_at=run.created_at,
            indexed_at=run.indexed_at,
        ))
        entity_hash = compute_entity_hash(data.id, data.prefix, data.suffix)
        run.batches.beast_data.append(BeastDataRow(entity_hash, run.created_at, token_id=token_id))
        beast.metadata = data.metadata()
        run.ctx.entity_links[entity_hash] = EntityLink(
            entity_hash, token_id, data.id, data.prefix, data.suffix, event.to_address,
        )
        run.fetched.add(token_id)

    def _on_token_transfer(self, run: _BlockRun, event: TokenTransferEvent, site: EventSite) -> None:
        run.market.collect(event, site.transaction_hash, site.event_index)
        if event.token == PAID_ASSET:
            return

        units = event.amount.whole_units
        if units == 0:
            return  # dust
        for owner, delta in ((event.from_address, -units), (event.to_address, units)):
            if run.market.is_excluded(owner):
                continue
            run.batches.consumables.append(ConsumableDelta(
                owner=owner,
                column=event.token,
                delta=delta,
                block_number=site.block_number,
                transaction_hash=site.transaction_hash,
                event_index=site.event_index,
                updated_at=run.created_at,
            ))

    # ── Stats ──────────────────────────────────────────────

    def _on_stat_batch(self, run: _BlockRun, event: PackedStatBatchEvent, site: EventSite) -> None:
        for item, stats in enumerate(event.updates):
            self._apply_stats(run, stats, site, item, detect_summit_change=True)

    def _on_single_stat(self, run: _BlockRun, event: SingleStatUpdateEvent, site: EventSite) -> None:
        self._apply_stats(run, event.stats, site, 0, detect_summit_change=False)

    def _apply_stats(
        self, run: _BlockRun, stats: LiveBeastStats, site: EventSite, item: int,
        detect_summit_change: bool,
    ) -> None:
        run.batches.beast_stats.append(BeastStatsRow(
            stats, site.block_number, site.transaction_hash, run.created_at, run.indexed_at,
        ))
        run.batches.summit_log.extend(self._reconciler.reconcile(
            stats, run.ctx.beast(stats.token_id), site, item, detect_summit_change,
        ))

    # ── Summit game ────────────────────────────────────────

    def _on_battle(self, run: _BlockRun, event: BattleEvent, site: EventSite) -> None:
        attacker = run.ctx.beast(event.attacking_beast_token_id)
        meta = attacker.metadata
        counters = {
            "attack_count": event.attack_count,
            "attack_damage": event.attack_damage,
            "critical_attack_count": event.critical_attack_count,
            "critical_attack_damage": event.critical_attack_damage,
            "counter_attack_count": event.counter_attack_count,
            "counter_attack_damage": event.counter_attack_damage,
            "critical_counter_attack_count": event.critical_counter_attack_count,
            "critical_counter_attack_damage": event.critical_counter_attack_damage,
            "attack_potions": event.attack_potions,
            "revive_potions": event.revive_potions,
            "xp_gained": event.xp_gained,
        }
        run.batches.battles.append(BattleRow(
            attacking_beast_token_id=event.attacking_beast_token_id,
            attacking_player=attacker.owner,
            attack_index=event.attack_index,
            defending_beast_token_id=event.defending_beast_token_id,
            **counters,
            block_number=site.block_number,
            transaction_hash=site.transaction_hash,
            event_index=site.event_index,
            created_at=run.created_at,
            indexed_at=run.indexed_at,
        ))
        run.batches.summit_log.append(site.log(
            "Battle", "BattleEvent",
            {
                "attacking_beast_token_id": event.attacking_beast_token_id,
                "attack_index": event.attack_index,
                "defending_beast_token_id": event.defending_beast_token_id,
                **counters,
                "attacking_beast_owner": attacker.owner,
                "attacking_beast_id": meta.beast_id if meta else 0,
                "attacking_beast_prefix": meta.prefix if meta else 0,
                "attacking_beast_suffix": meta.suffix if meta else 0,
                "attacking_beast_shiny": meta.shiny if meta else 0,
                "attacking_beast_animated": meta.animated if meta else 0,
            },
            player=attacker.owner,
            token_id=event.attacking_beast_token_id,
        ))

    def _on_reward_earned(self, run: _BlockRun, event: RewardEarnedEvent, site: EventSite) -> None:
        beast = run.ctx.beast(event.beast_token_id)
        meta = beast.metadata
        run.batches.rewards_earned.append(RewardsEarnedRow(
            beast_token_id=event.beast_token_id,
            owner=beast.owner,
            amount=event.amount,
            block_number=site.block_number,
            transaction_hash=site.transaction_hash,
            event_index=site.event_index,
            created_at=run.created_at,
            indexed_at=run.indexed_at,
        ))
        run.batches.summit_log.append(site.log(
            "Rewards", "$SURVIVOR Earned",
            {
                "owner": beast.owner,
                "beast_token_id": event.beast_token_id,
                "amount": event.amount,
                "beast_id": meta.beast_id if meta else None,
                "prefix": meta.prefix if meta else None,
                "suffix": meta.suffix if meta else None,
            },
            player=beast.owner,
            token_id=event.beast_token_id,
        ))

    def _on_reward_claimed(self, run: _BlockRun, event: RewardClaimedEvent, site: EventSite) -> None:
        run.batches.rewards_claimed.append(RewardsClaimedRow(
            player=event.player,
            amount=str(event.amount),
            block_number=site.block_number,
            transaction_hash=site.transaction_hash,
            event_index=site.event_index,
            created_at=run.created_at,
            indexed_at=run.indexed_at,
        ))
        run.batches.summit_log.append(site.log(
            "Rewards", "Claimed $SURVIVOR",
            {"player": event.player, "amount": str(event.amount)},
            player=event.player,
        ))

    def _on_poison(self, run: _BlockRun, event: PoisonEvent, site: EventSite) -> None:
        run.batches.poison_events.append(PoisonRow(
            beast_token_id=event.beast_token_id,
            block_timestamp=run.block_timestamp,
            count=event.count,
            player=event.player,
            block_number=site.block_number,
            transaction_hash=site.transaction_hash,
            event_index=site.event_index,
            created_at=run.created_at,
            indexed_at=run.indexed_at,
        ))
        run.batches.summit_log.append(site.log(
            "Battle", "Applied Poison",
            {"player": event.player, "beast_token_id": event.beast_token_id, "count": event.count},
            player=event.player,
            token_id=event.beast_token_id,
        ))

    def _on_quest_rewards(self, run: _BlockRun, event: QuestRewardsClaimedEvent, site: EventSite) -> None:
        totals: dict[int, int] = {}
        for token_id, amount in event.rewards:
            totals[token_id] = totals.get(token_id, 0) + amount
        if not totals:
            return

        player = run.ctx.beast(next(iter(totals))).owner
        for token_id, amount in totals.items():
            run.batches.quest_rewards_claimed.append(QuestRewardsRow(token_id, amount, run.created_at))
        run.batches.summit_log.append(site.log(
            "Rewards", "Claimed Quest Rewards",
            {"player": player, "beast_count": len(totals), "total_amount": sum(totals.values())},
            player=player,
        ))

    # ── Corpse / Skull ─────────────────────────────────────

    def _on_corpse(self, run: _BlockRun, event: CorpseEvent, site: EventSite) -> None:
        for adventurer_id in event.adventurer_ids:
            run.batches.corpse_events.append(CorpseRow(
                adventurer_id=adventurer_id,
                player=event.player,
                block_number=site.block_number,
                transaction_hash=site.transaction_hash,
                event_index=site.event_index,
                created_at=run.created_at,
                indexed_at=run.indexed_at,
            ))
        run.batches.summit_log.append(site.log(
            "Rewards", "Claimed Corpses",
            {
                "player": event.player,
                "adventurer_count": len(event.adventurer_ids),
                "corpse_amount": event.corpse_amount,
            },
            player=event.player,
        ))

    def _on_skull(self, run: _BlockRun, event: SkullClaimEvent, site: EventSite) -> None:
        if not event.beast_token_ids:
            return
        # All beasts in one claim belong to the same player.
        player = run.ctx.beast(event.beast_token_ids[0]).owner
        for token_id in event.beast_token_ids:
            run.batches.skulls_claimed.append(SkullsClaimedRow(
                token_id, run.ctx.kills_by_token.get(token_id, 0), run.created_at,
            ))
        run.batches.summit_log.append(site.log(
            "Rewards", "Claimed Skulls",
            {
                "player": player,
                "beast_count": len(event.beast_token_ids),
                "skulls_claimed": str(event.skulls_claimed),
            },
            player=player,
        ))

    # ── Loot Survivor (Dojo) ───────────────────────────────

    def _announced(self, run: _BlockRun, entity_hash: str) -> EntityLink | None:
        """The minted beast behind an entity hash, if it is worth a log line."""
        link = run.ctx.entity_links.get(entity_hash)
        if link and link.token_id >= FIRST_COLLECTABLE_TOKEN and link.prefix and link.suffix:
            return link
        return None

    def _on_entity_stats(self, run: _BlockRun, event: EntityStatsEvent, site: EventSite) -> None:
        if felt(event.dungeon) != self._beast_dungeon:
            return
        run.batches.beast_data.append(BeastDataRow(
            event.entity_hash, run.created_at, adventurers_killed=event.adventurers_killed,
        ))
        link = run.ctx.entity_links.get(event.entity_hash)
        if link is not None:
            kills = run.ctx.kills_by_token
            kills[link.token_id] = max(kills.get(link.token_id, 0), event.adventurers_killed)

        log.debug(
            "EntityStats: adventurers_killed=%d token_id=%s",
            event.adventurers_killed, link.token_id if link else "unknown",
        )
        if (link := self._announced(run, event.entity_hash)) is None:
            return
        run.batches.summit_log.append(site.log(
            "LS Events", "EntityStats",
            {
                "entity_hash": event.entity_hash,
                "adventurers_killed": str(event.adventurers_killed),
                "token_id": link.token_id,
                "beast_id": link.beast_id,
                "prefix": link.prefix,
                "suffix": link.suffix,
                "owner": link.owner,
            },
            player=link.owner,
            token_id=link.token_id,
        ))

    def _on_collectable_entity(
        self, run: _BlockRun, event: CollectableEntityEvent, site: EventSite,
    ) -> None:
        if felt(event.dungeon) != self._ls_dungeon:
            return
        run.batches.beast_data.append(BeastDataRow(
            event.entity_hash, run.created_at,
            last_death_timestamp=event.timestamp,
            last_killed_by=event.last_killed_by,
        ))
        if (link := self._announced(run, event.entity_hash)) is None:
            return
        run.batches.summit_log.append(site.log(
            "LS Events", "CollectableEntity",
            {
                "entity_hash": event.entity_hash,
                "last_killed_by": str(event.last_killed_by),
                "timestamp": str(event.timestamp),
                "token_id": link.token_id,
                "beast_id": link.beast_id,
                "prefix": link.prefix,
                "suffix": link.suffix,
                "owner": link.owner,
            },
            player=link.owner,
            token_id=link.token_id,
        ))
