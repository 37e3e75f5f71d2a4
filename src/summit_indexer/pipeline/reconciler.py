"""Stat reconciler - derives log entries from consecutive beast snapshots.

The chain only publishes the full live-stats word. Upgrades, extra lives
and summit captures are recovered by comparing each new snapshot with the
previous one for the same token. The previous snapshot comes from the
block context and is replaced after every update, so a second update for
the same token in one block is compared against the first, not against
the state at the start of the block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from summit_indexer.models.records import SUMMIT_CHANGE_SLOT, EventKey, EventSite, LogEntry
from summit_indexer.models.stats import BeastContext, BeastStatsSnapshot, LiveBeastStats

log = logging.getLogger(__name__)

# (field, sub_category), in slot order starting at 1
TRACKED_STATS = (
    ("spirit", "Spirit"),
    ("luck", "Luck"),
    ("specials", "Specials"),
    ("wisdom", "Wisdom"),
    ("diplomacy", "Diplomacy"),
    ("bonus_health", "Bonus Health"),
    ("extra_lives", "Applied Extra Life"),
)


@dataclass(frozen=True)
class StatChange:
    field: str
    sub_category: str
    slot: int
    old_value: int
    new_value: int

    @property
    def category(self) -> str:
        return "Battle" if self.field == "extra_lives" else "Beast Upgrade"

    @property
    def difference(self) -> int:
        return self.new_value - self.old_value


def detect_stat_changes(
    prev: BeastStatsSnapshot | None, new: BeastStatsSnapshot,
) -> list[StatChange]:
    """Every tracked field that increased. Absent ``prev`` reads as all zeros."""
    base = prev or BeastStatsSnapshot(token_id=new.token_id)
    changes = []
    for slot, (name, sub_category) in enumerate(TRACKED_STATS, start=1):
        old_value = int(getattr(base, name))
        new_value = int(getattr(new, name))
        if new_value > old_value:
            changes.append(StatChange(name, sub_category, slot, old_value, new_value))
    return changes


def is_summit_change(prev: BeastStatsSnapshot | None, new: BeastStatsSnapshot) -> bool:
    """A beast came back to life: no previous snapshot or 0 health, now alive."""
    return (prev is None or prev.current_health == 0) and new.current_health > 0


class StatReconciler:
    """Applies one live-stats update to the block context and emits derived logs."""

    def reconcile(
        self,
        stats: LiveBeastStats,
        ctx: BeastContext,
        site: EventSite,
        item: int = 0,
        detect_summit_change: bool = False,
    ) -> list[LogEntry]:
        new = stats.snapshot()
        prev = ctx.prev_stats
        meta = ctx.metadata
        owner = ctx.owner
        logs: list[LogEntry] = []

        if detect_summit_change and is_summit_change(prev, new):
            logs.append(site.log(
                "Battle", "Summit Change",
                {
                    "attacking_player": owner,
                    "attacking_beast_token_id": stats.token_id,
                    "defending_beast_token_id": stats.token_id,
                    "beast_id": meta.beast_id if meta else None,
                    "prefix": meta.prefix if meta else None,
                    "suffix": meta.suffix if meta else None,
                    "extra_lives": stats.extra_lives,
                },
                player=owner,
                token_id=stats.token_id,
                key=EventKey.derived(site.event_index, item, SUMMIT_CHANGE_SLOT),
            ))

        for change in detect_stat_changes(prev, new):
            logs.append(site.log(
                change.category, change.sub_category,
                {
                    "player": owner,
                    "token_id": stats.token_id,
                    "beast_id": meta.beast_id if meta else None,
                    "prefix": meta.prefix if meta else None,
                    "suffix": meta.suffix if meta else None,
                    "old_value": change.old_value,
                    "new_value": change.new_value,
                    "difference": change.difference,
                },
                player=owner,
                token_id=stats.token_id,
                key=EventKey.derived(site.event_index, item, change.slot),
            ))

        ctx.prev_stats = new
        if logs:
            log.debug("Token %d: %d derived log entries", stats.token_id, len(logs))
        return logs
