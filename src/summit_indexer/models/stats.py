"""Beast state projections used by the stat reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LiveBeastStats:
    """Full contents of one packed live-stats word."""

    token_id: int
    current_health: int = 0
    bonus_health: int = 0
    bonus_xp: int = 0
    attack_streak: int = 0
    last_death_timestamp: int = 0
    revival_count: int = 0
    extra_lives: int = 0
    summit_held_seconds: int = 0
    spirit: int = 0
    luck: int = 0
    specials: bool = False
    wisdom: bool = False
    diplomacy: bool = False
    rewards_earned: int = 0
    rewards_claimed: int = 0
    captured_summit: bool = False
    used_revival_potion: bool = False
    used_attack_potion: bool = False
    max_attack_streak: bool = False

    def snapshot(self) -> BeastStatsSnapshot:
        return BeastStatsSnapshot(
            token_id=self.token_id,
            spirit=self.spirit,
            luck=self.luck,
            specials=self.specials,
            wisdom=self.wisdom,
            diplomacy=self.diplomacy,
            bonus_health=self.bonus_health,
            extra_lives=self.extra_lives,
            captured_summit=self.captured_summit,
            used_revival_potion=self.used_revival_potion,
            used_attack_potion=self.used_attack_potion,
            max_attack_streak=self.max_attack_streak,
            current_health=self.current_health,
        )


@dataclass(frozen=True)
class BeastStatsSnapshot:
    """The subset of beast_stats compared between consecutive updates."""

    token_id: int
    spirit: int = 0
    luck: int = 0
    specials: bool = False
    wisdom: bool = False
    diplomacy: bool = False
    bonus_health: int = 0
    extra_lives: int = 0
    captured_summit: bool = False
    used_revival_potion: bool = False
    used_attack_potion: bool = False
    max_attack_streak: bool = False
    current_health: int = 0


@dataclass(frozen=True)
class BeastMetadata:
    """Immutable beast identity, fetched once from the Beasts contract."""

    beast_id: int
    prefix: int
    suffix: int
    shiny: int = 0
    animated: int = 0


@dataclass
class BeastContext:
    """Per-block view of one token: previous stats, identity and owner.

    Mutated in place while a block is processed so later events see the
    effect of earlier ones.
    """

    prev_stats: BeastStatsSnapshot | None = None
    metadata: BeastMetadata | None = None
    owner: str | None = None


@dataclass(frozen=True)
class EntityLink:
    """Loot Survivor entity hash resolved to a minted beast."""

    entity_hash: str
    token_id: int
    beast_id: int
    prefix: int
    suffix: int
    owner: str | None = None


@dataclass(frozen=True)
class BeastRpcData:
    """The 7-element getBeast() result."""

    id: int
    prefix: int
    suffix: int
    level: int
    health: int
    shiny: int
    animated: int

    def metadata(self) -> BeastMetadata:
        return BeastMetadata(
            beast_id=self.id,
            prefix=self.prefix,
            suffix=self.suffix,
            shiny=self.shiny,
            animated=self.animated,
        )


@dataclass
class BlockContext:
    """Everything the batch lookup phase resolved for one block."""

    beasts: dict[int, BeastContext] = field(default_factory=dict)
    kills_by_token: dict[int, int] = field(default_factory=dict)
    entity_links: dict[str, EntityLink] = field(default_factory=dict)
    fetched_metadata: dict[int, BeastRpcData | None] = field(default_factory=dict)

    def beast(self, token_id: int) -> BeastContext:
        """Context for a token, creating an empty one if it was not resolved."""
        ctx = self.beasts.get(token_id)
        if ctx is None:
            ctx = BeastContext()
            self.beasts[token_id] = ctx
        return ctx
