"""Fixed-width bit layouts packed into a single felt252.

Fields are laid out least-significant bit first, in declaration order. The
layouts mirror the contract's storage packing and must match bit for bit.
"""

from __future__ import annotations

from dataclasses import dataclass

from summit_indexer.models.stats import LiveBeastStats

FELT_BITS = 251


@dataclass(frozen=True)
class BitField:
    name: str
    bits: int
    flag: bool = False

    @property
    def mask(self) -> int:
        return (1 << self.bits) - 1


class BitLayout:
    """An ordered set of fixed-width fields within one felt."""

    def __init__(self, *fields: BitField) -> None:
        self.fields = fields
        self.width = sum(f.bits for f in fields)
        if self.width > FELT_BITS:
            raise ValueError(f"layout is {self.width} bits, felt holds {FELT_BITS}")
        offsets = {}
        shift = 0
        for f in fields:
            offsets[f.name] = shift
            shift += f.bits
        self.offsets = offsets

    def unpack(self, word: int) -> dict[str, int | bool]:
        if word < 0 or word >> self.width:
            raise ValueError(f"packed value exceeds {self.width} bits")
        out: dict[str, int | bool] = {}
        for f in self.fields:
            raw = (word >> self.offsets[f.name]) & f.mask
            out[f.name] = bool(raw) if f.flag else raw
        return out

    def pack(self, values: dict[str, int | bool]) -> int:
        word = 0
        for f in self.fields:
            raw = int(values.get(f.name, 0))
            if raw < 0 or raw > f.mask:
                raise ValueError(f"{f.name}={raw} does not fit in {f.bits} bits")
            word |= raw << self.offsets[f.name]
        return word


LIVE_BEAST_STATS = BitLayout(
    BitField("token_id", 17),
    BitField("current_health", 12),
    BitField("bonus_health", 11),
    BitField("bonus_xp", 15),
    BitField("attack_streak", 4),
    BitField("last_death_timestamp", 64),
    BitField("revival_count", 6),
    BitField("extra_lives", 12),
    BitField("summit_held_seconds", 23),
    BitField("spirit", 8),
    BitField("luck", 8),
    BitField("specials", 1, flag=True),
    BitField("wisdom", 1, flag=True),
    BitField("diplomacy", 1, flag=True),
    BitField("rewards_earned", 32),
    BitField("rewards_claimed", 32),
    BitField("captured_summit", 1, flag=True),
    BitField("used_revival_potion", 1, flag=True),
    BitField("used_attack_potion", 1, flag=True),
    BitField("max_attack_streak", 1, flag=True),
)

QUEST_REWARD = BitLayout(
    BitField("beast_token_id", 17),
    BitField("amount", 32),
)


def unpack_live_beast_stats(word: int) -> LiveBeastStats:
    return LiveBeastStats(**LIVE_BEAST_STATS.unpack(word))


def pack_live_beast_stats(stats: LiveBeastStats) -> int:
    return LIVE_BEAST_STATS.pack(vars(stats))


def unpack_quest_reward(word: int) -> tuple[int, int]:
    values = QUEST_REWARD.unpack(word)
    return int(values["beast_token_id"]), int(values["amount"])


def pack_quest_reward(beast_token_id: int, amount: int) -> int:
    return QUEST_REWARD.pack({"beast_token_id": beast_token_id, "amount": amount})
