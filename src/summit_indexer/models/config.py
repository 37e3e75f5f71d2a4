"""Configuration models for the indexer."""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from summit_indexer.errors import ConfigError

BEAST_DUNGEON = "0x6"
LOOT_SURVIVOR_DUNGEON = "0xa67ef20b61a9846e1c82b411175e6ab167ea9f8632bd6c2091823c3629ec42"


@dataclass
class ContractAddresses:
    """Game contracts whose events are decoded."""

    summit: str = "0x0214d382e80781f8c1059a751563d6b46e717c652bb670bf230e8a64a68e6064"
    beasts: str = "0x046da8955829adf2bda310099a0063451923f02e648cf25a1203aac6335cf0e4"
    dojo_world: str = "0x02ef591697f0fd9adc0ba9dbe0ca04dabad80cf95f08ba02e435d9cb6698a28a"
    corpse: str = "0x0103eafe79f8631932530cc687dfcdeb013c883a82619ebf81be393e2953a87a"
    skull: str = "0x01c3c8284d7eed443b42f47e764032a56eaf50a9079d67993b633930e3689814"
    pool: str = "0x00000005dd3d2f4429af886cd1a3b08289dbcea99a294197e9eb43b0e0325b4b"  # Ekubo core


@dataclass
class TokenAddresses:
    """Fungible consumables plus the asset they trade against."""

    xlife: str = "0x016dea82a6588ca9fb7200125fa05631b1c1735a313e24afe9c90301e441a796"
    attack: str = "0x016f9def00daef9f1874dd932b081096f50aec2fe61df31a81bc5707a7522443"
    revive: str = "0x029023e0a455d19d6887bc13727356070089527b79e6feb562ffe1afd6711dbe"
    poison: str = "0x049eaed2a1ba2f2eb6ac2661ffd2d79231cdd7d5293d9448df49c5986c9897ae"
    survivor: str = "0x042dd777885ad2c116be96d4d634abc90a26a790ffb5871e037dd5ae7d2ec86b"


@dataclass
class DojoConfig:
    """Loot Survivor world filters."""

    entity_stats_selector: str = ""  # model selector in keys[1]
    collectable_entity_selector: str = ""
    beast_dungeon: str = BEAST_DUNGEON
    loot_survivor_dungeon: str = LOOT_SURVIVOR_DUNGEON


@dataclass
class IndexerConfig:
    """Complete indexer configuration."""

    # Indexer
    start_block: int = 6_866_000
    poll_interval: int = 5  # seconds
    error_backoff: int = 30  # seconds
    max_blocks_per_poll: int = 50
    log_level: str = "info"

    # Starknet
    rpc_url: str = "https://api.cartridge.gg/x/starknet/mainnet/rpc/v0_10"
    rpc_timeout: int = 30  # seconds
    contracts: ContractAddresses = field(default_factory=ContractAddresses)
    tokens: TokenAddresses = field(default_factory=TokenAddresses)
    dojo: DojoConfig = field(default_factory=DojoConfig)

    # Storage
    db_path: str = "~/.summit_indexer/summit.db"

    def validate(self) -> None:
        if not self.rpc_url:
            raise ConfigError("rpc_url is required")
        if self.start_block < 0:
            raise ConfigError("start_block must be >= 0")
        for group in (self.contracts, self.tokens):
            for f in fields(group):
                value = getattr(group, f.name)
                if not value:
                    raise ConfigError(f"address '{f.name}' is required")
                try:
                    int(value, 16)
                except ValueError:
                    raise ConfigError(f"address '{f.name}' is not hex: {value!r}") from None
