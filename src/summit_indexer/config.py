"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
import tomllib
from dataclasses import fields
from pathlib import Path

from summit_indexer.models.config import (
    ContractAddresses,
    DojoConfig,
    IndexerConfig,
    TokenAddresses,
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "SUMMIT_INDEXER_",
) -> IndexerConfig:
    """Load indexer configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (SUMMIT_INDEXER_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from IndexerConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = IndexerConfig()

    # ── Indexer section ────────────────────────────────────
    indexer = raw.get("indexer", {})
    if (v := indexer.get("start_block")) is not None:
        cfg.start_block = int(v)
    if v := indexer.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := indexer.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := indexer.get("max_blocks_per_poll"):
        cfg.max_blocks_per_poll = int(v)
    if v := indexer.get("log_level"):
        cfg.log_level = str(v)

    # ── Starknet section ───────────────────────────────────
    starknet = raw.get("starknet", {})
    if v := starknet.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := starknet.get("rpc_timeout"):
        cfg.rpc_timeout = int(v)
    cfg.contracts = _override(ContractAddresses(), starknet.get("contracts", {}))
    cfg.dojo = _override(DojoConfig(), starknet.get("dojo", {}))

    # ── Tokens section ─────────────────────────────────────
    cfg.tokens = _override(TokenAddresses(), raw.get("tokens", {}))

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if start := os.environ.get(f"{env_prefix}START_BLOCK"):
        cfg.start_block = int(start)
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _override(group, section: dict):
    """Copy string values from a TOML table onto a dataclass of addresses."""
    for f in fields(group):
        if v := section.get(f.name):
            setattr(group, f.name, str(v))
    return group
