"""Tests 56-58: Configuration loading and the CLI."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from summit_indexer.cli import cli
from summit_indexer.config import load_config
from summit_indexer.errors import ConfigError
from summit_indexer.models.config import ContractAddresses, IndexerConfig

TOML = """
[indexer]
start_block = 0
poll_interval = 2
max_blocks_per_poll = 25
log_level = "warning"

[starknet]
rpc_url = "http://node.local/rpc"

[starknet.contracts]
summit = "0xabc"

[starknet.dojo]
entity_stats_selector = "0x1234"

[tokens]
attack = "0xdef"

[storage]
db_path = "{db_path}"
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(TOML.format(db_path=tmp_path / "summit.db"))
    return path


# ── Test 56: TOML values override defaults ───────────────────────


def test_load_from_toml(config_file, tmp_path):
    cfg = load_config(config_file)
    assert cfg.start_block == 0
    assert cfg.poll_interval == 2
    assert cfg.error_backoff == IndexerConfig().error_backoff
    assert cfg.max_blocks_per_poll == 25
    assert cfg.log_level == "warning"
    assert cfg.rpc_url == "http://node.local/rpc"
    assert cfg.contracts.summit == "0xabc"
    assert cfg.contracts.beasts == ContractAddresses().beasts
    assert cfg.dojo.entity_stats_selector == "0x1234"
    assert cfg.dojo.collectable_entity_selector == ""
    assert cfg.tokens.attack == "0xdef"
    assert cfg.db_path == str(tmp_path / "summit.db")


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.start_block == IndexerConfig().start_block
    assert not cfg.db_path.startswith("~")


# ── Test 57: Environment beats the file ──────────────────────────


def test_env_overrides(config_file, monkeypatch):
    monkeypatch.setenv("SUMMIT_INDEXER_RPC_URL", "http://env/rpc")
    monkeypatch.setenv("SUMMIT_INDEXER_START_BLOCK", "777")
    monkeypatch.setenv("SUMMIT_INDEXER_DB_PATH", ":memory:")
    cfg = load_config(config_file)
    assert cfg.rpc_url == "http://env/rpc"
    assert cfg.start_block == 777
    assert cfg.db_path == ":memory:"


def test_validate_rejects_bad_values():
    cfg = IndexerConfig()
    cfg.validate()

    cfg.contracts.pool = "not-hex"
    with pytest.raises(ConfigError, match="pool"):
        cfg.validate()

    cfg = IndexerConfig(rpc_url="")
    with pytest.raises(ConfigError, match="rpc_url"):
        cfg.validate()


# ── Test 58: CLI commands ────────────────────────────────────────


def test_cli_status_and_reset(config_file):
    runner = CliRunner()

    result = runner.invoke(cli, ["-c", str(config_file), "status"])
    assert result.exit_code == 0, result.output
    assert "http://node.local/rpc" in result.output
    assert "(not set)" in result.output

    result = runner.invoke(cli, ["-c", str(config_file), "stats"])
    assert result.exit_code == 0, result.output
    assert "summit_log" in result.output

    result = runner.invoke(cli, ["-c", str(config_file), "reset-cursor", "--market-logs", "-y"])
    assert result.exit_code == 0, result.output
    assert "Deleted 0 market log rows." in result.output


def test_cli_invalid_config_exits(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text('[starknet.contracts]\nsummit = "zzz"\n')
    result = CliRunner().invoke(cli, ["-c", str(path), "status"])
    assert result.exit_code == 1
    assert "summit" in result.output
