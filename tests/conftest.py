"""Shared fixtures for summit_indexer tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from summit_indexer.daemon import IndexerDaemon
from summit_indexer.models.config import ContractAddresses, DojoConfig, IndexerConfig
from summit_indexer.models.stats import BeastRpcData
from summit_indexer.pipeline.processor import BlockProcessor
from summit_indexer.starknet.felt import compute_entity_hash, to_address
from summit_indexer.storage.sqlite import SQLiteIndexStore

from tests.factories import COLLECTABLE_ENTITY_MODEL, ENTITY_STATS_MODEL
from tests.mocks import MockBlockSource, MockMetadataFetcher

PLAYER_A = to_address(0xA11CE)
PLAYER_B = to_address(0xB0B)
ROUTER = to_address(0x4047E4)
POOL = to_address(ContractAddresses().pool)

# A minted, named beast the mock fetcher knows about
BEAST_TOKEN = 100
BEAST = BeastRpcData(id=5, prefix=10, suffix=20, level=3, health=50, shiny=0, animated=1)
BEAST_HASH = compute_entity_hash(BEAST.id, BEAST.prefix, BEAST.suffix)

RPC_PORT = 9199


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Starknet (mocked)"
    meta["Summit Contract"] = ContractAddresses().summit
    meta["Beasts Contract"] = ContractAddresses().beasts


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        start_block=100,
        poll_interval=0,
        error_backoff=0,
        max_blocks_per_poll=10,
        rpc_url=f"http://127.0.0.1:{RPC_PORT}",
        rpc_timeout=5,
        dojo=DojoConfig(
            entity_stats_selector=ENTITY_STATS_MODEL,
            collectable_entity_selector=COLLECTABLE_ENTITY_MODEL,
        ),
        db_path=":memory:",
    )
    defaults.update(overrides)
    return IndexerConfig(**defaults)


@pytest.fixture
def test_config():
    """Default IndexerConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteIndexStore."""
    s = SQLiteIndexStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_fetcher():
    return MockMetadataFetcher({BEAST_TOKEN: BEAST})


@pytest.fixture
def mock_source():
    return MockBlockSource()


@pytest.fixture
def processor(test_config, store, mock_fetcher):
    return BlockProcessor(test_config, store, mock_fetcher)


@pytest.fixture
async def daemon(test_config, store, mock_fetcher, mock_source):
    """IndexerDaemon with the store, fetcher and source swapped for test doubles."""
    d = IndexerDaemon(test_config)
    d.store = store
    d.fetcher = mock_fetcher
    d.source = mock_source
    d.processor = BlockProcessor(test_config, store, mock_fetcher, d.state)
    yield d
    await d.rpc.close()
