"""Main daemon loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from summit_indexer.errors import BatchWriteError
from summit_indexer.models.config import IndexerConfig
from summit_indexer.models.events import Block
from summit_indexer.pipeline.processor import BlockProcessor
from summit_indexer.pipeline.state import IndexerState
from summit_indexer.starknet.metadata import BeastMetadataFetcher
from summit_indexer.starknet.rpc import StarknetRpc
from summit_indexer.starknet.source import RpcBlockSource
from summit_indexer.storage.sqlite import SQLiteIndexStore

log = logging.getLogger(__name__)


class IndexerDaemon:
    """Summit event indexer.

    Polls the block source, processes each block strictly in order and
    advances the cursor only after a block's writes have committed.
    """

    def __init__(self, cfg: IndexerConfig) -> None:
        self._cfg = cfg
        self._running = False
        self._stop_requested = False

        # Core components
        self.rpc = StarknetRpc(cfg.rpc_url, cfg.rpc_timeout)
        self.store = SQLiteIndexStore(cfg.db_path)
        self.fetcher = BeastMetadataFetcher(self.rpc, cfg.contracts.beasts)
        self.state = IndexerState()
        self.processor = BlockProcessor(cfg, self.store, self.fetcher, self.state)
        self.source = RpcBlockSource(
            self.rpc,
            self.processor.decoder.tracked_addresses,
            cfg.start_block,
            cfg.max_blocks_per_poll,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Initialize components and run the main loop."""
        log.info("Starting summit indexer")
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Summit: %s", self._cfg.contracts.summit)
        log.info("  Beasts: %s", self._cfg.contracts.beasts)
        log.info("  DB: %s", self._cfg.db_path)

        await self.store.initialize()

        # Restore cursor from last run
        last_block = await self.store.get_cursor()
        if last_block is not None:
            self.source.set_position(last_block + 1)
            log.info("Restored cursor: block %d", last_block)
        else:
            self.source.set_position(self._cfg.start_block)
            log.info("No cursor, starting from block %d", self._cfg.start_block)

        await self._backfill_entity_links()

        self._running = True
        try:
            await self._main_loop()
        finally:
            await self.source.close()
            await self.fetcher.close()
            await self.store.close()
            log.info("Indexer shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop after the block in progress."""
        log.info("Stop requested")
        self._running = False
        self._stop_requested = True

    async def _backfill_entity_links(self) -> None:
        """Link beasts minted before start_block to their Loot Survivor records."""
        try:
            token_ids = await self.store.backfill_entity_links()
        except Exception as exc:
            log.warning("Entity link backfill failed: %s", exc, exc_info=True)
            return
        self.state.mark_fetched(token_ids)
        log.info("Linked %d beasts to entity hashes", len(token_ids))

    async def _main_loop(self) -> None:
        """The core polling and processing loop."""
        while self._running:
            try:
                processed = await self.poll_once()
                if not processed:
                    await asyncio.sleep(self._cfg.poll_interval)

            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except BatchWriteError as exc:
                log.critical("Write failed on table %s, stopping: %s", exc.table, exc.cause)
                self._running = False
                raise
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                await asyncio.sleep(self._cfg.error_backoff)

    async def poll_once(self) -> int:
        """Poll the source and process what it returns. Returns blocks written."""
        blocks = await self.source.poll()
        return await self.process_blocks(blocks)

    async def process_blocks(self, blocks: list[Block]) -> int:
        done = 0
        for block in blocks:
            if self._stop_requested:
                # Resume here next time; the rest were never written.
                self.source.set_position(block.number)
                break
            try:
                await self.processor.process_block(block)
            except BaseException:
                self.source.set_position(block.number)
                raise
            await self.store.set_cursor(block.number)
            done += 1
        return done


async def run_daemon(cfg: IndexerConfig) -> None:
    """Entry point for running the daemon."""
    daemon = IndexerDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
