"""CLI entry point for the summit indexer."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from summit_indexer.config import load_config
from summit_indexer.daemon import run_daemon
from summit_indexer.errors import ConfigError, IndexerError
from summit_indexer.storage.sqlite import SQLiteIndexStore


def _load(ctx: click.Context):
    """Load and validate config, exiting with an error message if invalid."""
    cfg = load_config(ctx.obj["config_path"])
    try:
        cfg.validate()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())
    return cfg


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """summit-indexer - Starknet event indexer for the Summit game."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Indexer ────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the indexer."""
    cfg = _load(ctx)
    click.echo(f"Starting summit indexer (from block {cfg.start_block})")
    try:
        asyncio.run(run_daemon(cfg))
    except IndexerError as exc:
        click.echo(f"Indexer stopped: {exc}", err=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show indexer configuration and cursor."""
    cfg = _load(ctx)

    async def _cursor():
        store = SQLiteIndexStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_cursor()
        finally:
            await store.close()

    cursor = asyncio.run(_cursor())
    click.echo(f"RPC URL:     {cfg.rpc_url}")
    click.echo(f"Summit:      {cfg.contracts.summit}")
    click.echo(f"Beasts:      {cfg.contracts.beasts}")
    click.echo(f"Dojo world:  {cfg.contracts.dojo_world}")
    click.echo(f"Pool:        {cfg.contracts.pool}")
    click.echo(f"Start block: {cfg.start_block}")
    click.echo(f"DB path:     {cfg.db_path}")
    click.echo(f"Cursor:      {cursor if cursor is not None else '(not set)'}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show row counts per table."""
    cfg = _load(ctx)

    async def _counts():
        store = SQLiteIndexStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.table_counts()
        finally:
            await store.close()

    for table, count in asyncio.run(_counts()).items():
        click.echo(f"{table:<24}{count}")


# ── Maintenance ────────────────────────────────────────


@cli.command("reset-cursor")
@click.option("--market-logs", is_flag=True, help="Also delete Market log rows so they are rebuilt")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset_cursor(ctx: click.Context, market_logs: bool, yes: bool) -> None:
    """Re-process everything from start_block on the next run.

    All writes are idempotent, so rows already present are left as they are.
    """
    cfg = _load(ctx)
    if not yes:
        click.confirm(f"Reset cursor to start block {cfg.start_block}?", abort=True)

    async def _reset():
        store = SQLiteIndexStore(cfg.db_path)
        await store.initialize()
        try:
            await store.reset_cursor()
            return await store.delete_market_logs() if market_logs else 0
        finally:
            await store.close()

    deleted = asyncio.run(_reset())
    click.echo("Cursor reset.")
    if market_logs:
        click.echo(f"Deleted {deleted} market log rows.")


if __name__ == "__main__":
    cli()
