"""Tests 17-21: Market trade resolution from transfer legs."""

from __future__ import annotations

from summit_indexer.models.amounts import TokenAmount
from summit_indexer.models.events import TokenTransferEvent
from summit_indexer.models.records import EventKey
from summit_indexer.pipeline.market import MarketResolver

from tests.conftest import PLAYER_A, PLAYER_B, POOL, ROUTER
from tests.factories import ONE, TX_A, TX_B, ZERO


def _transfer(token: str, src: str, dst: str, amount: int) -> TokenTransferEvent:
    return TokenTransferEvent(token, src, dst, TokenAmount(amount))


def _market() -> MarketResolver:
    return MarketResolver(POOL)


# ── Test 17: Router hop nets out ─────────────────────────────────


def test_buy_through_router():
    m = _market()
    m.collect(_transfer("survivor", PLAYER_A, ROUTER, 2 * ONE), TX_A, 0)
    m.collect(_transfer("survivor", ROUTER, POOL, 2 * ONE), TX_A, 1)
    m.collect(_transfer("attack_count", POOL, ROUTER, 5 * ONE), TX_A, 2)
    m.collect(_transfer("attack_count", ROUTER, PLAYER_A, 5 * ONE), TX_A, 3)

    trades = m.resolve()
    assert len(trades) == 1
    trade = trades[0]
    assert trade.address == PLAYER_A
    assert trade.amount == 5
    assert trade.is_buy
    assert trade.event_index == 2
    assert trade.cost == TokenAmount(2 * ONE)


def test_sell_logs_cost_and_key():
    m = _market()
    m.collect(_transfer("revive_count", PLAYER_B, POOL, 3 * ONE), TX_B, 7)
    m.collect(_transfer("survivor", POOL, PLAYER_B, ONE + ONE // 4), TX_B, 8)

    logs = m.resolve_logs(1000, "created", "indexed")
    assert len(logs) == 1
    entry = logs[0]
    assert entry.category == "Market"
    assert entry.sub_category == "Sold Potions"
    assert entry.key == EventKey(7, 0)
    assert entry.data == {
        "player": PLAYER_B,
        "token": "REVIVE",
        "amount": 3,
        "survivor_cost": "1.25",
    }
    assert entry.player == PLAYER_B


# ── Test 18: Wallet-to-wallet transfers are not trades ───────────


def test_transfer_without_pool_is_not_a_trade():
    m = _market()
    m.collect(_transfer("poison_count", PLAYER_A, PLAYER_B, 2 * ONE), TX_A, 0)
    assert len(m.legs) == 2
    assert m.resolve() == []


# ── Test 19: Net-zero intermediaries drop out ────────────────────


def test_net_zero_round_trip_yields_nothing():
    m = _market()
    m.collect(_transfer("xlife_count", POOL, PLAYER_A, ONE), TX_A, 0)
    m.collect(_transfer("xlife_count", PLAYER_A, POOL, ONE), TX_A, 1)
    assert m.resolve() == []


def test_multiple_counterparties_get_ordinals():
    m = _market()
    m.collect(_transfer("attack_count", POOL, PLAYER_A, 2 * ONE), TX_A, 4)
    m.collect(_transfer("attack_count", POOL, PLAYER_B, ONE), TX_A, 5)
    keys = sorted(e.key for e in m.resolve_logs(1, "c", "i"))
    assert keys == [EventKey(4, 0), EventKey(4, 1)]


# ── Test 20: Dust and excluded addresses ─────────────────────────


def test_dust_and_mints_are_ignored():
    m = _market()
    m.collect(_transfer("attack_count", POOL, PLAYER_A, ONE // 2), TX_A, 0)
    m.collect(_transfer("attack_count", ZERO, PLAYER_A, 4 * ONE), TX_A, 1)
    legs = m.legs
    assert len(legs) == 1
    assert legs[0].address == PLAYER_A
    assert not legs[0].involves_pool
    assert m.is_excluded(ZERO)
    assert m.is_excluded(POOL)
    assert not m.is_excluded(PLAYER_A)


# ── Test 21: Cost is per transaction ─────────────────────────────


def test_cost_is_scoped_to_transaction():
    m = _market()
    m.collect(_transfer("survivor", PLAYER_A, POOL, 3 * ONE), TX_A, 0)
    m.collect(_transfer("survivor", PLAYER_B, POOL, ONE), TX_B, 5)
    assert m.cost_of(TX_A) == TokenAmount(3 * ONE)
    assert m.cost_of(TX_B) == TokenAmount(ONE)
    assert m.cost_of("0xdead") == TokenAmount(0)
