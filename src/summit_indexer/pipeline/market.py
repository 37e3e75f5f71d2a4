"""Market resolver - recovers potion trades from multi-leg token transfers.

An AMM swap moves consumables pool -> router -> user (or the reverse), so a
single Transfer does not say who traded. Legs are collected for the whole
block, grouped per (transaction, token), and summed per address. Addresses
with a nonzero net are the real counterparties; routers net to zero and
drop out on their own.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from summit_indexer.models.amounts import TokenAmount
from summit_indexer.models.events import TokenTransferEvent
from summit_indexer.models.records import EventKey, EventSite, LogEntry, TransferLeg
from summit_indexer.starknet.felt import felt, to_address

log = logging.getLogger(__name__)

PAID_ASSET = "survivor"

TOKEN_NAMES = {
    "xlife_count": "EXTRA LIFE",
    "attack_count": "ATTACK",
    "revive_count": "REVIVE",
    "poison_count": "POISON",
}


@dataclass(frozen=True)
class Trade:
    """One counterparty's net position in one token within one transaction."""

    transaction_hash: str
    token: str
    address: str
    amount: int  # signed whole units
    event_index: int  # first leg of the group
    ordinal: int  # counterparty position within the group
    cost: TokenAmount

    @property
    def is_buy(self) -> bool:
        return self.amount > 0


class MarketResolver:
    """Collects transfer legs during a block and resolves trades at the end.

    One resolver is used per block.
    """

    def __init__(self, pool_address: str) -> None:
        self._pool = felt(pool_address)
        self._legs: list[TransferLeg] = []
        # transaction -> net paid-asset flow into the pool
        self._pool_inflow: dict[str, TokenAmount] = {}

    def is_excluded(self, address: str) -> bool:
        """Zero address and the pool never hold consumable balances."""
        value = felt(address)
        return value == 0 or value == self._pool

    @property
    def legs(self) -> list[TransferLeg]:
        return list(self._legs)

    def collect(self, event: TokenTransferEvent, transaction_hash: str, event_index: int) -> None:
        if event.token == PAID_ASSET:
            self._collect_payment(event, transaction_hash)
            return

        units = event.amount.whole_units
        if units == 0:
            return
        involves_pool = felt(event.from_address) == self._pool or felt(event.to_address) == self._pool
        if not self.is_excluded(event.to_address):
            self._legs.append(TransferLeg(
                transaction_hash, event.token, to_address(event.to_address),
                units, event_index, involves_pool,
            ))
        if not self.is_excluded(event.from_address):
            self._legs.append(TransferLeg(
                transaction_hash, event.token, to_address(event.from_address),
                -units, event_index, involves_pool,
            ))

    def _collect_payment(self, event: TokenTransferEvent, transaction_hash: str) -> None:
        flow = TokenAmount(0, event.amount.decimals)
        if felt(event.to_address) == self._pool:
            flow = flow + event.amount
        if felt(event.from_address) == self._pool:
            flow = flow + -event.amount
        if flow.raw:
            current = self._pool_inflow.get(transaction_hash, TokenAmount(0, flow.decimals))
            self._pool_inflow[transaction_hash] = current + flow

    def cost_of(self, transaction_hash: str) -> TokenAmount:
        """Magnitude of the pool's net paid-asset flow in the transaction."""
        return abs(self._pool_inflow.get(transaction_hash, TokenAmount(0)))

    def resolve(self) -> list[Trade]:
        groups: dict[tuple[str, str], list[TransferLeg]] = defaultdict(list)
        for leg in self._legs:
            groups[(leg.transaction_hash, leg.token)].append(leg)

        trades: list[Trade] = []
        for (tx_hash, token), legs in groups.items():
            if not any(leg.involves_pool for leg in legs):
                continue  # wallet to wallet, not a trade

            net: dict[str, int] = {}
            for leg in legs:
                net[leg.address] = net.get(leg.address, 0) + leg.amount

            first_index = min(leg.event_index for leg in legs)
            ordinal = 0
            for address, amount in net.items():
                if amount == 0:
                    continue
                trades.append(Trade(
                    tx_hash, token, address, amount, first_index, ordinal,
                    self.cost_of(tx_hash),
                ))
                ordinal += 1
        return trades

    def resolve_logs(
        self, block_number: int, created_at: str, indexed_at: str,
    ) -> list[LogEntry]:
        logs = []
        for trade in self.resolve():
            site = EventSite(
                block_number, trade.transaction_hash, trade.event_index, created_at, indexed_at,
            )
            logs.append(site.log(
                "Market", "Bought Potions" if trade.is_buy else "Sold Potions",
                {
                    "player": trade.address,
                    "token": TOKEN_NAMES.get(trade.token, trade.token),
                    "amount": abs(trade.amount),
                    "survivor_cost": trade.cost.format(4),
                },
                player=trade.address,
                key=EventKey(trade.event_index, trade.ordinal),
            ))
        if logs:
            log.debug("Block %d: %d market trades", block_number, len(logs))
        return logs
