"""Ledger collaborator.

The engine only ever *instructs* the ledger to move funds it already holds;
it never reads balances from it.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Protocol

from .types import BankSend, Coin


class Ledger(Protocol):
    def transfer(self, to_address: str, coin: Coin) -> None: ...


class InMemoryLedger:
    """Records every transfer and credits the receiving account."""

    def __init__(self) -> None:
        self.transfers: List[BankSend] = []
        self.balances: Dict[str, Dict[str, int]] = defaultdict(dict)

    def transfer(self, to_address: str, coin: Coin) -> None:
        self.transfers.append(BankSend(to_address=to_address, amount=(coin,)))
        account = self.balances[to_address]
        account[coin.denom] = account.get(coin.denom, 0) + coin.amount

    def balance(self, address: str, denom: str) -> int:
        return self.balances.get(address, {}).get(denom, 0)


def deliver(ledger: Ledger, messages: List[BankSend]) -> None:
    for msg in messages:
        for coin in msg.amount:
            ledger.transfer(msg.to_address, coin)
