"""
Responsibilities:
- Cash, positions (share counts per symbol), append-only trade history
- Pure in-memory state; no prices, no risk logic, no I/O

The ledger trusts its caller. Only the OrderExecutor mutates it in response to
a trade request, and it checks funds/positions before calling in.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Mapping, Union

from papertrader.types.aliases import Symbol
from papertrader.types.types import ZERO, TradeRecord
from papertrader.utils.utility import dec

Amount = Union[str, int, float, Decimal]


class PortfolioLedger:
    """
    Authoritative state of one trading session.

    - cash: Decimal, may be driven negative by a careless caller; executor prevents it
    - positions: symbol -> quantity; entries are created on first add
    - history: chronological TradeRecords, never removed or reordered
    """

    def __init__(self, starting_cash: Amount = ZERO) -> None:
        self._cash: Decimal = dec(starting_cash)
        self._positions: dict[Symbol, Decimal] = {}
        self._history: list[TradeRecord] = []

    # --- Property methods ---

    @property
    def cash(self) -> Decimal:
        return self._cash

    @property
    def positions(self) -> Mapping[Symbol, Decimal]:
        """Copy; mutating it does not touch the ledger."""
        return dict(self._positions)

    @property
    def history(self) -> tuple[TradeRecord, ...]:
        return tuple(self._history)

    @property
    def history_len(self) -> int:
        return len(self._history)

    def position_qty(self, symbol: Symbol) -> Decimal:
        return self._positions.get(symbol, ZERO)

    # --- Mutations ---

    def credit(self, amount: Amount) -> None:
        self._cash += dec(amount)

    def debit(self, amount: Amount) -> None:
        self._cash -= dec(amount)

    def add_position(self, symbol: Symbol, quantity: Amount) -> None:
        self._positions[symbol] = self._positions.get(symbol, ZERO) + dec(quantity)

    def reduce_position(self, symbol: Symbol, quantity: Amount) -> None:
        remaining = self._positions.get(symbol, ZERO) - dec(quantity)
        if remaining == ZERO:
            self._positions.pop(symbol, None)
        else:
            self._positions[symbol] = remaining

    def append_history(self, record: TradeRecord) -> None:
        self._history.append(record)

    @contextmanager
    def atomic(self) -> Iterator["PortfolioLedger"]:
        """
        Group mutations into one unit: if the body raises, cash, positions and
        history are restored to their state at entry and the error propagates.
        """
        cash = self._cash
        positions = dict(self._positions)
        history_len = len(self._history)
        try:
            yield self
        except BaseException:
            self._cash = cash
            self._positions = positions
            del self._history[history_len:]
            raise
