"""
Simulated market data.

- SimulatedPriceOracle: seeded random quotes around a base price per symbol,
  plus a random-walk daily history for strategies.
- StaticPriceOracle: fixed quotes that only move when told to (scripted runs, tests).
- PriceStream: periodic price updates pushed to per-symbol subscribers.

No exchange is contacted; every number comes from a local random.Random.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Mapping, Optional, Union

from papertrader.config.configs import OracleConfig
from papertrader.errors.errors import DataUnavailableError
from papertrader.ports.price_oracle import PriceOracle
from papertrader.types.aliases import Symbol
from papertrader.types.types import Bar, PriceUpdate
from papertrader.utils.utility import dec

logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.0001")

PriceCallback = Callable[[PriceUpdate], None]


class SimulatedPriceOracle:
    """
    quote = base * (1 + (u - 0.5) * 2 * volatility), u ~ U[0, 1)

    Quotes are independent draws around the base, not a path: two reads in a
    row generally differ.
    """

    def __init__(self, cfg: Optional[OracleConfig] = None, seed: Optional[int] = None) -> None:
        self._cfg = cfg or OracleConfig()
        self._seed = seed if seed is not None else self._cfg.seed
        self._rng = random.Random(self._seed)
        self._base_prices: dict[Symbol, Decimal] = dict(self._cfg.base_prices)

    @property
    def symbols(self) -> list[Symbol]:
        return list(self._base_prices)

    def base_price(self, symbol: Symbol) -> Decimal:
        base = self._base_prices.get(symbol)
        if base is not None:
            return base
        if self._cfg.fallback_price is None:
            raise DataUnavailableError(symbol, component="price_simulator")
        return self._cfg.fallback_price

    async def get_price(self, symbol: Symbol) -> Decimal:
        base = self.base_price(symbol)
        change = (self._rng.random() - 0.5) * 2 * self._cfg.volatility
        return (base * (1 + dec(change))).quantize(PRICE_QUANTUM)

    async def get_history(self, symbol: Symbol, days: int = 30) -> list[Bar]:
        """One bar per day, oldest first, ending yesterday (UTC)."""
        if days <= 0:
            return []
        price = float(self.base_price(symbol))
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

        bars: list[Bar] = []
        for i in range(days):
            price *= 1 + (self._rng.random() - 0.48) * 0.02
            bars.append(
                Bar(
                    symbol=symbol,
                    date=today - timedelta(days=days - i),
                    open=price * 0.99,
                    high=price * 1.02,
                    low=price * 0.98,
                    close=price,
                    volume=int(self._rng.random() * 1_000_000),
                )
            )
        return bars


class StaticPriceOracle:
    """
    Fixed quotes keyed by symbol. Unknown symbols raise DataUnavailableError.

    Scripted runs move quotes with set_price and read `reads` to see how many
    quotes a flow consumed.
    """

    def __init__(self, prices: Mapping[Symbol, Union[str, int, float, Decimal]]) -> None:
        self._prices: dict[Symbol, Decimal] = {s: dec(p) for s, p in prices.items()}
        self._reads: int = 0

    def set_price(self, symbol: Symbol, price: Union[str, int, float, Decimal]) -> None:
        self._prices[symbol] = dec(price)

    @property
    def reads(self) -> int:
        """Number of get_price calls served, including failed lookups."""
        return self._reads

    async def get_price(self, symbol: Symbol) -> Decimal:
        self._reads += 1
        try:
            return self._prices[symbol]
        except KeyError:
            raise DataUnavailableError(symbol, component="static_oracle") from None


class PriceStream:
    """
    Push price updates to subscribers every `interval_s` seconds.

    One background task per stream. A failing oracle read or subscriber
    callback is logged and skipped; the stream keeps running.
    """

    def __init__(self, oracle: PriceOracle, interval_s: float = 1.0) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._oracle = oracle
        self._interval_s = interval_s
        self._subscribers: dict[Symbol, list[PriceCallback]] = {}
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, symbol: Symbol, callback: PriceCallback) -> Callable[[], None]:
        """Register `callback` for `symbol`; returns a function that unsubscribes it."""
        if not isinstance(symbol, str):
            raise TypeError("Symbol must be a string")
        if not symbol:
            raise ValueError("Symbol cannot be empty")
        if not callable(callback):
            raise TypeError("Callback must be callable")

        self._subscribers.setdefault(symbol, []).append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(symbol, callback)

        return _unsubscribe

    def unsubscribe(self, symbol: Symbol, callback: PriceCallback) -> None:
        callbacks = self._subscribers.get(symbol)
        if not callbacks:
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self._subscribers[symbol]

    def subscribed_symbols(self) -> list[Symbol]:
        return [s for s, cbs in self._subscribers.items() if cbs]

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="price-stream")
        logger.debug("price stream started (interval=%ss)", self._interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("price stream stopped")

    async def tick(self) -> None:
        """Run one update round for every subscribed symbol."""
        for symbol in self.subscribed_symbols():
            try:
                price = await self._oracle.get_price(symbol)
            except Exception as e:
                logger.error("Error fetching price for %s: %s", symbol, e)
                continue

            update = PriceUpdate(symbol=symbol, price=price, ts=datetime.now(timezone.utc))
            for callback in list(self._subscribers.get(symbol, ())):
                try:
                    callback(update)
                except Exception as e:
                    logger.error("Error in subscriber callback for %s: %s", symbol, e)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            await self.tick()
