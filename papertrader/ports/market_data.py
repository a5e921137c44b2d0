"""MarketDataProvider Port Interface.

Contract: return daily bars for a symbol, oldest first. An empty list means no
history is available; strategies turn that into StrategyError.
"""

from __future__ import annotations

from typing import Protocol

from papertrader.types.types import Bar


class MarketDataProvider(Protocol):
    async def get_history(self, symbol: str, days: int = 30) -> list[Bar]: ...
