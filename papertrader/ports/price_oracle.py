"""PriceOracle Port Interface.

Contract: return the current price for a symbol. Successive reads may differ
(simulated volatility); callers that need one price for a decision read once.
Raises DataUnavailableError when no quote exists.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol


class PriceOracle(Protocol):
    async def get_price(self, symbol: str) -> Decimal: ...
