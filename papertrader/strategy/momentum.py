from __future__ import annotations

from typing import Optional

import numpy as np

from papertrader.ports.market_data import MarketDataProvider
from papertrader.strategy.base import Strategy
from papertrader.types.types import Signal, SignalAction, StrategyInfo

WINDOW = 5


class MomentumStrategy(Strategy):
    """
    momentum = (mean(last 5 closes) - mean(first 5)) / mean(first 5)
    BUY above +threshold, SELL below -threshold, HOLD otherwise.
    """

    def __init__(
        self,
        oracle: MarketDataProvider,
        lookback: int = 10,
        threshold: float = 0.02,
        *,
        info: Optional[StrategyInfo] = None,
    ) -> None:
        if lookback < WINDOW:
            raise ValueError(f"lookback must be >= {WINDOW}")
        if threshold <= 0:
            raise ValueError("threshold must be > 0")
        super().__init__(oracle, {"lookback": lookback, "threshold": threshold}, info=info)
        self._lookback = lookback
        self._threshold = threshold

    async def analyze(self, symbol: str) -> Signal:
        closes = await self._closes(symbol, self._lookback)
        momentum = self.calculate_momentum(closes)
        return Signal(
            symbol=symbol,
            action=self.generate_signal(momentum),
            confidence=self.calculate_confidence(momentum),
            features={"momentum": momentum, "last_close": float(closes[-1])},
        )

    @staticmethod
    def calculate_momentum(closes: np.ndarray) -> float:
        older = float(np.mean(closes[:WINDOW]))
        recent = float(np.mean(closes[-WINDOW:]))
        if older == 0:
            return 0.0
        return (recent - older) / older

    def generate_signal(self, momentum: float) -> SignalAction:
        if momentum > self._threshold:
            return SignalAction.BUY
        if momentum < -self._threshold:
            return SignalAction.SELL
        return SignalAction.HOLD

    def calculate_confidence(self, momentum: float) -> float:
        confidence = 0.5
        if abs(momentum) > self._threshold:
            confidence += 0.2
        return min(confidence, 1.0)
