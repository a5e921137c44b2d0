from __future__ import annotations

from typing import Optional

import numpy as np

from papertrader.ports.market_data import MarketDataProvider
from papertrader.strategy.base import Strategy
from papertrader.types.types import Signal, SignalAction, StrategyInfo


class MeanReversionStrategy(Strategy):
    """
    z = (last close - mean) / std over the lookback (population std).
    Oversold (z < -k) -> BUY, overbought (z > k) -> SELL.
    """

    def __init__(
        self,
        oracle: MarketDataProvider,
        lookback: int = 20,
        std_multiplier: float = 2.0,
        *,
        info: Optional[StrategyInfo] = None,
    ) -> None:
        if lookback < 1:
            raise ValueError("lookback must be >= 1")
        if std_multiplier <= 0:
            raise ValueError("std_multiplier must be > 0")
        super().__init__(
            oracle, {"lookback": lookback, "std_multiplier": std_multiplier}, info=info
        )
        self._lookback = lookback
        self._k = std_multiplier

    async def analyze(self, symbol: str) -> Signal:
        closes = await self._closes(symbol, self._lookback)
        current = float(closes[-1])
        mean = float(np.mean(closes))
        std = self.calculate_std(closes)
        deviation = self.calculate_deviation(current, mean, std)
        return Signal(
            symbol=symbol,
            action=self.generate_signal(deviation),
            confidence=self.calculate_confidence(deviation),
            features={
                "current_price": current,
                "mean": mean,
                "std_dev": std,
                "deviation": deviation,
            },
        )

    @staticmethod
    def calculate_std(closes: np.ndarray) -> float:
        if closes.size <= 1:
            return 0.0
        return float(np.std(closes))  # ddof=0

    @staticmethod
    def calculate_deviation(price: float, mean: float, std: float) -> float:
        if std == 0:
            return 0.0
        return (price - mean) / std

    def generate_signal(self, deviation: float) -> SignalAction:
        if deviation < -self._k:
            return SignalAction.BUY
        if deviation > self._k:
            return SignalAction.SELL
        return SignalAction.HOLD

    def calculate_confidence(self, deviation: float) -> float:
        confidence = 0.5
        if abs(deviation) > self._k:
            confidence += 0.2
        return min(confidence, 1.0)
