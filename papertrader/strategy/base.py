"""
Goal: define the strategy interface
"""

import hashlib
import json
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Mapping, Optional

import numpy as np

from papertrader.ports.market_data import MarketDataProvider
from papertrader.errors.errors import StrategyError
from papertrader.types.types import Signal, StrategyInfo

# --- Base strategy contract ---


class Strategy(ABC):
    """
    key principles:
        - side-effect free: returns a Signal; the session decides whether to trade
        - reads history from the oracle, never touches the ledger
    """

    def __init__(
        self,
        oracle: MarketDataProvider,
        params: Mapping[str, Any],
        *,
        info: Optional[StrategyInfo] = None,
    ) -> None:
        self._oracle = oracle
        # MappingProxyType is a read-only (immutable view) of a dictionary/mapping (TypeError)
        self._params = MappingProxyType(dict(params))
        self._params_hash = self._stable_params_hash(self._params)
        self._info = info or StrategyInfo(name=self.__class__.__name__.lower())

    # --- Property methods ---

    @property
    def info(self) -> StrategyInfo:
        return self._info

    @property
    def params(self) -> Mapping[str, Any]:
        return self._params

    @property
    def params_hash(self) -> str:
        return self._params_hash

    # --- Decision hook ---

    @abstractmethod
    async def analyze(self, symbol: str) -> Signal:
        """Primary decision hook. Required."""

    # --- Helpers ---

    async def _closes(self, symbol: str, lookback: int) -> np.ndarray:
        history = await self._oracle.get_history(symbol, lookback)
        if not history:
            raise StrategyError(
                "No historical data available",
                component=self._info.name,
                details={"symbol": symbol, "lookback": lookback},
            )
        return np.fromiter((bar.close for bar in history), dtype=float, count=len(history))

    @staticmethod
    def _stable_params_hash(params: Mapping[str, Any]) -> str:
        payload = json.dumps(dict(params), sort_keys=True, default=str, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
