"""
TradingSession: one explicitly constructed paper-trading session.

Builds the ledger, risk limiter and executor from a SessionConfig and exposes:
- order entry (buy / sell / execute, strategy-driven orders)
- the read views an HTTP layer serializes (portfolio, metrics, history, health)

Sessions share nothing; several can run side by side in one process.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import polars as pl

from papertrader.config.configs import SessionConfig
from papertrader.core.executor import OrderExecutor
from papertrader.core.ledger import PortfolioLedger
from papertrader.data.price_simulator import SimulatedPriceOracle
from papertrader.ports.clock import Clock, SystemClock
from papertrader.ports.price_oracle import PriceOracle
from papertrader.ports.telemetry import Telemetry
from papertrader.risk.risk_limiter import RiskLimiter
from papertrader.strategy.base import Strategy
from papertrader.types.types import ExecutionResult, SignalAction
from papertrader.utils.order_utility import require_positive
from papertrader.verify.verifier import StrategyVerifier

logger = logging.getLogger(__name__)

HISTORY_SCHEMA = {
    "executed_at": pl.Datetime(time_zone="UTC"),
    "action": pl.Utf8,
    "symbol": pl.Utf8,
    "quantity": pl.Float64,
    "price": pl.Float64,
    "notional": pl.Float64,
}


class TradingSession:
    def __init__(
        self,
        cfg: Optional[SessionConfig] = None,
        *,
        oracle: Optional[PriceOracle] = None,
        clock: Optional[Clock] = None,
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._cfg = cfg or SessionConfig()
        self._oracle: PriceOracle = oracle or SimulatedPriceOracle(self._cfg.oracle)
        self._clock = clock or SystemClock()
        self._telemetry = telemetry

        self._ledger = PortfolioLedger(self._cfg.ledger.starting_cash)
        self._risk = RiskLimiter(self._ledger, self._oracle, self._cfg.risk)
        self._executor = OrderExecutor(
            self._ledger,
            self._oracle,
            self._risk,
            clock=self._clock,
            telemetry=telemetry,
        )
        self._verifier = StrategyVerifier(self._cfg.verifier)

        if telemetry is not None:
            telemetry.log(
                "session_started",
                session_name=self._cfg.session_name,
                starting_cash=self._ledger.cash,
                config_hash=self._cfg.stable_hash(),
            )

    # --- Property methods ---

    @property
    def config(self) -> SessionConfig:
        return self._cfg

    @property
    def ledger(self) -> PortfolioLedger:
        return self._ledger

    @property
    def risk_limiter(self) -> RiskLimiter:
        return self._risk

    @property
    def executor(self) -> OrderExecutor:
        return self._executor

    @property
    def oracle(self) -> PriceOracle:
        return self._oracle

    @property
    def verifier(self) -> StrategyVerifier:
        return self._verifier

    # --- Order entry ---

    async def buy(self, symbol: str, quantity: Any) -> ExecutionResult:
        return await self._executor.execute_buy(symbol, quantity)

    async def sell(self, symbol: str, quantity: Any) -> ExecutionResult:
        return await self._executor.execute_sell(symbol, quantity)

    async def execute(self, action: Any, symbol: str, quantity: Any) -> ExecutionResult:
        return await self._executor.execute(action, symbol, quantity)

    async def act_on_signal(
        self, strategy: Strategy, symbol: str, quantity: Any
    ) -> Optional[ExecutionResult]:
        """
        Ask `strategy` for a signal and trade on it. HOLD, and SELL without a
        holding, place no order and return None.
        """
        signal = await strategy.analyze(symbol)
        logger.debug(
            "%s signal for %s: %s (confidence=%.2f)",
            strategy.info.name,
            symbol,
            signal.action.value,
            signal.confidence,
        )
        if signal.action is SignalAction.BUY:
            return await self.buy(symbol, quantity)
        if signal.action is SignalAction.SELL and self._ledger.position_qty(symbol) > 0:
            qty = require_positive(quantity, "quantity", component="session")
            return await self.sell(symbol, min(self._ledger.position_qty(symbol), qty))
        return None

    # --- Read views ---

    async def portfolio_view(self) -> dict[str, Any]:
        total_value = await self._risk.get_portfolio_value()
        return {
            "cash": str(self._ledger.cash),
            "total_value": f"{total_value:.2f}",
            "positions": {s: str(q) for s, q in self._ledger.positions.items()},
        }

    async def risk_metrics(self) -> dict[str, Any]:
        return await self._risk.get_risk_metrics()

    def history(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Newest first; `limit` of None or <= 0 returns everything."""
        records = [r.to_dict() for r in reversed(self._ledger.history)]
        if limit is not None and limit > 0:
            return records[:limit]
        return records

    def history_frame(self) -> pl.DataFrame:
        """Chronological trade log as a DataFrame (report/CSV export)."""
        rows = [
            {
                "executed_at": r.executed_at,
                "action": r.action.value,
                "symbol": r.symbol,
                "quantity": float(r.quantity),
                "price": float(r.price),
                "notional": float(r.notional),
            }
            for r in self._ledger.history
        ]
        return pl.DataFrame(rows, schema=HISTORY_SCHEMA)

    def health(self) -> dict[str, str]:
        return {"status": "healthy", "timestamp": self._clock.now().isoformat()}
