"""
Pre-trade risk limits.

Three independent constraints, composed into one admission decision:
- drawdown:         (peak - value) / peak       <= max_portfolio_drawdown  (inclusive)
- position size:    (held + qty) * px / value   <= max_position_size       (inclusive)
- risk per trade:   qty * px / value            <  max_risk_per_trade      (exclusive)

check_trade evaluates them in that order and stops at the first failure, so the
surfaced reason is always the earliest violated limit. Only BUY orders are
limited; orders that reduce exposure are always admitted.

The peak portfolio value is a high-water mark. It is seeded with the ledger's
cash and ratchets upward every time get_portfolio_value runs; nothing else
touches it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Union

from papertrader.config.configs import RiskLimitsConfig
from papertrader.core.ledger import PortfolioLedger
from papertrader.ports.price_oracle import PriceOracle
from papertrader.types.aliases import Symbol
from papertrader.types.types import (
    INF,
    ZERO,
    DrawdownCheck,
    PositionSizeCheck,
    RiskDecision,
    RiskMetricsSnapshot,
    TradeAction,
)
from papertrader.utils.order_utility import require_positive, require_symbol
from papertrader.utils.utility import fmt_limit, fmt_pct

logger = logging.getLogger(__name__)

NON_BUY_REASON = "non-buy orders are not risk-limited"
PASS_REASON = "Trade passes all risk checks"
NON_POSITIVE_VALUE_REASON = "Portfolio value is not positive; cannot size trade"


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    # A non-positive base makes every fraction meaningless; infinity fails every limit.
    if denominator <= ZERO:
        return INF
    return numerator / denominator


class RiskLimiter:
    def __init__(
        self,
        ledger: PortfolioLedger,
        oracle: PriceOracle,
        limits: RiskLimitsConfig | None = None,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._limits = limits or RiskLimitsConfig()
        self._initial_capital: Decimal = ledger.cash
        self._peak_portfolio_value: Decimal = ledger.cash

    # --- Property methods ---

    @property
    def limits(self) -> RiskLimitsConfig:
        return self._limits

    @property
    def initial_capital(self) -> Decimal:
        return self._initial_capital

    @property
    def peak_portfolio_value(self) -> Decimal:
        return self._peak_portfolio_value

    # --- Valuation ---

    async def get_portfolio_value(self) -> Decimal:
        """cash + sum(qty * current price); ratchets the peak."""
        total = self._ledger.cash
        for symbol, quantity in self._ledger.positions.items():
            price = await self._oracle.get_price(symbol)
            total += quantity * price

        if total > self._peak_portfolio_value:
            self._peak_portfolio_value = total
        return total

    # --- Individual checks ---

    async def check_drawdown(self) -> DrawdownCheck:
        current = await self.get_portfolio_value()
        peak = self._peak_portfolio_value
        if current >= peak:
            drawdown = ZERO
        else:
            drawdown = _ratio(peak - current, peak)

        return DrawdownCheck(
            allowed=drawdown <= self._limits.max_portfolio_drawdown,
            current_drawdown=drawdown,
            peak_value=peak,
            current_value=current,
        )

    async def check_position_size(
        self, symbol: Symbol, additional_quantity: Decimal, price: Decimal
    ) -> PositionSizeCheck:
        portfolio_value = await self.get_portfolio_value()
        prospective_qty = self._ledger.position_qty(symbol) + additional_quantity
        position_value = prospective_qty * price
        size = _ratio(position_value, portfolio_value)

        return PositionSizeCheck(
            allowed=size <= self._limits.max_position_size,
            current_size=size,
            position_value=position_value,
            portfolio_value=portfolio_value,
        )

    # --- Composed decision ---

    async def check_trade(
        self,
        action: Union[str, TradeAction],
        symbol: Symbol,
        quantity: Any,
        price: Any,
    ) -> RiskDecision:
        action = TradeAction.parse(action)
        symbol = require_symbol(symbol, component="risk")
        qty = require_positive(quantity, "quantity", component="risk")
        px = require_positive(price, "price", component="risk")

        if action is not TradeAction.BUY:
            return RiskDecision(allowed=True, reason=NON_BUY_REASON)

        # 1) Drawdown (refreshes the peak before anything else reads it)
        drawdown = await self.check_drawdown()
        if not drawdown.allowed:
            return self._deny(
                symbol,
                f"Portfolio drawdown ({fmt_pct(drawdown.current_drawdown)}) exceeds limit "
                f"({fmt_limit(self._limits.max_portfolio_drawdown)}%)",
            )

        # 2) Position size after the trade
        position = await self.check_position_size(symbol, qty, px)
        if position.portfolio_value <= ZERO:
            return self._deny(symbol, NON_POSITIVE_VALUE_REASON)
        if not position.allowed:
            return self._deny(
                symbol,
                f"Position size ({fmt_pct(position.current_size)}) exceeds limit "
                f"({fmt_limit(self._limits.max_position_size)}%)",
            )

        # 3) Risk per trade, against the same valuation the size check used
        risk_per_trade = _ratio(px * qty, position.portfolio_value)
        if not risk_per_trade < self._limits.max_risk_per_trade:
            return self._deny(
                symbol,
                f"Risk per trade ({fmt_pct(risk_per_trade)}) exceeds limit "
                f"({fmt_limit(self._limits.max_risk_per_trade)}%)",
            )

        return RiskDecision(
            allowed=True,
            reason=PASS_REASON,
            metrics=RiskMetricsSnapshot(
                risk_per_trade=fmt_pct(risk_per_trade),
                position_size=fmt_pct(position.current_size),
                drawdown=fmt_pct(drawdown.current_drawdown),
            ),
        )

    # --- Observability ---

    async def get_risk_metrics(self) -> dict[str, Any]:
        """Read-only report; never used for admission."""
        drawdown = await self.check_drawdown()
        portfolio_value = drawdown.current_value

        positions: dict[str, dict[str, str]] = {}
        for symbol, quantity in self._ledger.positions.items():
            price = await self._oracle.get_price(symbol)
            value = quantity * price
            positions[symbol] = {
                "quantity": str(quantity),
                "value": f"{value:.2f}",
                "percent_of_portfolio": fmt_pct(_ratio(value, portfolio_value)),
            }

        return {
            "portfolio_value": f"{portfolio_value:.2f}",
            "peak_value": f"{self._peak_portfolio_value:.2f}",
            "drawdown": fmt_pct(drawdown.current_drawdown),
            "drawdown_allowed": drawdown.allowed,
            "positions": positions,
            "limits": {
                "max_risk_per_trade": f"{fmt_limit(self._limits.max_risk_per_trade)}%",
                "max_drawdown": f"{fmt_limit(self._limits.max_portfolio_drawdown)}%",
                "max_position_size": f"{fmt_limit(self._limits.max_position_size)}%",
            },
        }

    def _deny(self, symbol: Symbol, reason: str) -> RiskDecision:
        logger.info("risk check denied %s: %s", symbol, reason)
        return RiskDecision(allowed=False, reason=reason)
