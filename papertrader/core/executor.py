"""
Order execution against the portfolio ledger.

Working (buy):
    1. validate the request (raises InvalidOrderError)
    2. read the price once; the same price feeds the risk check and the fill
    3. risk check -> rejected value, ledger untouched
    4. funds check (after the risk check) -> rejected value, ledger untouched
    5. debit, add position, append history inside ledger.atomic()

Sells mirror the flow: the risk limiter always admits them, the position check
replaces the funds check, and cash is credited.

One asyncio.Lock per executor serializes executions, so two in-flight orders
never observe or mutate the ledger in between each other's steps. Oracle
failures propagate; the read happens before any mutation.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional

from papertrader.core.ledger import PortfolioLedger
from papertrader.ports.clock import Clock, SystemClock
from papertrader.ports.price_oracle import PriceOracle
from papertrader.ports.telemetry import Telemetry
from papertrader.risk.risk_limiter import RiskLimiter
from papertrader.types.aliases import Symbol
from papertrader.types.types import (
    ExecutionResult,
    RejectionKind,
    TradeAction,
    TradeRecord,
)
from papertrader.utils.order_utility import require_positive, require_symbol

logger = logging.getLogger(__name__)

INSUFFICIENT_FUNDS_REASON = "Insufficient funds"
INSUFFICIENT_POSITION_REASON = "Insufficient position"


class OrderExecutor:
    """The only component that mutates the ledger in response to a trade request."""

    def __init__(
        self,
        ledger: PortfolioLedger,
        oracle: PriceOracle,
        risk_limiter: RiskLimiter,
        clock: Optional[Clock] = None,
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._risk = risk_limiter
        self._clock = clock or SystemClock()
        self._telemetry = telemetry
        self._lock = asyncio.Lock()

        # Obs
        self._orders_received_total: int = 0
        self._orders_filled_total: int = 0
        self._rejection_reasons: dict[str, int] = {}

    # --- Core API ---

    async def execute(self, action: Any, symbol: Symbol, quantity: Any) -> ExecutionResult:
        action = TradeAction.parse(action)
        if action is TradeAction.BUY:
            return await self.execute_buy(symbol, quantity)
        return await self.execute_sell(symbol, quantity)

    async def execute_buy(self, symbol: Symbol, quantity: Any) -> ExecutionResult:
        symbol = require_symbol(symbol, component="executor")
        qty = require_positive(quantity, "quantity", component="executor")

        async with self._lock:
            self._orders_received_total += 1
            price = await self._oracle.get_price(symbol)
            cost = price * qty

            decision = await self._risk.check_trade(TradeAction.BUY, symbol, qty, price)
            if not decision.allowed:
                return self._rejected(
                    TradeAction.BUY, symbol, qty, price, RejectionKind.RISK, decision.reason
                )

            if self._ledger.cash < cost:
                return self._rejected(
                    TradeAction.BUY,
                    symbol,
                    qty,
                    price,
                    RejectionKind.INSUFFICIENT_FUNDS,
                    INSUFFICIENT_FUNDS_REASON,
                )

            record = TradeRecord(
                action=TradeAction.BUY,
                symbol=symbol,
                quantity=qty,
                price=price,
                executed_at=self._clock.now(),
            )
            with self._ledger.atomic() as ledger:
                ledger.debit(cost)
                ledger.add_position(symbol, qty)
                ledger.append_history(record)

            return self._filled(record, decision.metrics)

    async def execute_sell(self, symbol: Symbol, quantity: Any) -> ExecutionResult:
        symbol = require_symbol(symbol, component="executor")
        qty = require_positive(quantity, "quantity", component="executor")

        async with self._lock:
            self._orders_received_total += 1
            price = await self._oracle.get_price(symbol)

            decision = await self._risk.check_trade(TradeAction.SELL, symbol, qty, price)
            if not decision.allowed:
                return self._rejected(
                    TradeAction.SELL, symbol, qty, price, RejectionKind.RISK, decision.reason
                )

            if self._ledger.position_qty(symbol) < qty:
                return self._rejected(
                    TradeAction.SELL,
                    symbol,
                    qty,
                    price,
                    RejectionKind.INSUFFICIENT_POSITION,
                    INSUFFICIENT_POSITION_REASON,
                )

            record = TradeRecord(
                action=TradeAction.SELL,
                symbol=symbol,
                quantity=qty,
                price=price,
                executed_at=self._clock.now(),
            )
            with self._ledger.atomic() as ledger:
                ledger.credit(price * qty)
                ledger.reduce_position(symbol, qty)
                ledger.append_history(record)

            return self._filled(record, decision.metrics)

    # --- Expose metrics ---

    def get_stats(self) -> dict[str, Any]:
        received = self._orders_received_total
        rejected = received - self._orders_filled_total
        return {
            "orders_received": received,
            "orders_filled": self._orders_filled_total,
            "orders_rejected": rejected,
            "rejection_rate": rejected / received if received else 0.0,
            "rejection_reasons": dict(self._rejection_reasons),
        }

    # --- Helpers ---

    def _filled(self, record: TradeRecord, metrics: Any) -> ExecutionResult:
        self._orders_filled_total += 1
        logger.info(
            "%s %s %s @ %s filled (cash=%s)",
            record.action.value,
            record.quantity,
            record.symbol,
            record.price,
            self._ledger.cash,
        )
        self._emit(
            "order_executed",
            action=record.action,
            symbol=record.symbol,
            quantity=record.quantity,
            price=record.price,
            cash=self._ledger.cash,
        )
        return ExecutionResult(
            success=True,
            action=record.action,
            symbol=record.symbol,
            price=record.price,
            quantity=record.quantity,
            risk_metrics=metrics,
        )

    def _rejected(
        self,
        action: TradeAction,
        symbol: Symbol,
        qty: Decimal,
        price: Decimal,
        kind: RejectionKind,
        reason: str,
    ) -> ExecutionResult:
        self._rejection_reasons[kind.value] = self._rejection_reasons.get(kind.value, 0) + 1
        logger.info("%s %s %s rejected (%s): %s", action.value, qty, symbol, kind.value, reason)
        self._emit(
            "order_rejected",
            action=action,
            symbol=symbol,
            quantity=qty,
            price=price,
            rejection=kind,
            reason=reason,
        )
        return ExecutionResult(
            success=False,
            action=action,
            symbol=symbol,
            reason=reason,
            rejection=kind,
        )

    def _emit(self, event: str, **fields: Any) -> None:
        if self._telemetry is not None:
            self._telemetry.log(event, **fields)
