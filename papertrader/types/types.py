from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from papertrader.errors.errors import InvalidOrderError
from papertrader.types.aliases import Symbol

ZERO = Decimal("0")
INF = Decimal("Infinity")

# -------- Enums --------


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def parse(cls, value: Union[str, "TradeAction"]) -> "TradeAction":
        """Accept an enum member or a case-insensitive verb ('buy', 'SELL')."""
        if isinstance(value, TradeAction):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidOrderError(
            f"Unknown trade action: {value!r}",
            component="types",
            details={"action": value},
        )


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class RejectionKind(str, Enum):
    RISK = "risk"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_POSITION = "insufficient_position"


# -------- Ledger --------


@dataclass(frozen=True, slots=True)
class TradeRecord:
    action: TradeAction
    symbol: Symbol
    quantity: Decimal
    price: Decimal
    executed_at: datetime  # UTC, tz-aware

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "symbol": self.symbol,
            "quantity": str(self.quantity),
            "price": str(self.price),
            "executed_at": self.executed_at.isoformat(),
        }


# -------- Risk --------


@dataclass(frozen=True, slots=True)
class DrawdownCheck:
    allowed: bool
    current_drawdown: Decimal  # fraction of peak, not percent
    peak_value: Decimal
    current_value: Decimal


@dataclass(frozen=True, slots=True)
class PositionSizeCheck:
    allowed: bool
    current_size: Decimal  # prospective fraction of portfolio value
    position_value: Decimal
    portfolio_value: Decimal


@dataclass(frozen=True, slots=True)
class RiskMetricsSnapshot:
    """Percent strings captured when a trade passes every check, e.g. '0.90%'."""

    risk_per_trade: str
    position_size: str
    drawdown: str

    def to_dict(self) -> dict[str, str]:
        return {
            "risk_per_trade": self.risk_per_trade,
            "position_size": self.position_size,
            "drawdown": self.drawdown,
        }


@dataclass(frozen=True, slots=True)
class RiskDecision:
    allowed: bool
    reason: str
    metrics: Optional[RiskMetricsSnapshot] = None


# -------- Execution --------


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    success: bool
    action: TradeAction
    symbol: Symbol
    price: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    risk_metrics: Optional[RiskMetricsSnapshot] = None
    reason: Optional[str] = None
    rejection: Optional[RejectionKind] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "action": self.action.value,
            "symbol": self.symbol,
        }
        if self.success:
            out["price"] = str(self.price)
            out["quantity"] = str(self.quantity)
            out["risk_metrics"] = self.risk_metrics.to_dict() if self.risk_metrics else None
        else:
            out["reason"] = self.reason
            out["rejection"] = self.rejection.value if self.rejection else None
        return out


# -------- Market data --------


@dataclass(frozen=True, slots=True)
class Bar:
    symbol: Symbol
    date: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    symbol: Symbol
    price: Decimal
    ts: datetime


# -------- Strategy --------


@dataclass(frozen=True)
class StrategyInfo:
    name: str  # stable identifier
    version: str = "0.1.0"
    description: str = ""


@dataclass(frozen=True)
class Signal:
    symbol: Symbol
    action: SignalAction
    confidence: float
    features: dict[str, float] = field(default_factory=dict)
