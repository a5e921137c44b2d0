"""
Exceptions for the paper-trading engine.

Exception hierarchy:
- PaperTraderError (base)
  - InvalidOrderError: malformed order request (quantity, price, symbol, action)
  - DataUnavailableError: the price oracle has no quote for a symbol
  - ConfigurationError: invalid configuration file or override
  - StrategyError: a strategy cannot produce a signal

Rejections by the risk limiter or the funds check are not exceptions; they are
returned as RiskDecision / ExecutionResult values.
"""

from __future__ import annotations

from typing import Any, Optional


class PaperTraderError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class InvalidOrderError(PaperTraderError):
    """Raised for order requests that can never be executed as given."""


class DataUnavailableError(PaperTraderError):
    """Raised when no price is available for a symbol."""

    def __init__(
        self,
        symbol: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.symbol = symbol
        details = details or {}
        details["symbol"] = symbol
        super().__init__(f"No price available for {symbol!r}", component=component, details=details)


class ConfigurationError(PaperTraderError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, component=component or "config", details=details)


class StrategyError(PaperTraderError):
    """Recoverable strategy error (the caller may skip the symbol and continue)."""
