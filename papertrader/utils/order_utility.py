from decimal import Decimal, InvalidOperation
from typing import Any

from papertrader.errors.errors import InvalidOrderError
from papertrader.types.types import ZERO
from papertrader.utils.utility import dec

# Usable magnitude for order amounts: notionals and ratios stay exact within the
# default 28-digit context.
MIN_AMOUNT = Decimal("1e-12")
MAX_AMOUNT = Decimal("1e15")


def require_positive(value: Any, field: str, *, component: str) -> Decimal:
    """Convert to Decimal and reject anything that is not a finite number > 0
    within [MIN_AMOUNT, MAX_AMOUNT]."""
    try:
        amount = dec(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidOrderError(
            f"{field} must be a number (got {value!r})",
            component=component,
            details={field: value},
        ) from exc
    if not amount.is_finite() or amount <= ZERO:
        raise InvalidOrderError(
            f"{field} must be a finite number > 0 (got {value!r})",
            component=component,
            details={field: str(amount)},
        )
    if not MIN_AMOUNT <= amount <= MAX_AMOUNT:
        raise InvalidOrderError(
            f"{field} is out of range [{MIN_AMOUNT}, {MAX_AMOUNT}] (got {value!r})",
            component=component,
            details={field: str(amount)},
        )
    return amount


def require_symbol(symbol: Any, *, component: str) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidOrderError(
            f"symbol must be a non-empty string (got {symbol!r})",
            component=component,
        )
    return symbol
