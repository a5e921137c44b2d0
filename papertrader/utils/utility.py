import datetime
import uuid
from dataclasses import asdict, is_dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError

# --- Decimals ---

PCT_QUANTUM = Decimal("0.01")


def dec(x: Union[str, int, float, Decimal]) -> Decimal:
    """
    Safe conversion to Decimal:
    - Prefer passing strings (e.g., "150.23") for exact values.
    - Floats are stringified first to avoid binary float artifacts.
    """
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool):
        raise TypeError("bool is not a numeric amount")
    if isinstance(x, int):
        return Decimal(x)
    if isinstance(x, float):
        return Decimal(str(x))
    # assume string
    return Decimal(x)


def fmt_pct(fraction: Decimal) -> str:
    """
    0.009 -> '0.90%'; ties round half up (0.00125 -> '0.13%').
    Non-finite ratios render as 'Infinity%'.
    """
    if not fraction.is_finite():
        return f"{fraction}%"
    pct = fraction * 100
    with localcontext() as ctx:
        # room for every integer digit plus two decimals
        ctx.prec = max(ctx.prec, pct.adjusted() + 3)
        return f"{pct.quantize(PCT_QUANTUM, rounding=ROUND_HALF_UP):f}%"


def fmt_limit(fraction: Decimal) -> str:
    """Limit as a plain percentage number: 0.01 -> '1', 0.015 -> '1.5'."""
    return f"{(fraction * 100).normalize():f}"


# --- Sanitization Helper ---


def make_serializable(obj: Any) -> Any:
    """
    Recursively converts non-JSON-safe objects (Decimal, datetime, UUID, Enum, Dataclass)
    into standard Python primitives (str, dict, list).
    """
    # Fast path for primitives
    if isinstance(obj, (str, int, float, bool, type(None))):
        return obj

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, Mapping):
        return {str(k): make_serializable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [make_serializable(x) for x in obj]

    # Complex types
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, uuid.UUID):
        return str(obj)
    # Fallback for custom objects
    if hasattr(obj, "to_dict"):
        return make_serializable(obj.to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        return make_serializable(asdict(obj))
    return str(obj)


# --- Config layering ---


def deep_merge(a: Mapping[str, Any], b: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(a)
    for k, v in b.items():
        if k in out and isinstance(out[k], Mapping) and isinstance(v, Mapping):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def insert_path(tree: Dict[str, Any], dotted_path: str, value: Any) -> None:
    """Populate ``tree`` with ``value`` located at ``dotted_path``."""

    segments = [segment.strip() for segment in dotted_path.split(".") if segment.strip()]
    if not segments:
        raise ValueError("Override keys must contain at least one non-empty segment")

    cursor: Dict[str, Any] = tree
    for segment in segments[:-1]:
        existing = cursor.get(segment)
        if existing is None:
            next_node: Dict[str, Any] = {}
            cursor[segment] = next_node
            cursor = next_node
        elif isinstance(existing, dict):
            cursor = existing
        else:
            raise ValueError(
                (
                    f"Cannot override nested path '{dotted_path}': "
                    f"segment '{segment}' is already a value"
                )
            )

    leaf = segments[-1]
    existing_leaf = cursor.get(leaf)
    if isinstance(existing_leaf, dict):
        raise ValueError(
            (f"Cannot assign value to '{dotted_path}': existing node at '{leaf}' is a mapping")
        )
    cursor[leaf] = value


def validation_error_parser(error: ValidationError) -> list[dict[str, str]]:
    parsed_error = [
        {
            "component": "config",
            "path": ".".join(map(str, err["loc"])),
            "message": err["msg"],
            "error_type": err["type"],
        }
        for err in error.errors()
    ]
    return parsed_error
