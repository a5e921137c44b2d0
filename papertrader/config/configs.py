from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

"""
Here, we collect all the different configs
"""

DEFAULT_BASE_PRICES: dict[str, Decimal] = {
    "AAPL": Decimal("150"),
    "GOOGL": Decimal("2800"),
    "TSLA": Decimal("250"),
    "MSFT": Decimal("350"),
}


# --- Ledger ---


class LedgerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    starting_cash: Decimal = Field(default=Decimal("100000"), ge=0, description="opening cash")
    base_ccy: str = Field(default="USD", min_length=1)


# --- Risk ---


class RiskLimitsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    max_risk_per_trade: Decimal = Field(
        default=Decimal("0.01"), gt=0, le=1, description="max notional / portfolio value"
    )
    max_portfolio_drawdown: Decimal = Field(
        default=Decimal("0.10"), gt=0, le=1, description="max decline from peak value"
    )
    max_position_size: Decimal = Field(
        default=Decimal("0.20"), gt=0, le=1, description="max single-symbol share of value"
    )


# --- Market data ---


class OracleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    base_prices: dict[str, Decimal] = Field(default_factory=lambda: dict(DEFAULT_BASE_PRICES))
    volatility: float = Field(default=0.02, ge=0, lt=1)
    # None: unknown symbols raise DataUnavailableError instead of quoting around this base
    fallback_price: Optional[Decimal] = Field(default=Decimal("100"), gt=0)
    seed: Optional[int] = Field(default=None, description="None draws a fresh seed")
    stream_interval_s: float = Field(default=1.0, gt=0)


# --- Verifier ---


class VerifierRules(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    max_drawdown: float = Field(default=0.25, gt=0, le=1)
    risk_per_trade: float = Field(default=0.02, gt=0, le=1)
    min_win_rate: float = Field(default=0.4, ge=0, le=1)
    capital: Decimal = Field(default=Decimal("100000"), gt=0)


# --- Session aggregation ---


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    session_name: str = "paper"
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    risk: RiskLimitsConfig = Field(default_factory=RiskLimitsConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    verifier: VerifierRules = Field(default_factory=VerifierRules)

    def stable_hash(self) -> str:
        """Deterministic fingerprint of the resolved configuration."""
        payload = {"v": 1, **self.model_dump(mode="json")}
        serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()
