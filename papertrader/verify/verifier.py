"""
Strategy verification by threshold comparison.

Hypotheses checked against the aggregate statistics of a trade list:
    max_drawdown < rules.max_drawdown
    avg_risk     < rules.risk_per_trade
    win_rate     > rules.min_win_rate
All three must hold for a strategy to be reported SAFE. This is arithmetic on
past outcomes, not a proof system.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

import polars as pl

from papertrader.config.configs import VerifierRules

logger = logging.getLogger(__name__)

# Used when no trade carries its own risk fraction.
DEFAULT_AVG_RISK = 0.015


@dataclass(frozen=True)
class VerificationMetrics:
    win_rate: float
    max_drawdown: float
    avg_risk: float
    total_trades: int


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    metrics: VerificationMetrics
    proofs: dict[str, bool]
    recommendation: str  # SAFE | RISKY

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "recommendation": self.recommendation,
            "proofs": dict(self.proofs),
            "metrics": {
                "win_rate": self.metrics.win_rate,
                "max_drawdown": self.metrics.max_drawdown,
                "avg_risk": self.metrics.avg_risk,
                "total_trades": self.metrics.total_trades,
            },
        }


def compute_metrics(
    trades: Iterable[Mapping[str, Any]], capital: float = 100_000.0
) -> VerificationMetrics:
    """
    trades: mappings with `outcome` (P&L in cash) and optional `risk` (fraction).
    Drawdown is measured on the equity curve capital + cumulative outcome.
    """
    if capital <= 0:
        raise ValueError("capital must be > 0")
    rows = list(trades)
    if not rows:
        return VerificationMetrics(win_rate=0.0, max_drawdown=0.0, avg_risk=0.0, total_trades=0)

    df = pl.DataFrame(
        {
            "outcome": [float(t["outcome"]) for t in rows],
            "risk": [None if t.get("risk") is None else float(t["risk"]) for t in rows],
        },
        schema={"outcome": pl.Float64, "risk": pl.Float64},
    )

    win_rate = df.select((pl.col("outcome") > 0).mean()).item()

    cap = float(capital)
    curve = df.select(equity=pl.lit(cap) + pl.col("outcome").cum_sum()).with_columns(
        peak=pl.max_horizontal(pl.col("equity").cum_max(), pl.lit(cap))
    )
    max_drawdown = curve.select(((pl.col("peak") - pl.col("equity")) / pl.col("peak")).max()).item()

    risks = df.get_column("risk").drop_nulls()
    avg_risk = float(risks.mean()) if risks.len() > 0 else DEFAULT_AVG_RISK

    return VerificationMetrics(
        win_rate=float(win_rate),
        max_drawdown=max(0.0, float(max_drawdown)),
        avg_risk=avg_risk,
        total_trades=df.height,
    )


def evaluate(metrics: VerificationMetrics, rules: VerifierRules) -> VerificationResult:
    proofs = {
        "drawdown": metrics.max_drawdown < rules.max_drawdown,
        "risk": metrics.avg_risk < rules.risk_per_trade,
        "win_rate": metrics.win_rate > rules.min_win_rate,
    }
    valid = all(proofs.values())
    return VerificationResult(
        valid=valid,
        metrics=metrics,
        proofs=proofs,
        recommendation="SAFE" if valid else "RISKY",
    )


@dataclass
class StrategyVerifier:
    rules: VerifierRules = field(default_factory=VerifierRules)
    proofs: list[dict[str, Any]] = field(default_factory=list)

    def hypotheses(self) -> list[str]:
        return [
            f"drawdown < {self.rules.max_drawdown}",
            f"risk_per_trade < {self.rules.risk_per_trade}",
            f"win_rate > {self.rules.min_win_rate}",
        ]

    def verify(
        self, trades: Iterable[Mapping[str, Any]], capital: Optional[float] = None
    ) -> VerificationResult:
        base = float(capital) if capital is not None else float(self.rules.capital)
        metrics = compute_metrics(trades, capital=base)
        result = evaluate(metrics, self.rules)

        # audit trail of every verification run
        self.proofs.append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "hypotheses": self.hypotheses(),
                "proofs": dict(result.proofs),
                "metrics": result.to_dict()["metrics"],
            }
        )
        logger.info(
            "strategy verification: %s (trades=%d, win_rate=%.3f, max_dd=%.4f)",
            result.recommendation,
            metrics.total_trades,
            metrics.win_rate,
            metrics.max_drawdown,
        )
        return result
