"""
Unit tests for RiskLimiter (drawdown, position size, risk per trade, composition).
"""

from decimal import Decimal

import pytest

from papertrader.config.configs import RiskLimitsConfig
from papertrader.core.ledger import PortfolioLedger
from papertrader.data.price_simulator import StaticPriceOracle
from papertrader.errors.errors import InvalidOrderError
from papertrader.risk.risk_limiter import (
    NON_BUY_REASON,
    NON_POSITIVE_VALUE_REASON,
    PASS_REASON,
    RiskLimiter,
)
from papertrader.types.types import TradeAction


def _limiter(
    cash: str = "100000",
    prices: dict | None = None,
    limits: RiskLimitsConfig | None = None,
) -> tuple[RiskLimiter, PortfolioLedger, StaticPriceOracle]:
    ledger = PortfolioLedger(cash)
    oracle = StaticPriceOracle(prices or {"AAPL": "150"})
    return RiskLimiter(ledger, oracle, limits), ledger, oracle


class TestPortfolioValue:
    """Valuation and the peak high-water mark."""

    @pytest.mark.asyncio
    async def test_value_is_cash_plus_marked_positions(self) -> None:
        limiter, ledger, _ = _limiter(prices={"AAPL": "150", "MSFT": "350"})
        ledger.debit(2000)
        ledger.add_position("AAPL", 6)
        ledger.add_position("MSFT", 2)

        assert await limiter.get_portfolio_value() == Decimal("98000") + 900 + 700

    def test_peak_and_initial_capital_seeded_from_cash(self) -> None:
        limiter, _, _ = _limiter(cash="25000")
        assert limiter.peak_portfolio_value == Decimal("25000")
        assert limiter.initial_capital == Decimal("25000")

    @pytest.mark.asyncio
    async def test_peak_is_monotonic_under_price_swings(self) -> None:
        limiter, ledger, oracle = _limiter()
        ledger.debit(15000)
        ledger.add_position("AAPL", 100)

        peaks = []
        for px in ["150", "200", "120", "250", "100", "249"]:
            oracle.set_price("AAPL", px)
            await limiter.get_portfolio_value()
            peaks.append(limiter.peak_portfolio_value)

        assert peaks == sorted(peaks)
        assert limiter.peak_portfolio_value == Decimal("85000") + 100 * 250
        assert limiter.initial_capital == Decimal("100000")


class TestDrawdown:
    """Inclusive drawdown limit."""

    @pytest.mark.asyncio
    async def test_cash_loss_beyond_limit_is_denied(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(15000)

        check = await limiter.check_drawdown()

        assert check.allowed is False
        assert check.current_drawdown == Decimal("0.15")
        assert check.peak_value == Decimal("100000")
        assert check.current_value == Decimal("85000")

    @pytest.mark.asyncio
    async def test_drawdown_exactly_at_limit_is_allowed(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(10000)

        check = await limiter.check_drawdown()
        assert check.current_drawdown == Decimal("0.1")
        assert check.allowed is True

    @pytest.mark.asyncio
    async def test_drawdown_just_past_limit_is_denied(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(Decimal("10000.01"))

        assert (await limiter.check_drawdown()).allowed is False

    @pytest.mark.asyncio
    async def test_peak_updates_before_drawdown_is_measured(self) -> None:
        limiter, ledger, oracle = _limiter()
        ledger.debit(15000)
        ledger.add_position("AAPL", 100)
        oracle.set_price("AAPL", "200")

        up = await limiter.check_drawdown()
        assert up.current_drawdown == Decimal("0")
        assert up.peak_value == Decimal("105000")

        oracle.set_price("AAPL", "150")
        down = await limiter.check_drawdown()
        assert down.current_drawdown == Decimal("5000") / Decimal("105000")


class TestPositionSize:
    """Inclusive position-size limit on the prospective holding."""

    @pytest.mark.asyncio
    async def test_existing_holding_is_aggregated(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(15000)
        ledger.add_position("AAPL", 100)  # 15000 of 100000

        over = await limiter.check_position_size("AAPL", Decimal("34"), Decimal("150"))
        assert over.position_value == Decimal("20100")
        assert over.portfolio_value == Decimal("100000")
        assert over.current_size == Decimal("0.201")
        assert over.allowed is False

        under = await limiter.check_position_size("AAPL", Decimal("33"), Decimal("150"))
        assert under.allowed is True

    @pytest.mark.asyncio
    async def test_exactly_at_limit_is_allowed(self) -> None:
        limits = RiskLimitsConfig(max_risk_per_trade=Decimal("0.5"))
        limiter, _, _ = _limiter(prices={"XYZ": "100"}, limits=limits)

        at_limit = await limiter.check_trade("buy", "XYZ", 200, 100)
        assert at_limit.allowed is True

        past_limit = await limiter.check_trade("buy", "XYZ", 201, 100)
        assert past_limit.allowed is False
        assert past_limit.reason == "Position size (20.10%) exceeds limit (20%)"

    @pytest.mark.asyncio
    async def test_zero_portfolio_value_is_not_allowed(self) -> None:
        limiter, _, _ = _limiter(cash="0")

        check = await limiter.check_position_size("AAPL", Decimal("1"), Decimal("150"))
        assert check.allowed is False
        assert not check.current_size.is_finite()


class TestCheckTrade:
    """Composed admission decision."""

    @pytest.mark.asyncio
    async def test_small_buy_passes_with_metrics(self) -> None:
        limiter, _, _ = _limiter()

        decision = await limiter.check_trade(TradeAction.BUY, "AAPL", 6, 150)

        assert decision.allowed is True
        assert decision.reason == PASS_REASON
        assert decision.metrics is not None
        assert decision.metrics.risk_per_trade == "0.90%"
        assert decision.metrics.position_size == "0.90%"
        assert decision.metrics.drawdown == "0.00%"

    @pytest.mark.asyncio
    async def test_large_buy_denied_by_risk_per_trade(self) -> None:
        limiter, _, _ = _limiter()

        decision = await limiter.check_trade(TradeAction.BUY, "AAPL", 100, 150)

        assert decision.allowed is False
        assert "15.00%" in decision.reason
        assert "exceeds limit (1%)" in decision.reason
        assert decision.reason.startswith("Risk per trade")
        assert decision.metrics is None

    @pytest.mark.asyncio
    async def test_risk_exactly_at_limit_is_denied(self) -> None:
        limiter, _, _ = _limiter(prices={"XYZ": "100"})

        at_limit = await limiter.check_trade("buy", "XYZ", 10, 100)  # 1000 / 100000
        assert at_limit.allowed is False
        assert at_limit.reason == "Risk per trade (1.00%) exceeds limit (1%)"

        below = await limiter.check_trade("buy", "XYZ", 9, 100)
        assert below.allowed is True

        just_below = await limiter.check_trade("buy", "XYZ", 10, "99.99")
        assert just_below.allowed is True

    @pytest.mark.asyncio
    async def test_drawdown_is_reported_before_other_violations(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(20000)

        decision = await limiter.check_trade("buy", "AAPL", 1000, 150)

        assert decision.allowed is False
        assert decision.reason == "Portfolio drawdown (20.00%) exceeds limit (10%)"

    @pytest.mark.asyncio
    async def test_position_size_is_reported_before_risk_per_trade(self) -> None:
        limiter, _, _ = _limiter()

        decision = await limiter.check_trade("buy", "AAPL", 1000, 150)

        assert decision.allowed is False
        assert decision.reason.startswith("Position size (150.00%)")

    @pytest.mark.asyncio
    async def test_zero_portfolio_value_rejects_instead_of_raising(self) -> None:
        limiter, _, _ = _limiter(cash="0")

        decision = await limiter.check_trade("buy", "AAPL", 1, 150)

        assert decision.allowed is False
        assert decision.reason == NON_POSITIVE_VALUE_REASON

    @pytest.mark.asyncio
    async def test_sell_is_never_limited(self) -> None:
        limiter, ledger, oracle = _limiter()
        ledger.debit(50000)  # 50% drawdown

        decision = await limiter.check_trade("SELL", "AAPL", 10_000, 150)

        assert decision.allowed is True
        assert decision.reason == NON_BUY_REASON
        assert oracle.reads == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["hold", "", "short", None])
    async def test_unknown_action_raises(self, action) -> None:
        limiter, _, _ = _limiter()
        with pytest.raises(InvalidOrderError):
            await limiter.check_trade(action, "AAPL", 1, 150)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("qty", [0, -1, "NaN", "Infinity", "abc"])
    async def test_invalid_quantity_raises(self, qty) -> None:
        limiter, _, _ = _limiter()
        with pytest.raises(InvalidOrderError):
            await limiter.check_trade("buy", "AAPL", qty, 150)

    @pytest.mark.asyncio
    async def test_invalid_price_raises(self) -> None:
        limiter, _, _ = _limiter()
        with pytest.raises(InvalidOrderError):
            await limiter.check_trade("buy", "AAPL", 1, 0)


class TestRiskMetrics:
    @pytest.mark.asyncio
    async def test_report_shape(self) -> None:
        limiter, ledger, _ = _limiter()
        ledger.debit(900)
        ledger.add_position("AAPL", 6)

        report = await limiter.get_risk_metrics()

        assert report["portfolio_value"] == "100000.00"
        assert report["peak_value"] == "100000.00"
        assert report["drawdown"] == "0.00%"
        assert report["drawdown_allowed"] is True
        assert report["positions"] == {
            "AAPL": {"quantity": "6", "value": "900.00", "percent_of_portfolio": "0.90%"}
        }
        assert report["limits"] == {
            "max_risk_per_trade": "1%",
            "max_drawdown": "10%",
            "max_position_size": "20%",
        }

    @pytest.mark.asyncio
    async def test_fractional_limits_render_plainly(self) -> None:
        limits = RiskLimitsConfig(max_risk_per_trade=Decimal("0.015"))
        limiter, _, _ = _limiter(limits=limits)

        report = await limiter.get_risk_metrics()
        assert report["limits"]["max_risk_per_trade"] == "1.5%"
