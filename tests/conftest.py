from datetime import datetime, timedelta, timezone

import pytest

from papertrader.config.configs import SessionConfig
from papertrader.core.session import TradingSession
from papertrader.data.price_simulator import StaticPriceOracle


class StepClock:
    """Deterministic clock: every now() call advances by one second."""

    def __init__(self, start: datetime = datetime(2025, 1, 2, tzinfo=timezone.utc)) -> None:
        self._t = start

    def now(self) -> datetime:
        current = self._t
        self._t = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def oracle() -> StaticPriceOracle:
    return StaticPriceOracle({"AAPL": "150", "MSFT": "350", "TSLA": "250"})


@pytest.fixture
def session(oracle: StaticPriceOracle, clock: StepClock) -> TradingSession:
    """Fresh 100000-cash session with default limits (1% / 10% / 20%)."""
    return TradingSession(SessionConfig(), oracle=oracle, clock=clock)
