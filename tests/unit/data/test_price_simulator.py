import asyncio
import logging
from decimal import Decimal

import pytest

from papertrader.config.configs import OracleConfig
from papertrader.data.price_simulator import PriceStream, SimulatedPriceOracle, StaticPriceOracle
from papertrader.errors.errors import DataUnavailableError
from papertrader.types.types import PriceUpdate


# --- SimulatedPriceOracle ---


@pytest.mark.asyncio
async def test_same_seed_same_quotes() -> None:
    a = SimulatedPriceOracle(seed=7)
    b = SimulatedPriceOracle(seed=7)

    quotes_a = [await a.get_price("AAPL") for _ in range(5)]
    quotes_b = [await b.get_price("AAPL") for _ in range(5)]

    assert quotes_a == quotes_b
    assert len(set(quotes_a)) > 1


@pytest.mark.asyncio
async def test_seed_from_config_is_used() -> None:
    a = SimulatedPriceOracle(OracleConfig(seed=11))
    b = SimulatedPriceOracle(seed=11)
    assert await a.get_price("MSFT") == await b.get_price("MSFT")


@pytest.mark.asyncio
async def test_quotes_stay_within_volatility_band() -> None:
    oracle = SimulatedPriceOracle(seed=1)
    band = Decimal("150") * Decimal("0.02")

    for _ in range(200):
        price = await oracle.get_price("AAPL")
        assert abs(price - Decimal("150")) <= band
        assert price == price.quantize(Decimal("0.0001"))


@pytest.mark.asyncio
async def test_zero_volatility_returns_base_price() -> None:
    oracle = SimulatedPriceOracle(OracleConfig(volatility=0.0), seed=3)
    assert await oracle.get_price("GOOGL") == Decimal("2800")


@pytest.mark.asyncio
async def test_unknown_symbol_quotes_around_fallback() -> None:
    oracle = SimulatedPriceOracle(seed=5)
    price = await oracle.get_price("ZZZZ")
    assert Decimal("98") <= price <= Decimal("102")


@pytest.mark.asyncio
async def test_unknown_symbol_without_fallback_raises() -> None:
    oracle = SimulatedPriceOracle(OracleConfig(fallback_price=None), seed=5)
    with pytest.raises(DataUnavailableError) as exc_info:
        await oracle.get_price("ZZZZ")
    assert exc_info.value.symbol == "ZZZZ"


@pytest.mark.asyncio
async def test_history_is_daily_and_oldest_first() -> None:
    oracle = SimulatedPriceOracle(seed=9)

    bars = await oracle.get_history("TSLA", days=30)

    assert len(bars) == 30
    dates = [b.date for b in bars]
    assert dates == sorted(dates)
    assert all((later - earlier).days == 1 for earlier, later in zip(dates, dates[1:]))
    for bar in bars:
        assert bar.symbol == "TSLA"
        assert bar.low < bar.close < bar.high
        assert 0 <= bar.volume < 1_000_000


@pytest.mark.asyncio
async def test_history_with_no_days_is_empty() -> None:
    assert await SimulatedPriceOracle(seed=1).get_history("AAPL", days=0) == []


def test_symbols_lists_configured_bases() -> None:
    assert SimulatedPriceOracle().symbols == ["AAPL", "GOOGL", "TSLA", "MSFT"]


# --- StaticPriceOracle ---


@pytest.mark.asyncio
async def test_static_oracle_counts_reads_and_moves_on_demand() -> None:
    oracle = StaticPriceOracle({"AAPL": 150})
    assert await oracle.get_price("AAPL") == Decimal("150")

    oracle.set_price("AAPL", "151.25")
    assert await oracle.get_price("AAPL") == Decimal("151.25")
    assert oracle.reads == 2

    with pytest.raises(DataUnavailableError):
        await oracle.get_price("MSFT")
    assert oracle.reads == 3
    with pytest.raises(AttributeError):
        oracle.reads = 0  # type: ignore[misc]


# --- PriceStream ---


def test_stream_rejects_bad_interval() -> None:
    with pytest.raises(ValueError):
        PriceStream(StaticPriceOracle({}), interval_s=0)


def test_subscribe_validates_arguments() -> None:
    stream = PriceStream(StaticPriceOracle({}))
    with pytest.raises(TypeError):
        stream.subscribe(123, lambda u: None)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        stream.subscribe("", lambda u: None)
    with pytest.raises(TypeError):
        stream.subscribe("AAPL", "not callable")  # type: ignore[arg-type]


def test_unsubscribe_handle_removes_only_that_callback() -> None:
    stream = PriceStream(StaticPriceOracle({}))
    first = stream.subscribe("AAPL", lambda u: None)
    stream.subscribe("AAPL", lambda u: None)
    stream.subscribe("MSFT", lambda u: None)

    first()
    assert sorted(stream.subscribed_symbols()) == ["AAPL", "MSFT"]

    stream.unsubscribe("AAPL", lambda u: None)  # unknown callback is a no-op
    stream.unsubscribe("NOPE", lambda u: None)
    assert sorted(stream.subscribed_symbols()) == ["AAPL", "MSFT"]


@pytest.mark.asyncio
async def test_tick_delivers_updates_to_subscribers() -> None:
    stream = PriceStream(StaticPriceOracle({"AAPL": "150", "MSFT": "350"}))
    received: list[PriceUpdate] = []
    stream.subscribe("AAPL", received.append)
    stream.subscribe("MSFT", received.append)

    await stream.tick()

    assert {(u.symbol, u.price) for u in received} == {
        ("AAPL", Decimal("150")),
        ("MSFT", Decimal("350")),
    }
    assert all(u.ts.tzinfo is not None for u in received)


@pytest.mark.asyncio
async def test_failures_are_isolated(caplog: pytest.LogCaptureFixture) -> None:
    stream = PriceStream(StaticPriceOracle({"AAPL": "150"}))
    received: list[PriceUpdate] = []

    def broken(update: PriceUpdate) -> None:
        raise RuntimeError("subscriber failed")

    stream.subscribe("NOPE", received.append)  # oracle has no quote
    stream.subscribe("AAPL", broken)
    stream.subscribe("AAPL", received.append)

    with caplog.at_level(logging.ERROR, logger="papertrader.data.price_simulator"):
        await stream.tick()

    assert [u.symbol for u in received] == ["AAPL"]
    messages = [r.getMessage() for r in caplog.records]
    assert any("NOPE" in m for m in messages)
    assert any("subscriber callback" in m for m in messages)


@pytest.mark.asyncio
async def test_start_and_stop_background_task() -> None:
    stream = PriceStream(StaticPriceOracle({"AAPL": "150"}), interval_s=0.01)
    received: list[PriceUpdate] = []
    stream.subscribe("AAPL", received.append)

    stream.start()
    stream.start()  # idempotent
    assert stream.is_running
    await asyncio.sleep(0.1)
    await stream.stop()

    assert not stream.is_running
    assert received
    count = len(received)
    await asyncio.sleep(0.05)
    assert len(received) == count

    await stream.stop()  # stopping twice is harmless
