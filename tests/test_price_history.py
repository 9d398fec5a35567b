# tests/test_price_history.py
from datetime import timedelta

import pytest

from coin_simulator.price_history import PriceHistoryManager


@pytest.fixture
def history(clock):
    return PriceHistoryManager(clock)


def test_empty_history_yields_flat_candles(history):
    candles = history.get_price_history("RCOIN", "1m", 5)

    assert len(candles) == 5
    for candle in candles:
        assert (candle.open, candle.high, candle.low, candle.close) == (1.0, 1.0, 1.0, 1.0)
        assert candle.volume == 0.0


@pytest.mark.parametrize("limit,expected", [(0, 0), (7, 7), (100, 100), (500, 100)])
def test_candle_count_is_capped(history, clock, limit, expected):
    history.record_price("RCOIN", 1.5, timestamp=clock.now())
    assert len(history.get_price_history("RCOIN", "5m", limit)) == expected


def test_candles_are_oldest_first(history, clock):
    for i in range(300):
        history.record_price("RCOIN", 1.0 + i * 0.001, 1.0, timestamp=clock.now() + timedelta(seconds=i))

    candles = history.get_price_history("RCOIN", "1m", 10)
    timestamps = [c.timestamp for c in candles]
    assert timestamps == sorted(timestamps)
    assert all(b - a == timedelta(minutes=1) for a, b in zip(timestamps, timestamps[1:]))


def test_bucket_aggregates_ohlcv(history, clock):
    t = clock.now()
    history.record_price("RCOIN", 1.0, 0.5, timestamp=t - timedelta(seconds=90))
    history.record_price("RCOIN", 3.0, 1.0, timestamp=t - timedelta(seconds=80))
    history.record_price("RCOIN", 2.0, 1.5, timestamp=t - timedelta(seconds=70))
    history.record_price("RCOIN", 5.0, 2.0, timestamp=t)

    older, newest = history.get_price_history("RCOIN", "1m", 2)

    assert older.timestamp == t - timedelta(minutes=2)
    assert (older.open, older.high, older.low, older.close) == (1.0, 3.0, 1.0, 2.0)
    assert older.volume == pytest.approx(3.0)
    # The newest point sits on the bucket end, so its bucket is empty and flat
    assert (newest.open, newest.close, newest.volume) == (5.0, 5.0, 0.0)


def test_gap_before_history_uses_oldest_price(history, clock):
    t = clock.now()
    history.record_price("RCOIN", 2.0, timestamp=t - timedelta(seconds=10))
    history.record_price("RCOIN", 4.0, timestamp=t)

    oldest, middle, newest = history.get_price_history("RCOIN", "1m", 3)
    assert oldest.close == 2.0
    assert middle.close == 2.0
    assert newest.open == 2.0


def test_unknown_timeframe_falls_back_to_one_minute(history):
    candles = history.get_price_history("RCOIN", "2m", 3)

    assert [c.timeframe for c in candles] == ["1m"] * 3
    assert candles == history.get_price_history("RCOIN", "1m", 3)


def test_ring_buffer_evicts_oldest(clock):
    history = PriceHistoryManager(clock, max_points=3)
    for price in [1.0, 2.0, 3.0, 4.0, 5.0]:
        history.record_price("RCOIN", price)

    assert [p.price for p in history.get_points("RCOIN")] == [3.0, 4.0, 5.0]
    assert [p.price for p in history.get_recent_points("RCOIN", 2)] == [4.0, 5.0]
    assert history.point_count("RCOIN") == 3


def test_latest_timestamp_and_clear(history, clock):
    assert history.latest_timestamp("RCOIN") is None
    history.record_price("RCOIN", 1.0)
    assert history.latest_timestamp("RCOIN") == clock.now()

    history.clear("RCOIN")
    assert history.point_count("RCOIN") == 0
