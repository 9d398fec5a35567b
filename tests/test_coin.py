# tests/test_coin.py
import math
import random
from datetime import timedelta

import pytest

from coin_simulator.coin import Coin
from coin_simulator.models import CoinRecord
from coin_simulator.price_history import PriceHistoryManager
from coin_simulator.store import Collection, MemoryStore


@pytest.fixture
def coin(clock):
    return Coin("RCOIN", "RealCoin", 1.0, 0.015, 1000.0, clock=clock)


class TestPriceImpact:
    def test_small_buy_moves_price_and_consumes_liquidity(self, coin):
        new_price = coin.apply_price_impact(5, 'buy')

        assert new_price == pytest.approx(1.000125, rel=1e-6)
        assert coin.price == new_price
        assert coin.liquidity == pytest.approx(999.5)
        assert coin.pending_recoveries == 1

    def test_sell_lowers_price(self, coin):
        coin.apply_price_impact(50, 'sell')
        assert coin.price < 1.0

    @pytest.mark.parametrize("volume", [0, -3, float("nan"), float("inf")])
    def test_invalid_volume_is_a_no_op(self, coin, volume):
        before = (coin.price, coin.liquidity)
        coin.apply_price_impact(volume, 'buy')
        assert (coin.price, coin.liquidity) == before
        assert coin.pending_recoveries == 0

    def test_overflowing_move_is_discarded(self, clock):
        coin = Coin("BIG", "Big", 1e11, 0.02, 1.0, clock=clock)
        assert coin.quote_price_impact(1e9, 'buy') is None

        coin.apply_price_impact(1e9, 'buy')
        assert coin.price == 1e11
        assert coin.liquidity == 1.0
        assert coin.pending_recoveries == 0

    def test_quote_does_not_mutate(self, coin):
        quoted = coin.quote_price_impact(5, 'buy')
        assert quoted == pytest.approx(1.000125, rel=1e-6)
        assert coin.price == 1.0
        assert coin.liquidity == 1000.0

    def test_liquidity_never_drops_below_half_the_depth(self, coin):
        for _ in range(50):
            depth = coin.liquidity
            coin.apply_price_impact(10_000, 'sell')
            assert coin.liquidity >= depth * 0.5
        assert coin.liquidity > 0

    def test_impact_records_history(self, coin, clock):
        history = PriceHistoryManager(clock)
        coin.apply_price_impact(5, 'buy', history)

        points = history.get_points("RCOIN")
        assert len(points) == 1
        assert points[0].price == coin.price
        assert points[0].volume == 5


class TestLiquidityRecovery:
    def test_recovery_runs_after_delay(self, coin, clock):
        coin.apply_price_impact(5, 'buy')
        assert coin.process_scheduled(clock.now() + timedelta(seconds=4)) == 0
        assert coin.liquidity == pytest.approx(999.5)

        clock.advance(5)
        assert coin.process_scheduled() == 1
        assert coin.liquidity == pytest.approx(999.55)
        assert coin.pending_recoveries == 0

    def test_recovery_is_capped_at_prior_depth(self, clock):
        coin = Coin("X", "X", 1.0, 0.02, 100.0, clock=clock)
        coin.apply_price_impact(1, 'buy')
        coin.liquidity = 100.0
        clock.advance(10)
        coin.process_scheduled()
        assert coin.liquidity == 100.0


class TestVolatility:
    def test_price_stays_finite_and_positive(self, clock):
        coin = Coin("CHAOS", "ChaosCoin", 0.5, 0.08, 300.0, clock=clock)
        history = PriceHistoryManager(clock)
        for _ in range(2000):
            coin.add_volatility(history)
            assert math.isfinite(coin.price)
            assert coin.price > 0
        assert history.point_count("CHAOS") == 2000

    def test_out_of_range_price_is_clamped(self, clock, monkeypatch):
        monkeypatch.setattr(random, "random", lambda: 0.5)
        coin = Coin("HUGE", "Huge", 1e7, 0.02, 1000.0, clock=clock)
        coin.add_volatility()
        assert coin.price == 1000.0

    def test_stamps_last_updated(self, coin, clock):
        clock.advance(42)
        coin.add_volatility()
        assert coin.last_updated == clock.now()


class TestPersistence:
    @pytest.mark.asyncio
    async def test_corrupt_fields_are_repaired_on_save(self, clock):
        collection = Collection(MemoryStore(), "coins", CoinRecord)
        coin = Coin("BAD", "Bad", float("nan"), -1.0, 0.0, clock=clock)
        await coin.save(collection)

        loaded = await Coin.load(collection, "BAD", clock)
        assert loaded.price == 1.0
        assert loaded.base_vol == 0.02
        assert loaded.liquidity == 1000.0

    @pytest.mark.asyncio
    async def test_load_all(self, coin, clock):
        collection = Collection(MemoryStore(), "coins", CoinRecord)
        await coin.save(collection)
        await Coin("TOAST", "ToastCoin", 2.0, 0.025, 1000.0, clock=clock).save(collection)

        coins = await Coin.load_all(collection, clock)
        assert sorted(c.id for c in coins) == ["RCOIN", "TOAST"]
        assert await Coin.load(collection, "MISSING") is None
