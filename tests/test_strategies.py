# tests/test_strategies.py
import math
import random

import pytest

from coin_simulator.personalities import PERSONALITY_TRAITS
from coin_simulator.strategies import (
    STRATEGY_FUNCTIONS, calculate_rsi, calculate_volatility, is_trend_down, is_trend_up, moving_average,
    strategy_influencer_izzy, strategy_longterm_larry, strategy_marketmaker_mike, strategy_mean_revertor_marvin,
    strategy_momentum_maxine, strategy_panic_pete, strategy_whale_wendy,
)


def _pin_random(monkeypatch, *values, default=0.5):
    sequence = iter(values)
    monkeypatch.setattr(random, "random", lambda: next(sequence, default))


class TestIndicators:
    def test_rsi_defaults_to_neutral_on_short_history(self):
        assert calculate_rsi([1.0] * 13) == 50.0

    def test_rsi_of_steady_rise_is_overbought(self):
        assert calculate_rsi([1.0 + i for i in range(20)]) > 99

    def test_rsi_of_steady_fall_is_oversold(self):
        assert calculate_rsi([2.0 - i * 0.01 for i in range(20)]) < 1

    def test_volatility(self):
        assert calculate_volatility([1.0] * 5) == 0.02
        assert calculate_volatility([1.0] * 20) == 0.0
        assert calculate_volatility([1.0, 1.1] * 10) > 0.05

    def test_moving_average(self):
        assert moving_average([1.0, 2.0, 3.0, 4.0], 2) == 3.5
        assert moving_average([1.0], 2) is None

    def test_trends(self):
        assert is_trend_up([3.0, 1.0, 2.0, 3.0], 3)
        assert not is_trend_up([1.0, 2.0, 2.0], 3)
        assert is_trend_down([3.0, 2.0, 1.0], 3)
        assert not is_trend_down([3.0, 2.0], 3)


def test_every_personality_has_a_strategy():
    assert set(STRATEGY_FUNCTIONS) == set(PERSONALITY_TRAITS)
    assert len(STRATEGY_FUNCTIONS) == 35


class TestStrategies:
    def test_momentum_buys_into_a_rise(self, engine, make_bot):
        bot = make_bot("momentum-maxine", cash=1000.0)
        bot.parameters.price_window = [1.0, 1.0]
        bot.parameters.market_history["TOAST"] = [1.0] * 10

        strategy_momentum_maxine(bot, engine)

        assert bot.holding_amount("TOAST") > 0
        assert bot.portfolio.cash < 1000.0

    def test_momentum_waits_for_a_window(self, engine, make_bot):
        bot = make_bot("momentum-maxine", cash=1000.0)
        bot.parameters.market_history["TOAST"] = [1.0] * 10

        strategy_momentum_maxine(bot, engine)

        assert bot.portfolio.holdings == {}
        assert bot.parameters.price_window == [2.0]

    def test_mean_revertor_buys_below_window_average(self, engine, make_bot):
        bot = make_bot("mean-revertor-marvin", cash=1000.0)
        # Above the first point but well under the mean
        bot.parameters.price_window = [1.0] + [3.0] * 8

        strategy_mean_revertor_marvin(bot, engine)

        assert bot.holding_amount("TOAST") > 0
        assert len(bot.parameters.price_window) == 10

    def test_longterm_larry_takes_profit_against_average_cost(self, engine, make_bot):
        bot = make_bot("longterm-larry", cash=0.0, holdings={"TOAST": (10, 0.9)})
        bot.parameters.avg_buy_price = 5.0

        strategy_longterm_larry(bot, engine)

        assert bot.parameters.avg_buy_price == 0.9
        assert bot.holding_amount("TOAST") == pytest.approx(5.0)
        assert bot.portfolio.cash == pytest.approx(10.0)

    def test_panic_pete_dumps_on_a_drop(self, engine, make_bot):
        bot = make_bot("panic-pete", cash=0.0, holdings={"TOAST": (10, 2.5)})
        bot.parameters.market_history["TOAST"] = [2.5, 2.5, 2.5]

        strategy_panic_pete(bot, engine)

        assert "TOAST" not in bot.portfolio.holdings
        assert bot.portfolio.cash == pytest.approx(20.0)

    def test_market_maker_alternates_sides(self, engine, make_bot):
        bot = make_bot("marketmaker-mike", cash=1000.0)

        strategy_marketmaker_mike(bot, engine)
        assert bot.parameters.mm_last_side == 'buy'
        bought = bot.holding_amount("TOAST")
        assert bought > 0

        strategy_marketmaker_mike(bot, engine)
        assert bot.parameters.mm_last_side == 'sell'
        assert bot.holding_amount("TOAST") < bought

    def test_whale_trades_on_rare_roll(self, engine, make_bot, monkeypatch):
        _pin_random(monkeypatch, default=0.0)
        bot = make_bot("whale-wendy", cash=1000.0)

        strategy_whale_wendy(bot, engine)

        # min(1000 / 2.0 * 0.5, 1000 * 0.1) * 0.5
        assert bot.holding_amount("TOAST") == pytest.approx(50.0)

    def test_whale_is_idle_otherwise(self, engine, make_bot, monkeypatch):
        _pin_random(monkeypatch, default=0.5)
        bot = make_bot("whale-wendy", cash=1000.0)
        strategy_whale_wendy(bot, engine)
        assert bot.portfolio.holdings == {}

    def test_influencer_pump_campaign(self, engine, make_bot, monkeypatch):
        _pin_random(monkeypatch, 0.0, 0.9)
        bot = make_bot("influencer-izzy", cash=1000.0, watched=["TOAST", "MOON"])

        strategy_influencer_izzy(bot, engine)

        params = bot.parameters
        assert params.campaign_type == 'pump'
        assert params.pumped_coin == "TOAST"
        assert params.campaign_active == 5
        assert bot.holding_amount("TOAST") > 0

        strategy_influencer_izzy(bot, engine)
        assert params.campaign_active == 4


@pytest.mark.parametrize("personality", sorted(PERSONALITY_TRAITS))
def test_strategy_keeps_portfolio_valid(engine, make_bot, personality):
    rng = random.Random(7)
    bot = make_bot(personality, cash=5000.0, target="TOAST", watched=["TOAST", "MOON", "RCOIN"],
                   holdings={"TOAST": (20, 1.5), "MOON": (100, 0.2)})
    for coin_id, coin in engine.coins.items():
        price, prices = coin.price, []
        for _ in range(100):
            price *= math.exp(rng.gauss(0, 0.03))
            prices.append(price)
        bot.parameters.market_history[coin_id] = prices

    for _ in range(20):
        STRATEGY_FUNCTIONS[personality](bot, engine)

    assert bot.portfolio.cash >= 0
    assert all(h.amount > 0 for h in bot.portfolio.holdings.values())
    assert all(math.isfinite(c.price) and c.price > 0 for c in engine.coins.values())
