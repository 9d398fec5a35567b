# coin_simulator/strategies.py

import logging
import math
import random
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from .models import ScalpPosition

if TYPE_CHECKING:
    from .bot import Bot
    from .coin import Coin
    from .engine import MarketEngine

log = logging.getLogger(__name__)

StrategyFunction = Callable[['Bot', 'MarketEngine'], None]

SCALP_HOLD_SECONDS = 30


# --- indicators ---

def calculate_rsi(prices: List[float]) -> float:
    """RSI over the first 14 changes of the window; 50 when there is too little data."""
    if len(prices) < 14:
        return 50.0
    gains = losses = 0.0
    for i in range(1, min(15, len(prices))):
        change = prices[i] - prices[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change
    avg_gain = gains / 14
    avg_loss = losses / 14
    rs = avg_gain / (avg_loss or 0.001)
    return 100 - (100 / (1 + rs))


def calculate_volatility(prices: List[float]) -> float:
    """Population stdev of simple returns; 0.02 when there is too little data."""
    if len(prices) < 10:
        return 0.02
    returns = [(prices[i] - prices[i - 1]) / prices[i - 1] for i in range(1, len(prices)) if prices[i - 1] > 0]
    if not returns:
        return 0.02
    mean = sum(returns) / len(returns)
    return math.sqrt(sum((r - mean) ** 2 for r in returns) / len(returns))


def moving_average(values: List[float], periods: int) -> Optional[float]:
    if len(values) < periods or periods <= 0:
        return None
    window = values[-periods:]
    return sum(window) / len(window)


def is_trend_up(values: List[float], periods: int) -> bool:
    if len(values) < periods:
        return False
    recent = values[-periods:]
    return all(recent[i] > recent[i - 1] for i in range(1, len(recent)))


def is_trend_down(values: List[float], periods: int) -> bool:
    if len(values) < periods:
        return False
    recent = values[-periods:]
    return all(recent[i] < recent[i - 1] for i in range(1, len(recent)))


def _random_side() -> str:
    return 'buy' if random.random() < 0.5 else 'sell'


def _push_window(bot: 'Bot', price: float, size: int) -> List[float]:
    window = bot.parameters.price_window
    window.append(price)
    if len(window) > size:
        del window[:len(window) - size]
    return window


def _trade(bot: 'Bot', market: 'MarketEngine', coin: 'Coin', side: str, intensity: str) -> bool:
    return bot.make_trade(market, coin, side, bot.get_trade_size(coin, intensity))


# --- momentum and mean reversion ---

def strategy_momentum_maxine(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    if len(_push_window(bot, coin.price, 10)) < 3:
        return
    pct_change = bot.get_price_change_percent(coin, 10)
    if pct_change > 0.5:
        _trade(bot, market, coin, 'buy', 'aggressive')
    elif pct_change < -0.5:
        _trade(bot, market, coin, 'sell', 'aggressive')


def strategy_mean_revertor_marvin(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    window = _push_window(bot, coin.price, 20)
    if len(window) < 10:
        return
    average = sum(window) / len(window)
    diff = (coin.price - average) / average
    if diff < -0.05:
        _trade(bot, market, coin, 'buy', 'huge')
    elif diff > 0.05:
        _trade(bot, market, coin, 'sell', 'huge')


def strategy_contrarian_carl(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    pct_change = bot.get_price_change_percent(coin, 10)
    if pct_change > 3:
        _trade(bot, market, coin, 'sell', 'moderate')
    elif pct_change < -3:
        _trade(bot, market, coin, 'buy', 'moderate')


def strategy_daytrader_danny(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    pct_change = bot.get_price_change_percent(coin, 30)
    if pct_change > 2:
        _trade(bot, market, coin, 'buy', 'moderate')
    elif pct_change < -2:
        _trade(bot, market, coin, 'sell', 'moderate')


def strategy_trendfollower_tim(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    short_trend = bot.get_price_change_percent(coin, 10)
    long_trend = bot.get_price_change_percent(coin, 50)
    if short_trend > 0 and long_trend > 0:
        _trade(bot, market, coin, 'buy', 'moderate')
    elif short_trend < 0 and long_trend < 0:
        _trade(bot, market, coin, 'sell', 'moderate')


def strategy_meanreversion_mary(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    average = moving_average(bot.get_history(coin.id), 20)
    if not average:
        return
    diff = (coin.price - average) / average
    if diff < -0.08:
        _trade(bot, market, coin, 'buy', 'moderate')
    elif diff > 0.08:
        _trade(bot, market, coin, 'sell', 'moderate')


def strategy_volume_vince(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    pct_change = bot.get_price_change_percent(coin, 5)
    if abs(pct_change) > 2:
        _trade(bot, market, coin, 'buy' if pct_change > 0 else 'sell', 'moderate')


# --- random and rare traders ---

def strategy_whale_wendy(bot: 'Bot', market: 'MarketEngine'):
    if random.random() < 0.01:
        coin = market.get_coin(bot.target_coin)
        if coin:
            _trade(bot, market, coin, _random_side(), 'whale')


def strategy_ape_alex(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if coin and random.random() < 0.3:
        _trade(bot, market, coin, 'buy', 'aggressive')


def strategy_lazy_lisa(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if coin and random.random() < 0.05:
        _trade(bot, market, coin, _random_side(), 'tiny')


def strategy_swingtrader_sam(bot: 'Bot', market: 'MarketEngine'):
    if random.random() > 0.05:
        return
    coin = market.get_coin(bot.target_coin)
    if coin and bot.get_price_change_percent(coin, 100) < -15:
        _trade(bot, market, coin, 'buy', 'aggressive')


def strategy_news_nancy(bot: 'Bot', market: 'MarketEngine'):
    if random.random() < 0.002:
        coin = market.get_coin(bot.target_coin)
        if coin:
            _trade(bot, market, coin, _random_side(), 'aggressive')


def strategy_random_rick(bot: 'Bot', market: 'MarketEngine'):
    if random.random() < 0.1:
        coin = market.get_coin(bot.target_coin)
        if coin:
            _trade(bot, market, coin, _random_side(), 'small')


def strategy_patient_paul(bot: 'Bot', market: 'MarketEngine'):
    if random.random() > 0.001:
        return
    coin = market.get_coin(bot.target_coin)
    if coin and bot.get_price_change_percent(coin, 100) < -20:
        _trade(bot, market, coin, 'buy', 'huge')


# --- patterns and indicators ---

def strategy_pattern_prophet(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    window = _push_window(bot, coin.price, 5)
    if len(window) < 3:
        return
    if is_trend_up(window, 3):
        _trade(bot, market, coin, 'buy', 'small')
    elif is_trend_down(window, 3):
        _trade(bot, market, coin, 'sell', 'small')


def strategy_technical_ted(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    history = bot.get_history(coin.id)
    if len(history) < 50:
        return
    rsi = calculate_rsi(history)
    if rsi < 25:
        _trade(bot, market, coin, 'buy', 'moderate')
    elif rsi > 75:
        _trade(bot, market, coin, 'sell', 'moderate')


def strategy_breakout_bob(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    history = bot.get_history(coin.id)
    if len(history) < 50:
        return
    if coin.price > max(history[-50:]) * 1.02:
        _trade(bot, market, coin, 'buy', 'aggressive')


def strategy_support_sarah(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    history = bot.get_history(coin.id)
    if len(history) < 30:
        return
    if coin.price <= min(history[-30:]) * 1.01:
        _trade(bot, market, coin, 'buy', 'moderate')


def strategy_fibonacci_fran(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    history = bot.get_history(coin.id)
    if len(history) < 20:
        return
    high, low = max(history[-20:]), min(history[-20:])
    fib618 = high - (high - low) * 0.618
    if fib618 * 0.99 <= coin.price <= fib618 * 1.01:
        _trade(bot, market, coin, 'buy', 'moderate')


def strategy_quant_quinn(bot: 'Bot', market: 'MarketEngine'):
    """Composite signal per watched coin: MA(5/20) cross, RSI extremes and a volatility term."""
    analysis: List[Tuple['Coin', float, float]] = []
    for coin_id in bot.watched_coins:
        coin = market.get_coin(coin_id)
        if not coin:
            continue
        history = bot.get_history(coin_id)
        if len(history) < 20:
            continue

        ma_fast = sum(history[-5:]) / 5
        ma_slow = sum(history[-20:]) / 20
        rsi = calculate_rsi(history)
        volatility = calculate_volatility(history)

        signal = 0.4 if ma_fast > ma_slow else -0.4
        if rsi < 30:
            signal += 0.3
        elif rsi > 70:
            signal -= 0.3
        signal += (volatility - 0.02) * 5
        analysis.append((coin, signal, abs(signal)))

    analysis.sort(key=lambda a: a[2], reverse=True)
    for coin, signal, strength in analysis[:2]:
        if strength < 0.5:
            break
        if signal > 0.5:
            _trade(bot, market, coin, 'buy', 'moderate')
        elif signal < -0.5 and bot.holding_amount(coin.id) > 0:
            _trade(bot, market, coin, 'sell', 'moderate')


# --- position and risk management ---

def strategy_stoploss_steve(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    params = bot.parameters
    if not params.entry_price:
        params.entry_price = coin.price

    pct_change = bot.get_price_change_percent(coin, 5)
    if coin.price < params.entry_price * 0.97:
        held = bot.holding_amount(coin.id)
        if held > 0:
            bot.make_trade(market, coin, 'sell', held)
            params.entry_price = coin.price

    if pct_change > 2:
        _trade(bot, market, coin, 'buy', 'small')
        params.entry_price = coin.price


def strategy_fomo_fiona(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    params = bot.parameters
    if bot.get_price_change_percent(coin, 5) > 10:
        _trade(bot, market, coin, 'buy', 'aggressive')
        params.fomo_entry = coin.price

    if params.fomo_entry and coin.price < params.fomo_entry * 0.95:
        held = bot.holding_amount(coin.id)
        if held > 0:
            bot.make_trade(market, coin, 'sell', held)
            params.fomo_entry = None


def strategy_longterm_larry(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    params = bot.parameters
    if not params.avg_buy_price:
        params.avg_buy_price = coin.price

    if bot.get_price_change_percent(coin, 100) < -10:
        _trade(bot, market, coin, 'buy', 'aggressive')

    holding = bot.portfolio.holdings.get(coin.id)
    if holding and holding.amount > 0:
        params.avg_buy_price = holding.average_cost
        if coin.price > params.avg_buy_price * 2:
            bot.make_trade(market, coin, 'sell', holding.amount * 0.5)


def strategy_panic_pete(bot: 'Bot', market: 'MarketEngine'):
    for coin_id, holding in list(bot.portfolio.holdings.items()):
        if holding.amount <= 0:
            continue
        coin = market.get_coin(coin_id)
        if coin and bot.get_price_change_percent(coin, 3) < -0.5:
            bot.make_trade(market, coin, 'sell', holding.amount)


def strategy_sniper_steve(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    pct_change = bot.get_price_change_percent(coin, 5)
    if abs(pct_change) > 8:
        _trade(bot, market, coin, 'buy' if pct_change > 0 else 'sell', 'whale')


# --- market structure ---

def strategy_fundamental_frank(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin or random.random() > 0.01:
        return
    if coin.liquidity > 2000 and coin.base_vol < 0.02:
        _trade(bot, market, coin, 'buy', 'moderate')


def strategy_volatility_victor(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if coin and coin.base_vol > 0.05:
        _trade(bot, market, coin, _random_side(), 'aggressive')


def strategy_liquidity_lucy(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin or coin.liquidity < 1000:
        return
    pct_change = bot.get_price_change_percent(coin, 20)
    if 1 < abs(pct_change) < 3:
        _trade(bot, market, coin, 'buy' if pct_change > 0 else 'sell', 'small')


def strategy_marketmaker_mike(bot: 'Bot', market: 'MarketEngine'):
    coin = market.get_coin(bot.target_coin)
    if not coin:
        return
    side = 'sell' if bot.parameters.mm_last_side == 'buy' else 'buy'
    _trade(bot, market, coin, side, 'tiny')
    bot.parameters.mm_last_side = side


def strategy_scalper_sally(bot: 'Bot', market: 'MarketEngine'):
    now = market.clock.now()
    positions = bot.parameters.scalp_positions
    for coin_id in bot.watched_coins[:3]:
        coin = market.get_coin(coin_id)
        if not coin:
            continue
        history = bot.get_history(coin_id)
        if len(history) < 5 or history[-2] <= 0:
            continue

        recent_change = (coin.price - history[-2]) / history[-2]
        if 0.001 < abs(recent_change) < 0.003:
            side = 'buy' if recent_change > 0 else 'sell'
            _trade(bot, market, coin, side, 'tiny')
            positions[coin_id] = ScalpPosition(side=side, entry=coin.price, timestamp=now)

        position = positions.get(coin_id)
        if position and (now - position.timestamp).total_seconds() < SCALP_HOLD_SECONDS:
            if position.side == 'buy':
                profit = (coin.price - position.entry) / position.entry
            else:
                profit = (position.entry - coin.price) / position.entry
            if profit > 0.002 or profit < -0.001:
                _trade(bot, market, coin, 'sell' if position.side == 'buy' else 'buy', 'tiny')
                del positions[coin_id]


# --- multi-coin ---

def strategy_copycat_carla(bot: 'Bot', market: 'MarketEngine'):
    best = bot.get_best_performing_coin(market)
    if not best:
        return
    best_history = bot.get_history(best.id)
    if len(best_history) < 5:
        return

    recent = best_history[-3:]
    uptrend = all(recent[i] >= recent[i - 1] for i in range(1, len(recent)))
    downtrend = all(recent[i] <= recent[i - 1] for i in range(1, len(recent)))
    target = market.get_coin(bot.target_coin)

    if uptrend and random.random() < 0.4:
        if target:
            _trade(bot, market, target, 'buy', 'small')
    elif downtrend and random.random() < 0.3:
        if target and bot.holding_amount(target.id) > 0:
            _trade(bot, market, target, 'sell', 'small')
    elif random.random() < 0.2:
        if bot.portfolio.cash > best.price * 5:
            _trade(bot, market, best, 'buy', 'small')


def strategy_doom_daniel(bot: 'Bot', market: 'MarketEngine'):
    sentiment = bot.get_market_sentiment(market)
    if sentiment == 'bullish':
        for coin_id in bot.watched_coins:
            coin = market.get_coin(coin_id)
            if coin and bot.holding_amount(coin_id) > 0:
                _trade(bot, market, coin, 'sell', 'moderate')
    elif sentiment == 'bearish':
        if random.random() < 0.3:
            worst = bot.get_worst_performing_coin(market)
            if worst:
                _trade(bot, market, worst, 'buy', 'small')
        else:
            coin = market.get_coin(bot.target_coin)
            if coin:
                _trade(bot, market, coin, 'sell', 'tiny')


def strategy_arbitrage_arnie(bot: 'Bot', market: 'MarketEngine'):
    best_buy: Optional[Tuple['Coin', float]] = None
    best_sell: Optional[Tuple['Coin', float]] = None

    for coin_id in bot.watched_coins:
        coin = market.get_coin(coin_id)
        if not coin:
            continue
        history = bot.get_history(coin_id)
        if len(history) < 10:
            continue
        trailing = sum(history[-10:]) / 10
        deviation = (coin.price - trailing) / trailing
        if deviation < -0.03:
            if not best_buy or abs(deviation) > abs(best_buy[1]):
                best_buy = (coin, deviation)
        elif deviation > 0.03:
            if not best_sell or abs(deviation) > abs(best_sell[1]):
                best_sell = (coin, deviation)

    if best_sell and bot.holding_amount(best_sell[0].id) > 0:
        _trade(bot, market, best_sell[0], 'sell', 'moderate')
    if best_buy and bot.portfolio.cash > best_buy[0].price * 10:
        _trade(bot, market, best_buy[0], 'buy', 'moderate')


def strategy_correlation_cora(bot: 'Bot', market: 'MarketEngine'):
    if len(bot.watched_coins) < 2:
        return
    coin1 = market.get_coin(bot.watched_coins[0])
    coin2 = market.get_coin(bot.watched_coins[1])
    if not coin1 or not coin2:
        return
    change1 = bot.get_price_change_percent(coin1, 10)
    change2 = bot.get_price_change_percent(coin2, 10)
    if change1 > 3 and change2 < -3:
        _trade(bot, market, coin1, 'sell', 'small')
        _trade(bot, market, coin2, 'buy', 'small')


def strategy_influencer_izzy(bot: 'Bot', market: 'MarketEngine'):
    """Rare campaigns (altseason, crash call, or a pump) followed by five acts of possible dumping."""
    params = bot.parameters
    if random.random() < 0.001:
        campaign = random.random()
        if campaign < 0.3:
            _announce(bot, "ALTCOIN SEASON IS HERE! Time to diversify!")
            for coin_id in bot.watched_coins:
                coin = market.get_coin(coin_id)
                if coin_id != 'RCOIN' and coin and bot.portfolio.cash > coin.price * 20:
                    _trade(bot, market, coin, 'buy', 'aggressive')
            params.campaign_type = 'altseason'
        elif campaign < 0.6:
            _announce(bot, "MAJOR CORRECTION INCOMING! Take profits NOW!")
            for coin_id in bot.watched_coins:
                coin = market.get_coin(coin_id)
                if coin and bot.holding_amount(coin_id) > 0:
                    _trade(bot, market, coin, 'sell', 'aggressive')
            params.campaign_type = 'crash'
        else:
            best = bot.get_best_performing_coin(market) or market.get_coin(bot.target_coin)
            if best:
                _announce(bot, f"{best.name} IS THE NEXT 100X! GET IN NOW!")
                _trade(bot, market, best, 'buy', 'whale')
                params.pumped_coin = best.id
                params.campaign_type = 'pump'
        params.campaign_active = 5
    elif params.campaign_active > 0:
        params.campaign_active -= 1
        if params.campaign_type == 'pump' and params.pumped_coin and random.random() < 0.3:
            coin = market.get_coin(params.pumped_coin)
            if coin and bot.holding_amount(coin.id) > 0:
                _trade(bot, market, coin, 'sell', 'whale')


def _announce(bot: 'Bot', message: str):
    if bot.traits.announcement:
        log.info(f"{bot.traits.name}: {message}")


STRATEGY_FUNCTIONS: Dict[str, StrategyFunction] = {
    'momentum-maxine': strategy_momentum_maxine,
    'mean-revertor-marvin': strategy_mean_revertor_marvin,
    'whale-wendy': strategy_whale_wendy,
    'pattern-prophet': strategy_pattern_prophet,
    'stoploss-steve': strategy_stoploss_steve,
    'copycat-carla': strategy_copycat_carla,
    'contrarian-carl': strategy_contrarian_carl,
    'fomo-fiona': strategy_fomo_fiona,
    'longterm-larry': strategy_longterm_larry,
    'ape-alex': strategy_ape_alex,
    'quant-quinn': strategy_quant_quinn,
    'doom-daniel': strategy_doom_daniel,
    'lazy-lisa': strategy_lazy_lisa,
    'arbitrage-arnie': strategy_arbitrage_arnie,
    'influencer-izzy': strategy_influencer_izzy,
    'scalper-sally': strategy_scalper_sally,
    'daytrader-danny': strategy_daytrader_danny,
    'swingtrader-sam': strategy_swingtrader_sam,
    'news-nancy': strategy_news_nancy,
    'technical-ted': strategy_technical_ted,
    'fundamental-frank': strategy_fundamental_frank,
    'random-rick': strategy_random_rick,
    'correlation-cora': strategy_correlation_cora,
    'volatility-victor': strategy_volatility_victor,
    'liquidity-lucy': strategy_liquidity_lucy,
    'breakout-bob': strategy_breakout_bob,
    'support-sarah': strategy_support_sarah,
    'marketmaker-mike': strategy_marketmaker_mike,
    'sniper-steve': strategy_sniper_steve,
    'panic-pete': strategy_panic_pete,
    'patient-paul': strategy_patient_paul,
    'trendfollower-tim': strategy_trendfollower_tim,
    'meanreversionmary': strategy_meanreversion_mary,
    'fibonacci-fran': strategy_fibonacci_fran,
    'volume-vince': strategy_volume_vince,
}
