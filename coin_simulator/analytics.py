# coin_simulator/analytics.py

import logging
import math
import statistics
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Mapping, Optional

from .clock import SimulationClock
from .coin import Coin
from .config import RECENT_TRADES_CAPACITY, TRADE_WINDOW_SECONDS
from .models import ActiveCoin, CoinMover, MarketAnalytics, Trade
from .price_history import PriceHistoryManager

log = logging.getLogger(__name__)

ANALYTICS_WINDOW_POINTS = 100


class RecentTradeLog:
    """The most recent trades, newest first."""

    def __init__(self, capacity: int = RECENT_TRADES_CAPACITY):
        self._trades: Deque[Trade] = deque(maxlen=capacity)

    def add_trade(self, trade: Trade):
        self._trades.appendleft(trade)

    def get_recent_trades(self, limit: int = 50) -> List[Trade]:
        return list(self._trades)[:max(0, limit)]

    def __len__(self):
        return len(self._trades)


def log_returns(prices: List[float]) -> List[float]:
    return [math.log(b / a) for a, b in zip(prices, prices[1:]) if a > 0 and b > 0]


def pearson(xs: List[float], ys: List[float]) -> float:
    """Correlation of the trailing overlap of two series; 0.0 when undefined."""
    n = min(len(xs), len(ys))
    if n < 2:
        return 0.0
    try:
        return statistics.correlation(xs[-n:], ys[-n:])
    except statistics.StatisticsError:
        return 0.0


class MarketAnalyticsEngine:
    def __init__(self, clock: Optional[SimulationClock] = None):
        self.clock = clock or SimulationClock()
        self.analytics = MarketAnalytics()

    def calculate_analytics(self, coins: Mapping[str, Coin], history: PriceHistoryManager,
                            trades: List[Trade]) -> MarketAnalytics:
        if not coins:
            self.analytics = MarketAnalytics()
            return self.analytics

        cutoff = self.clock.now() - timedelta(seconds=TRADE_WINDOW_SECONDS)
        trade_counts: Dict[str, int] = {}
        for trade in trades:
            if trade.timestamp > cutoff:
                trade_counts[trade.coin_id] = trade_counts.get(trade.coin_id, 0) + 1

        rows = []
        returns_by_coin: Dict[str, List[float]] = {}
        for coin_id, coin in coins.items():
            recent = history.get_recent_points(coin_id, ANALYTICS_WINDOW_POINTS)

            # The point 100 observations back stands in for "24h ago"
            change24h = 0.0
            if history.point_count(coin_id) > ANALYTICS_WINDOW_POINTS and recent[0].price > 0:
                change24h = (coin.price - recent[0].price) / recent[0].price * 100

            returns = log_returns([p.price for p in recent])
            returns_by_coin[coin_id] = returns
            volatility = statistics.pstdev(returns) * math.sqrt(252) if len(recent) > 10 and returns else 0.0

            rows.append({
                "coin_id": coin_id,
                "price": coin.price,
                "market_cap": coin.price * coin.liquidity * 1000,
                "volume24h": sum(p.volume for p in recent),
                "change24h": change24h,
                "volatility": volatility,
                "trades": trade_counts.get(coin_id, 0),
            })

        avg_change = sum(r["change24h"] for r in rows) / len(rows)
        if avg_change > 10:
            sentiment = 'extreme_greed'
        elif avg_change > 3:
            sentiment = 'greed'
        elif avg_change < -10:
            sentiment = 'extreme_fear'
        elif avg_change < -3:
            sentiment = 'fear'
        else:
            sentiment = 'neutral'

        by_change = sorted(rows, key=lambda r: r["change24h"], reverse=True)
        by_volume = sorted(rows, key=lambda r: r["volume24h"], reverse=True)

        def mover(r):
            return CoinMover(coin_id=r["coin_id"], change24h=r["change24h"], price=r["price"])

        matrix: Dict[str, Dict[str, float]] = {}
        coin_ids = list(coins)
        for a in coin_ids:
            matrix[a] = {}
            for b in coin_ids:
                if a == b:
                    matrix[a][b] = 1.0
                elif b in matrix and a in matrix[b]:
                    matrix[a][b] = matrix[b][a]
                else:
                    matrix[a][b] = pearson(returns_by_coin[a], returns_by_coin[b])

        self.analytics = MarketAnalytics(
            total_market_cap=sum(r["market_cap"] for r in rows),
            total_volume24h=sum(r["volume24h"] for r in rows),
            market_sentiment=sentiment,
            top_gainers=[mover(r) for r in by_change[:5]],
            top_losers=[mover(r) for r in reversed(by_change[-5:])],
            most_active=[ActiveCoin(coin_id=r["coin_id"], volume24h=r["volume24h"], trades=r["trades"])
                         for r in by_volume[:5]],
            volatility_index=sum(r["volatility"] for r in rows) / len(rows),
            correlation_matrix=matrix,
        )
        log.debug(f"Analytics recomputed: sentiment={sentiment}, avg change={avg_change:.2f}%")
        return self.analytics

    def get_analytics(self) -> MarketAnalytics:
        return self.analytics
