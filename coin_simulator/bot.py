# coin_simulator/bot.py

import logging
import random
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Mapping, Optional

from . import strategies as bot_strategies
from .config import (
    BOT_HISTORY_WINDOW, FOCUS_SWITCH_MIN_EDGE, FOCUS_SWITCH_PROBABILITY,
    MIN_TRADE_AMOUNT, TRADE_SIZE_MULTIPLIERS,
)
from .models import BotParameters, BotRecord, Portfolio, Trade
from .personalities import PERSONALITIES, get_traits
from .portfolio import apply_buy, apply_sell, get_portfolio_with_gains, validate_portfolio
from .store import Collection
from .utils import is_finite, utcnow

if TYPE_CHECKING:
    from .coin import Coin
    from .engine import MarketEngine

log = logging.getLogger(__name__)


class Bot:
    """An autonomous trader driven by one personality's strategy."""

    def __init__(self, id: str, personality: str, target_coin: str, portfolio: Portfolio,
                 watched_coins: Optional[List[str]] = None, parameters: Optional[BotParameters] = None,
                 last_action: Optional[datetime] = None, enabled: bool = True):
        self.id = id
        self.personality = personality
        self.traits = get_traits(personality)
        self.target_coin = target_coin
        self.watched_coins = list(dict.fromkeys(watched_coins or [target_coin]))
        self.parameters = parameters or BotParameters()
        self.last_action = last_action or utcnow()
        self.enabled = enabled
        self.portfolio = portfolio
        self.trade_count = 0
        self._recent_trades: Deque[Dict[str, Any]] = deque(maxlen=20)

    def __repr__(self):
        return f"<Bot {self.id} {self.personality} target={self.target_coin}>"

    # --- scheduling ---

    def tick(self, market: 'MarketEngine', min_frequency: Optional[float] = None) -> bool:
        """Act if the jittered interval since the last action has elapsed. Returns True if it acted."""
        if not self.enabled:
            return False

        now = market.clock.now()
        frequency = self.traits.frequency if min_frequency is None else max(self.traits.frequency, min_frequency)
        base_interval_ms = 60000 / max(0.1, frequency)
        elapsed_ms = (now - self.last_action).total_seconds() * 1000

        # Jitter is at least 0.5, so nothing can fire before 1.5 intervals
        if elapsed_ms < base_interval_ms * 1.5:
            return False
        if elapsed_ms < base_interval_ms * (1 + random.uniform(0.5, 1.5)):
            return False

        try:
            self.trade_with_personality(market)
        except Exception as e:
            log.error(f"Bot {self.id} ({self.traits.name}) strategy error: {e}", exc_info=True)
            return False
        self.last_action = now
        return True

    def trade_with_personality(self, market: 'MarketEngine'):
        self.update_market_history(market)

        new_focus = self.should_switch_focus(market)
        if new_focus:
            log.debug(f"Bot {self.id} switching focus {self.target_coin} -> {new_focus}")
            self.target_coin = new_focus

        strategy = bot_strategies.STRATEGY_FUNCTIONS.get(self.personality)
        if strategy is None:
            log.warning(f"Bot {self.id}: no strategy registered for '{self.personality}'")
            return
        strategy(self, market)

    # --- rolling market view ---

    def update_market_history(self, market: 'MarketEngine'):
        history = self.parameters.market_history
        for coin_id in self.watched_coins:
            coin = market.get_coin(coin_id)
            if not coin:
                continue
            prices = history.setdefault(coin_id, [])
            prices.append(coin.price)
            if len(prices) > BOT_HISTORY_WINDOW:
                del prices[:len(prices) - BOT_HISTORY_WINDOW]

    def get_history(self, coin_id: str) -> List[float]:
        return self.parameters.market_history.get(coin_id, [])

    def get_price_change_percent(self, coin: 'Coin', periods: int) -> float:
        """Percent move of the live price against the price `periods` observations back."""
        history = self.get_history(coin.id)
        if len(history) < periods:
            return 0.0
        old_price = history[-periods]
        if old_price <= 0:
            return 0.0
        return (coin.price - old_price) / old_price * 100

    def performance(self, coin: 'Coin', lookback: int = 10) -> Optional[float]:
        history = self.get_history(coin.id)
        if len(history) < lookback or history[-lookback] <= 0:
            return None
        return (coin.price - history[-lookback]) / history[-lookback]

    def get_best_performing_coin(self, market: 'MarketEngine') -> Optional['Coin']:
        best, best_perf = None, float('-inf')
        for coin_id in self.watched_coins:
            coin = market.get_coin(coin_id)
            perf = self.performance(coin) if coin else None
            if perf is not None and perf > best_perf:
                best, best_perf = coin, perf
        return best

    def get_worst_performing_coin(self, market: 'MarketEngine') -> Optional['Coin']:
        worst, worst_perf = None, float('inf')
        for coin_id in self.watched_coins:
            coin = market.get_coin(coin_id)
            perf = self.performance(coin) if coin else None
            if perf is not None and perf < worst_perf:
                worst, worst_perf = coin, perf
        return worst

    def get_market_sentiment(self, market: 'MarketEngine') -> str:
        changes = []
        for coin_id in self.watched_coins:
            coin = market.get_coin(coin_id)
            perf = self.performance(coin, 5) if coin else None
            if perf is not None:
                changes.append(perf)
        if not changes:
            return 'neutral'
        avg_change = sum(changes) / len(changes)
        if avg_change > 0.02:
            return 'bullish'
        if avg_change < -0.02:
            return 'bearish'
        return 'neutral'

    def should_switch_focus(self, market: 'MarketEngine') -> Optional[str]:
        if random.random() > FOCUS_SWITCH_PROBABILITY:
            return None
        current = market.get_coin(self.target_coin)
        if not current:
            return None
        best = self.get_best_performing_coin(market)
        if not best or best.id == self.target_coin:
            return None
        current_perf = self.performance(current)
        best_perf = self.performance(best)
        if current_perf is not None and best_perf is not None and best_perf - current_perf > FOCUS_SWITCH_MIN_EDGE:
            return best.id
        return None

    # --- trading ---

    def holding_amount(self, coin_id: str) -> float:
        holding = self.portfolio.holdings.get(coin_id)
        return holding.amount if holding else 0.0

    def get_trade_size(self, coin: 'Coin', intensity: str) -> float:
        aggressiveness = self.traits.aggressiveness / 10
        portfolio_size = 0.05 * aggressiveness * TRADE_SIZE_MULTIPLIERS[intensity]
        max_affordable = self.portfolio.cash / coin.price * portfolio_size if coin.price > 0 else 0.0
        liquidity_limit = coin.liquidity * min(0.1, portfolio_size)
        return min(max_affordable, liquidity_limit) * (0.5 + random.random() * 0.5)

    def make_trade(self, market: 'MarketEngine', coin: 'Coin', side: str, amount: float) -> bool:
        if not is_finite(amount) or amount <= MIN_TRADE_AMOUNT:
            return False
        if side == 'sell':
            amount = min(amount, self.holding_amount(coin.id))
        if amount <= MIN_TRADE_AMOUNT:
            return False
        return self.execute_trade(market, coin, side, amount)

    def execute_trade(self, market: 'MarketEngine', coin: 'Coin', side: str, amount: float) -> bool:
        """Settle at the pre-trade price, then move the coin. Invalid requests are skipped."""
        price = coin.price
        if side == 'buy':
            filled = apply_buy(self.portfolio, coin.id, amount, price)
        else:
            filled = apply_sell(self.portfolio, coin.id, amount, price)
        if not filled:
            return False

        coin.apply_price_impact(amount, side, market.price_history_manager)
        now = market.clock.now()
        trade = Trade(
            id=market.next_trade_id(),
            coin_id=coin.id,
            price=price,
            amount=amount,
            buyer_id=self.id if side == 'buy' else 'market',
            seller_id=self.id if side == 'sell' else 'market',
            timestamp=now,
        )
        market.record_trade(trade)
        self.trade_count += 1
        self._recent_trades.appendleft({
            "action": side.upper(),
            "timestamp": now,
            "details": f"{side.capitalize()} {amount:.6f} {coin.id} @ ${price:.6g}",
        })
        self.save(market)
        return True

    def apply_fill(self, coin_id: str, side: str, amount: float, price: float) -> bool:
        """Settle an externally placed order against this bot's portfolio."""
        if side == 'buy':
            return apply_buy(self.portfolio, coin_id, amount, price)
        return apply_sell(self.portfolio, coin_id, amount, price)

    # --- persistence ---

    def save(self, market: 'MarketEngine'):
        market.queue_bot_save(self.id)

    def to_record(self) -> BotRecord:
        return BotRecord(
            id=self.id,
            personality=self.personality,
            target_coin=self.target_coin,
            watched_coins=self.watched_coins,
            parameters=self.parameters,
            last_action=self.last_action,
            enabled=self.enabled,
            portfolio=self.portfolio,
        )

    async def force_save(self, collection: Collection[BotRecord]):
        self.portfolio = validate_portfolio(self.portfolio)
        await collection.set(self.id, self.to_record())

    @classmethod
    def from_record(cls, record: BotRecord) -> 'Bot':
        personality = record.personality
        if personality not in PERSONALITIES:
            # Records without a known personality get a random one, as new bots do
            personality = random.choice(PERSONALITIES)
            log.info(f"Bot {record.id} had personality {record.personality!r}; assigned '{personality}'")
        last_action = record.last_action
        if last_action.tzinfo is None:
            last_action = last_action.replace(tzinfo=timezone.utc)
        return cls(
            id=record.id,
            personality=personality,
            target_coin=record.target_coin,
            portfolio=record.portfolio,
            watched_coins=record.watched_coins,
            parameters=record.parameters,
            last_action=last_action,
            enabled=record.enabled,
        )

    @classmethod
    async def load(cls, collection: Collection[BotRecord], bot_id: str) -> Optional['Bot']:
        record = await collection.get(bot_id)
        return cls.from_record(record) if record else None

    @classmethod
    async def load_all(cls, collection: Collection[BotRecord]) -> List['Bot']:
        bots = []
        for bot_id in await collection.keys():
            bot = await cls.load(collection, bot_id)
            if bot:
                bots.append(bot)
        return bots

    # --- reporting ---

    def get_current_strategy(self) -> str:
        return self.traits.strategy

    def get_recent_actions(self, limit: int = 10) -> List[Dict[str, Any]]:
        actions = list(self._recent_trades)
        for coin_id, holding in self.portfolio.holdings.items():
            if holding.amount > 0:
                actions.append({
                    "action": "HOLD",
                    "timestamp": self.last_action,
                    "details": f"Holding {holding.amount:.6f} {coin_id} (avg cost: ${holding.average_cost:.4f})",
                })
        actions.append({
            "action": "FOCUS",
            "timestamp": self.last_action,
            "details": f"Currently targeting {self.target_coin}, monitoring {', '.join(self.watched_coins)}",
        })
        return actions[:limit]

    def get_status(self, coins: Mapping[str, 'Coin']) -> Dict[str, Any]:
        valued = get_portfolio_with_gains(self.portfolio, coins)
        return {
            "id": self.id,
            "personality": self.personality,
            "name": self.traits.name,
            "description": self.traits.description,
            "tradingStyle": self.traits.trading_style,
            "currentStrategy": self.get_current_strategy(),
            "traits": {
                "aggressiveness": self.traits.aggressiveness,
                "frequency": self.traits.frequency,
                "volatilityLove": self.traits.volatility_love,
                "herdMentality": self.traits.herd_mentality,
            },
            "targetCoin": self.target_coin,
            "watchedCoins": list(self.watched_coins),
            "enabled": self.enabled,
            "lastAction": self.last_action.isoformat(),
            "tradeCount": self.trade_count,
            "portfolio": valued.to_json_dict(),
            "recentActions": [
                {**a, "timestamp": a["timestamp"].isoformat()} for a in self.get_recent_actions()
            ],
        }
