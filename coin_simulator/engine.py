# coin_simulator/engine.py

import logging
import math
import random
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from .analytics import MarketAnalyticsEngine, RecentTradeLog
from .bot import Bot
from .broadcast import Broadcaster
from .clock import SimulationClock
from .coin import Coin
from .config import (
    ANALYTICS_EVERY_N_TICKS, BOT_USER_PREFIX, DEFAULT_BOT_COUNT, DEFAULT_COINS, DEFAULT_USER_CASH,
    EVENT_PROBABILITY, FAST_FORWARD_DURATION_SECONDS, FAST_FORWARD_ENABLED, FAST_FORWARD_EVENT_GATE,
    FAST_FORWARD_MIN_FREQUENCY, FAST_FORWARD_TICKS_PER_SECOND, MAX_PRICE, PRICE_BROADCAST_EVERY_N_TICKS,
    SEED_HISTORY_SECONDS, SEED_HISTORY_STALE_SECONDS, WATCH_ALL_PERSONALITIES, WATCH_MOST_PERSONALITIES,
)
from .events import MarketEventsSystem
from .models import (
    BotRecord, CoinRecord, LeaderboardEntry, Order, Portfolio, PortfolioWithGains, Trade,
)
from .personalities import PERSONALITIES
from .portfolio import MAX_CASH, MAX_COST, apply_buy, apply_sell, get_portfolio_with_gains
from .price_history import PriceHistoryManager
from .store import Collection, RecordStore
from .utils import in_open_range, is_finite

log = logging.getLogger(__name__)

STARTING_CASH_RANGES = {
    'whale-wendy': (50000, 50000),
    'longterm-larry': (5000, 10000),
    'influencer-izzy': (10000, 20000),
    'quant-quinn': (3000, 7000),
}
DEFAULT_CASH_RANGE = (800, 2000)


class MarketEngine:
    """Owns the coins, the bots and the market subsystems, and advances them one tick at a time.

    Lifecycle: `uninitialized` -> `bootstrapping` (inside `init()`) -> `running`.
    The host drives live ticks (see tasks.simulation_loop) and drains the
    write-behind queues with `flush_save_queues()`.
    """

    def __init__(self, store: RecordStore, broadcaster: Broadcaster,
                 clock: Optional[SimulationClock] = None, bot_count: int = DEFAULT_BOT_COUNT):
        self.clock = clock or SimulationClock()
        self.store = store
        self.broadcaster = broadcaster
        self.bot_count = bot_count

        self.coins_db = Collection(store, "coins", CoinRecord)
        self.bots_db = Collection(store, "bots", BotRecord)
        self.orders_db = Collection(store, "orders", Order)
        self.trades_db = Collection(store, "trades", Trade)
        self.portfolios_db = Collection(store, "portfolios", Portfolio)

        self.coins: Dict[str, Coin] = {}
        self.bots: Dict[str, Bot] = {}
        self.price_history_manager = PriceHistoryManager(self.clock)
        self.market_events = MarketEventsSystem(broadcaster, self.clock)
        self.analytics = MarketAnalyticsEngine(self.clock)
        self.recent_trades = RecentTradeLog()

        self.bot_save_queue: Set[str] = set()
        self.coin_save_queue: Set[str] = set()
        self.state = 'uninitialized'
        self.tick_count = 0
        self._trade_counter = 0

    # --- bootstrap ---

    async def init(self, fast_forward: bool = FAST_FORWARD_ENABLED,
                   duration_seconds: int = FAST_FORWARD_DURATION_SECONDS,
                   ticks_per_second: int = FAST_FORWARD_TICKS_PER_SECOND) -> bool:
        """Load or seed the market. Returns True if the fast-forward bootstrap ran."""
        self.state = 'bootstrapping'
        for coin in await Coin.load_all(self.coins_db, self.clock):
            self.coins[coin.id] = coin
        for bot in await Bot.load_all(self.bots_db):
            self.bots[bot.id] = bot
        log.info(f"Loaded {len(self.coins)} coins and {len(self.bots)} bots from store")

        seeded_coins = not self.coins
        seeded_bots = not self.bots
        if seeded_coins:
            await self.initialize_default_coins()
        if seeded_bots:
            await self.initialize_default_bots()

        ran_fast_forward = False
        if seeded_coins and seeded_bots and fast_forward:
            start = self.clock.now() - timedelta(seconds=duration_seconds)
            self.initialize_price_history(end=start)
            log.info(f"Starting fast forward simulation ({duration_seconds / 3600:.1f} hours of market activity)...")
            await self.run_fast_forward(duration_seconds, ticks_per_second, start=start)
            log.info("Fast forward simulation complete!")
            ran_fast_forward = True
        else:
            self.initialize_price_history()

        self.state = 'running'
        return ran_fast_forward

    async def initialize_default_coins(self):
        for data in DEFAULT_COINS:
            coin = Coin(data["id"], data["name"], data["price"], data["base_vol"], data["liquidity"],
                        clock=self.clock)
            await coin.save(self.coins_db)
            self.coins[coin.id] = coin
        log.info(f"Seeded {len(DEFAULT_COINS)} default coins")

    async def initialize_default_bots(self):
        coin_ids = list(self.coins)
        now = self.clock.now()
        for i in range(1, self.bot_count + 1):
            personality = random.choice(PERSONALITIES)
            target = random.choice(coin_ids) if coin_ids else 'RCOIN'
            low, spread = STARTING_CASH_RANGES.get(personality, DEFAULT_CASH_RANGE)
            bot = Bot(
                id=f"{BOT_USER_PREFIX}{personality.replace('-', '')}-{i}",
                personality=personality,
                target_coin=target,
                watched_coins=self._initial_watch_list(personality, target, coin_ids),
                portfolio=Portfolio(cash=float(math.floor(low + random.random() * spread))),
                last_action=now - timedelta(seconds=random.random() * 30),
            )
            await bot.force_save(self.bots_db)
            self.bots[bot.id] = bot
        log.info(f"Seeded {self.bot_count} default bots")

    @staticmethod
    def _initial_watch_list(personality: str, target: str, coin_ids: List[str]) -> List[str]:
        if personality in WATCH_ALL_PERSONALITIES:
            return list(coin_ids)
        if personality in WATCH_MOST_PERSONALITIES:
            return coin_ids[:max(2, int(len(coin_ids) * 0.8))]
        wanted = min(len(set(coin_ids) | {target}), max(2, min(4, int(random.random() * len(coin_ids)) + 1)))
        watched = [target]
        while len(watched) < wanted:
            candidate = random.choice(coin_ids)
            if candidate not in watched:
                watched.append(candidate)
        return watched

    def initialize_price_history(self, end: Optional[datetime] = None):
        """Seed 2h of one-second synthetic prices, ending at `end`, for coins without fresh data."""
        end = end or self.clock.now()
        for coin in self.coins.values():
            latest = self.price_history_manager.latest_timestamp(coin.id)
            if latest is not None and (end - latest).total_seconds() <= SEED_HISTORY_STALE_SECONDS:
                continue
            self.price_history_manager.clear(coin.id)
            for i in range(SEED_HISTORY_SECONDS, -1, -1):
                price = max(0.001, coin.price * (1 + (random.random() - 0.5) * 0.001))
                self.price_history_manager.record_price(
                    coin.id, price, random.random() * 0.1, timestamp=end - timedelta(seconds=i))
            log.info(f"Initialized price history for {coin.id} with {SEED_HISTORY_SECONDS} data points")

    async def run_fast_forward(self, duration_seconds: int = FAST_FORWARD_DURATION_SECONDS,
                               ticks_per_second: int = FAST_FORWARD_TICKS_PER_SECOND,
                               start: Optional[datetime] = None):
        """Simulate `duration_seconds` of market activity on a virtual clock, then save everything once."""
        total_ticks = int(duration_seconds * ticks_per_second)
        step = 1.0 / ticks_per_second
        progress_interval = max(1, total_ticks // 20)
        start = start or self.clock.now() - timedelta(seconds=duration_seconds)
        log.info(f"Running {duration_seconds / 3600:.1f}h simulation at {ticks_per_second}x speed ({total_ticks} ticks)...")

        self.clock.start_virtual(start)
        for bot in self.bots.values():
            bot.last_action = start - timedelta(seconds=random.random() * 30)

        real_start = time.monotonic()
        try:
            for tick in range(total_ticks):
                try:
                    if random.random() < FAST_FORWARD_EVENT_GATE:
                        await self.market_events.generate_random_event(self.coins)
                    await self.market_events.apply_event_effects(self.coins, self.price_history_manager)

                    now = self.clock.now()
                    for coin in self.coins.values():
                        coin.process_scheduled(now)
                        coin.add_volatility(self.price_history_manager)
                        if not in_open_range(coin.price, 0, MAX_PRICE):
                            coin.price = max(0.001, random.random() * 10)

                    for bot in self.bots.values():
                        bot.tick(self, min_frequency=FAST_FORWARD_MIN_FREQUENCY)
                except Exception as e:
                    log.error(f"Fast forward tick {tick} error: {e}", exc_info=True)

                if tick % progress_interval == 0:
                    log.info(f"Fast forward progress: {tick * 100 // total_ticks}% "
                             f"({tick // ticks_per_second // 60}m simulated in {time.monotonic() - real_start:.1f}s real time)")
                self.clock.advance(step)
        finally:
            self.clock.stop_virtual()

        log.info("Saving simulation data...")
        for coin in self.coins.values():
            await coin.save(self.coins_db)
        for bot in self.bots.values():
            await bot.force_save(self.bots_db)
        self.coin_save_queue.clear()
        self.bot_save_queue.clear()
        log.info(f"Simulation complete! {self._trade_counter} trades in {time.monotonic() - real_start:.1f}s real time")

    # --- live tick ---

    async def tick(self):
        self.tick_count += 1

        await self.market_events.generate_random_event(self.coins, EVENT_PROBABILITY)
        await self.market_events.apply_event_effects(self.coins, self.price_history_manager)

        now = self.clock.now()
        for coin in self.coins.values():
            coin.process_scheduled(now)
            coin.add_volatility(self.price_history_manager)
            if not in_open_range(coin.price, 0, MAX_PRICE):
                log.warning(f"Invalid price for {coin.id}: {coin.price}, resetting to 1.0")
                coin.price = 1.0
            self.queue_coin_save(coin.id)

        for bot in self.bots.values():
            bot.tick(self)

        if self.tick_count % ANALYTICS_EVERY_N_TICKS == 0:
            analytics = self.analytics.calculate_analytics(
                self.coins, self.price_history_manager, self.recent_trades.get_recent_trades(1000))
            await self.broadcaster.broadcast_to_all_rooms({
                "type": "market_analytics",
                "analytics": analytics.to_json_dict(),
            })

        if self.tick_count % PRICE_BROADCAST_EVERY_N_TICKS == 0:
            await self.broadcaster.broadcast_to_all_rooms(self.price_snapshot())

    def price_snapshot(self) -> dict:
        return {
            "type": "price_update",
            "prices": {
                coin.id: {
                    "price": coin.price if in_open_range(coin.price, 0, math.inf) else 1.0,
                    "lastUpdated": coin.last_updated.isoformat(),
                }
                for coin in self.coins.values()
            },
            "activeEvents": [e.summary() for e in self.market_events.get_active_events()],
        }

    # --- write-behind persistence ---

    def queue_bot_save(self, bot_id: str):
        self.bot_save_queue.add(bot_id)

    def queue_coin_save(self, coin_id: str):
        self.coin_save_queue.add(coin_id)

    async def flush_save_queues(self) -> int:
        """Write every queued bot and coin. Returns the number of records written."""
        written = 0
        if self.bot_save_queue:
            bot_ids = list(self.bot_save_queue)
            self.bot_save_queue.clear()
            for bot_id in bot_ids:
                bot = self.bots.get(bot_id)
                if bot:
                    await bot.force_save(self.bots_db)
                    written += 1
        if self.coin_save_queue:
            coin_ids = list(self.coin_save_queue)
            self.coin_save_queue.clear()
            for coin_id in coin_ids:
                coin = self.coins.get(coin_id)
                if coin:
                    await coin.save(self.coins_db)
                    written += 1
        return written

    async def shutdown(self):
        """Persist every coin and bot immediately."""
        log.info(f"Saving {len(self.coins)} coins and {len(self.bots)} bots before shutdown...")
        self.bot_save_queue.clear()
        self.coin_save_queue.clear()
        for coin in self.coins.values():
            await coin.save(self.coins_db)
        for bot in self.bots.values():
            await bot.force_save(self.bots_db)

    # --- trades and orders ---

    def next_trade_id(self) -> str:
        trade_id = f"trade-{self._trade_counter}"
        self._trade_counter += 1
        return trade_id

    def record_trade(self, trade: Trade):
        self.recent_trades.add_trade(trade)

    def get_recent_trades(self, limit: int = 50) -> List[Trade]:
        return self.recent_trades.get_recent_trades(limit)

    async def place_order(self, order: Order) -> Optional[Order]:
        """Fill market orders immediately against price impact; store limit orders as pending.

        Returns None for an unknown coin. A market order that the user cannot
        cover at its execution price comes back `cancelled` with no side effects.
        """
        coin = self.coins.get(order.coin_id)
        if not coin:
            log.warning(f"Order {order.id} for unknown coin {order.coin_id}")
            return None

        is_bot_user = order.user_id.startswith(BOT_USER_PREFIX)
        if order.type == 'limit':
            if not is_bot_user:
                await self.orders_db.set(order.id, order)
            return order

        bot = self.bots.get(order.user_id) if is_bot_user else None
        portfolio = bot.portfolio if bot else await self.get_portfolio(order.user_id)

        # The quote is the price apply_price_impact will set
        quoted = coin.quote_price_impact(order.amount, order.side)
        settle = apply_buy if order.side == 'buy' else apply_sell
        if (quoted is None or not self._can_fill(portfolio, order, quoted)
                or not settle(portfolio, coin.id, order.amount, quoted)):
            log.info(f"Order {order.id} by {order.user_id} cannot be filled ({order.side} {order.amount} {coin.id})")
            order.status = 'cancelled'
            if not is_bot_user:
                await self.orders_db.set(order.id, order)
            return order

        execution_price = coin.apply_price_impact(order.amount, order.side, self.price_history_manager)
        self.queue_coin_save(coin.id)
        trade = Trade(
            id=self.next_trade_id(),
            coin_id=coin.id,
            price=execution_price,
            amount=order.amount,
            buyer_id=order.user_id if order.side == 'buy' else 'market',
            seller_id=order.user_id if order.side == 'sell' else 'market',
            timestamp=self.clock.now(),
        )
        self.record_trade(trade)

        order.status = 'filled'
        if bot:
            bot.save(self)
        else:
            await self.portfolios_db.set(order.user_id, portfolio)
        if not is_bot_user:
            await self.trades_db.set(trade.id, trade)
            await self.orders_db.set(order.id, order)

        await self.broadcaster.broadcast_to_all_rooms({"type": "trade", "trade": trade.to_json_dict()})
        return order

    @staticmethod
    def _can_fill(portfolio: Portfolio, order: Order, price: float) -> bool:
        if order.side == 'buy':
            cost = order.amount * price
            return order.amount <= MAX_CASH and is_finite(cost) and cost <= MAX_COST and portfolio.cash >= cost
        holding = portfolio.holdings.get(order.coin_id)
        return holding is not None and holding.amount >= order.amount

    # --- reads ---

    def get_coin(self, coin_id: str) -> Optional[Coin]:
        return self.coins.get(coin_id)

    def get_all_coins(self) -> List[Coin]:
        return list(self.coins.values())

    def get_all_bots(self) -> List[Bot]:
        return list(self.bots.values())

    async def get_portfolio(self, user_id: str) -> Portfolio:
        bot = self.bots.get(user_id)
        if bot:
            return bot.portfolio
        portfolio = await self.portfolios_db.get(user_id)
        return portfolio or Portfolio(cash=DEFAULT_USER_CASH)

    def get_portfolio_with_gains(self, portfolio: Portfolio) -> PortfolioWithGains:
        return get_portfolio_with_gains(portfolio, self.coins)

    async def get_leaderboard(self, limit: int = 50, include_bots: bool = False) -> List[LeaderboardEntry]:
        """Users ranked by total portfolio value at live prices."""
        portfolios: Dict[str, Portfolio] = {}
        for user_id in await self.portfolios_db.keys():
            portfolio = await self.portfolios_db.get(user_id)
            if portfolio:
                portfolios[user_id] = portfolio
        if include_bots:
            portfolios.update({bot.id: bot.portfolio for bot in self.bots.values()})

        entries = []
        for user_id, portfolio in portfolios.items():
            valued = self.get_portfolio_with_gains(portfolio)
            entries.append(LeaderboardEntry(
                user_id=user_id,
                cash=valued.cash,
                total_value=valued.total_value,
                total_gains=valued.total_unrealized_gain,
                gain_percentage=valued.total_unrealized_gain_percent,
                holdings=len(valued.holdings),
            ))
        entries.sort(key=lambda e: e.total_value, reverse=True)
        return entries[:limit]
