# tests/conftest.py
from datetime import datetime, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from coin_simulator.bot import Bot
from coin_simulator.broadcast import LocalBroadcaster
from coin_simulator.clock import SimulationClock
from coin_simulator.coin import Coin
from coin_simulator.engine import MarketEngine
from coin_simulator.models import Holding, Portfolio
from coin_simulator.store import MemoryStore

START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the store and the broadcaster."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.published: list[tuple[str, str]] = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def hget(self, key, field):
        self._check()
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field, value):
        self._check()
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def hdel(self, key, field):
        self._check()
        return 1 if self.hashes.get(key, {}).pop(field, None) is not None else 0

    async def hkeys(self, key):
        self._check()
        return list(self.hashes.get(key, {}))

    async def publish(self, channel, message):
        self._check()
        self.published.append((channel, message))
        return 1


@pytest.fixture
def clock():
    clock = SimulationClock()
    clock.start_virtual(START)
    return clock


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def broadcaster():
    return LocalBroadcaster()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def engine(store, broadcaster, clock):
    """Engine with three coins and no bots."""
    engine = MarketEngine(store, broadcaster, clock, bot_count=5)
    for coin_id, name, price, base_vol, liquidity in [
        ("RCOIN", "RealCoin", 1.0, 0.015, 5000.0),
        ("TOAST", "ToastCoin", 2.0, 0.025, 1000.0),
        ("MOON", "MoonShot", 0.15, 0.06, 800.0),
    ]:
        engine.coins[coin_id] = Coin(coin_id, name, price, base_vol, liquidity, clock=clock)
    engine.state = 'running'
    return engine


@pytest.fixture
def make_bot(engine):
    def _make(personality="ape-alex", cash=1000.0, target="TOAST", watched=None, holdings=None, bot_id=None):
        portfolio = Portfolio(cash=cash, holdings={
            coin_id: Holding(amount=amount, average_cost=cost) for coin_id, (amount, cost) in (holdings or {}).items()
        })
        bot = Bot(
            id=bot_id or f"bot-{personality.replace('-', '')}-{len(engine.bots) + 1}",
            personality=personality,
            target_coin=target,
            portfolio=portfolio,
            watched_coins=watched,
            last_action=engine.clock.now(),
        )
        engine.bots[bot.id] = bot
        return bot
    return _make
