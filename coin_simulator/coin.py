# coin_simulator/coin.py

import logging
import math
import random
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, List, NamedTuple, Optional

from .clock import SimulationClock
from .config import (
    BASE_PRICE_IMPACT, LIQUIDITY_RECOVERY_DELAY_SECONDS, LIQUIDITY_RECOVERY_FRACTION,
    VOLATILITY_DT, VOLATILITY_DRIFT, JUMP_PROBABILITY, LONG_TERM_PRICE,
    MEAN_REVERSION_STRENGTH, MIN_PRICE, MAX_PRICE, MAX_VOLATILITY_PRICE,
)
from .models import CoinRecord
from .price_history import PriceHistoryManager
from .store import Collection
from .utils import clamp, in_open_range, is_finite

log = logging.getLogger(__name__)


class LiquidityRecovery(NamedTuple):
    due: datetime
    amount: float
    cap: float


class Coin:
    """A tradable coin whose price moves by trade impact and a stochastic step."""

    def __init__(self, id: str, name: str, price: float, base_vol: float, liquidity: float,
                 last_updated: Optional[datetime] = None, clock: Optional[SimulationClock] = None):
        self.id = id
        self.name = name
        self.price = price
        self.base_vol = base_vol
        self.liquidity = liquidity
        self.clock = clock or SimulationClock()
        self.last_updated = last_updated or self.clock.now()
        self._recoveries: Deque[LiquidityRecovery] = deque()

    def __repr__(self):
        return f"<Coin {self.id} price={self.price:.6g} liquidity={self.liquidity:.2f}>"

    @property
    def pending_recoveries(self) -> int:
        return len(self._recoveries)

    def quote_price_impact(self, trade_volume: float, side: str) -> Optional[float]:
        """Price a trade would move the coin to, or None if the move would be rejected."""
        if not is_finite(trade_volume) or trade_volume <= 0:
            return None

        relative_size = trade_volume / self.liquidity if self.liquidity > 0 else math.inf
        if relative_size < 0.01:
            impact_multiplier = relative_size * 0.5
        elif relative_size < 0.1:
            impact_multiplier = relative_size
        else:
            # Slippage grows faster than size once depth is exhausted
            impact_multiplier = 0.1 + (relative_size - 0.1) ** 1.3

        impact = BASE_PRICE_IMPACT * impact_multiplier * (1 if side == 'buy' else -1)
        try:
            new_price = self.price * math.exp(impact)
        except OverflowError:
            return None
        return new_price if is_finite(new_price) and 0 < new_price < MAX_PRICE else None

    def apply_price_impact(self, trade_volume: float, side: str,
                           history: Optional[PriceHistoryManager] = None) -> float:
        """Move the price by a trade of `trade_volume` units and return the new price."""
        new_price = self.quote_price_impact(trade_volume, side)
        if new_price is None:
            if is_finite(trade_volume) and trade_volume > 0:
                log.debug(f"Discarded price impact on {self.id}: {trade_volume} {side}")
            return self.price

        depth = self.liquidity
        self.price = new_price
        consumed = min(trade_volume * 0.1, depth * 0.05)
        self.liquidity = max(depth * 0.5, depth - consumed)

        now = self.clock.now()
        self._recoveries.append(LiquidityRecovery(
            due=now + timedelta(seconds=LIQUIDITY_RECOVERY_DELAY_SECONDS),
            amount=consumed * LIQUIDITY_RECOVERY_FRACTION,
            cap=depth,
        ))
        self.last_updated = now
        if history is not None:
            history.record_price(self.id, self.price, trade_volume)
        return self.price

    def process_scheduled(self, now: Optional[datetime] = None) -> int:
        """Apply every liquidity recovery that has come due. Returns how many ran."""
        now = now or self.clock.now()
        applied = 0
        while self._recoveries and self._recoveries[0].due <= now:
            recovery = self._recoveries.popleft()
            self.liquidity = min(recovery.cap, self.liquidity + recovery.amount)
            applied += 1
        return applied

    def add_volatility(self, history: Optional[PriceHistoryManager] = None):
        """One stochastic step: GBM diffusion, a rare jump, and a weak pull toward 1.0."""
        u1 = 1.0 - random.random()
        u2 = random.random()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

        diffusion = self.base_vol * math.sqrt(VOLATILITY_DT) * z0
        base_change = math.exp((VOLATILITY_DRIFT - 0.5 * self.base_vol * self.base_vol) * VOLATILITY_DT + diffusion)

        jump = 1.0
        if random.random() < JUMP_PROBABILITY:
            direction = -1 if random.random() < 0.5 else 1
            jump = 1.0 + direction * self.base_vol * 5 * random.random()

        new_price = self.price * base_change * jump
        if is_finite(new_price) and new_price > 0:
            new_price *= 1.0 - MEAN_REVERSION_STRENGTH * math.log(new_price / LONG_TERM_PRICE)

        if in_open_range(new_price, MIN_PRICE, MAX_VOLATILITY_PRICE):
            self.price = new_price
        else:
            self.price = clamp(self.price if is_finite(self.price) else 1.0, 0.001, 1000.0)

        self.last_updated = self.clock.now()
        if history is not None:
            implied_volume = abs(base_change * jump - 1) * self.liquidity * 0.1
            history.record_price(self.id, self.price, implied_volume)

    def validate(self):
        """Replace corrupted fields with safe defaults in place."""
        if not in_open_range(self.price, 0, MAX_PRICE):
            log.warning(f"Coin {self.id} had invalid price {self.price}, resetting to 1.0")
            self.price = 1.0
        if not in_open_range(self.base_vol, 0, 1):
            self.base_vol = 0.02
        if not in_open_range(self.liquidity, 0, 1e9):
            self.liquidity = 1000.0

    def to_record(self) -> CoinRecord:
        return CoinRecord(
            id=self.id, name=self.name, price=self.price, base_vol=self.base_vol,
            liquidity=self.liquidity, last_updated=self.last_updated,
        )

    @classmethod
    def from_record(cls, record: CoinRecord, clock: Optional[SimulationClock] = None) -> 'Coin':
        coin = cls(record.id, record.name, record.price, record.base_vol, record.liquidity,
                   last_updated=record.last_updated, clock=clock)
        coin.validate()
        return coin

    async def save(self, collection: Collection[CoinRecord]):
        self.validate()
        await collection.set(self.id, self.to_record())

    @classmethod
    async def load(cls, collection: Collection[CoinRecord], coin_id: str,
                   clock: Optional[SimulationClock] = None) -> Optional['Coin']:
        record = await collection.get(coin_id)
        return cls.from_record(record, clock) if record else None

    @classmethod
    async def load_all(cls, collection: Collection[CoinRecord],
                       clock: Optional[SimulationClock] = None) -> List['Coin']:
        coins = []
        for coin_id in await collection.keys():
            coin = await cls.load(collection, coin_id, clock)
            if coin:
                coins.append(coin)
        return coins
