# coin_simulator/events.py

import logging
import random
from typing import Dict, List, Mapping, Optional, Tuple

from .broadcast import Broadcaster
from .clock import SimulationClock
from .coin import Coin
from .config import (
    CORRELATION_BREAK_INTENSITY, EVENT_PROBABILITY, EVENT_SHOCK_WINDOW_SECONDS, MAX_PRICE,
)
from .models import MarketEvent
from .price_history import PriceHistoryManager
from .utils import clamp, is_finite

log = logging.getLogger(__name__)

EVENT_TYPES = (
    'flash_crash', 'pump', 'rug_pull', 'whale_dump',
    'news_spike', 'correlation_break', 'liquidity_crisis',
)
SEVERITIES = ('minor', 'moderate', 'major', 'extreme')


def _by_severity(severity: str, extreme, major, moderate, minor=None):
    return {'extreme': extreme, 'major': major, 'moderate': moderate}.get(
        severity, moderate if minor is None else minor)


def event_parameters(event_type: str, severity: str, coin_name: str) -> Tuple[float, float, float, str]:
    """(price multiplier, volatility multiplier, duration seconds, message) for one event."""
    if event_type == 'flash_crash':
        price = _by_severity(severity, 0.4, 0.6, 0.8, 0.9)
        vol = _by_severity(severity, 5.0, 3.0, 2.0)
        duration = _by_severity(severity, 120, 90, 60)
        message = f"💥 FLASH CRASH: {coin_name} plummets {round((1 - price) * 100)}% in seconds!"
    elif event_type == 'pump':
        price = _by_severity(severity, 3.0, 2.2, 1.6, 1.3)
        vol = _by_severity(severity, 4.0, 2.5, 2.0)
        duration = _by_severity(severity, 180, 120, 90)
        message = f"🚀 MASSIVE PUMP: {coin_name} rockets {round((price - 1) * 100)}% to the moon!"
    elif event_type == 'rug_pull':
        price, vol, duration = 0.1, 10.0, 300
        message = f"🪤 RUG PULL ALERT: {coin_name} developers have vanished! -90% and falling!"
    elif event_type == 'whale_dump':
        price = _by_severity(severity, 0.3, 0.5, 0.7)
        vol, duration = 3.0, 60
        message = f"🐋 WHALE DUMP: Massive {coin_name} sell-off detected! Price cascading down!"
    elif event_type == 'news_spike':
        if random.random() < 0.5:
            price = _by_severity(severity, 2.5, 1.8, 1.4)
        else:
            price = _by_severity(severity, 0.5, 0.7, 0.85)
        vol, duration = 2.5, 120
        positive = price > 1
        message = (f"📰 BREAKING NEWS: {'Bullish' if positive else 'Bearish'} news hits {coin_name}! "
                   f"{'+' if positive else ''}{round((price - 1) * 100)}%")
    elif event_type == 'correlation_break':
        price = 1.3 if random.random() < 0.5 else 0.8
        vol, duration = 2.0, 180
        message = "⚡ CORRELATION BREAKDOWN: Market relationships breaking down, chaos ensues!"
    elif event_type == 'liquidity_crisis':
        price, vol, duration = 0.6, 4.0, 240
        message = f"💸 LIQUIDITY CRISIS: {coin_name} liquidity evaporates, spreads widen!"
    else:
        raise ValueError(f"Unknown event type '{event_type}'")
    return price, vol, float(duration), message


class MarketEventsSystem:
    """Random exogenous shocks and their decaying effect on coin prices."""

    def __init__(self, broadcaster: Broadcaster, clock: Optional[SimulationClock] = None):
        self.broadcaster = broadcaster
        self.clock = clock or SimulationClock()
        self.active_events: Dict[str, MarketEvent] = {}
        self._event_counter = 0

    async def generate_random_event(self, coins: Mapping[str, Coin],
                                    probability: float = EVENT_PROBABILITY) -> Optional[MarketEvent]:
        if not coins or random.random() > probability:
            return None
        event_type = random.choice(EVENT_TYPES)
        severity = random.choice(SEVERITIES)
        target = random.choice(list(coins))
        return await self.create_event(event_type, severity, target, coins)

    async def create_event(self, event_type: str, severity: str, target_coin: Optional[str],
                           coins: Mapping[str, Coin]) -> MarketEvent:
        """Register an event and announce it. correlation_break never has a target."""
        coin = coins.get(target_coin) if target_coin else None
        price_mult, vol_mult, duration, message = event_parameters(
            event_type, severity, coin.name if coin else (target_coin or ''))

        event = MarketEvent(
            id=f"event-{self._event_counter}",
            type=event_type,
            target_coin=None if event_type == 'correlation_break' else target_coin,
            severity=severity,
            duration=duration,
            price_multiplier=price_mult,
            volatility_multiplier=vol_mult,
            message=message,
            timestamp=self.clock.now(),
        )
        self._event_counter += 1
        self.active_events[event.id] = event

        log.info(f"MARKET EVENT: {event.message}")
        await self.broadcaster.broadcast_to_all_rooms({"type": "market_event", "event": event.summary()})
        return event

    async def apply_event_effects(self, coins: Mapping[str, Coin], history: Optional[PriceHistoryManager] = None):
        now = self.clock.now()
        expired: List[str] = []

        for event_id, event in self.active_events.items():
            elapsed = (now - event.timestamp).total_seconds()
            if elapsed > event.duration:
                expired.append(event_id)
                continue
            if event.target_coin:
                coin = coins.get(event.target_coin)
                if coin:
                    self._apply_to_coin(coin, event, elapsed, history)
            elif event.type == 'correlation_break':
                for coin in coins.values():
                    self._apply_to_coin(coin, event, elapsed, history, CORRELATION_BREAK_INTENSITY)

        for event_id in expired:
            event = self.active_events.pop(event_id)
            event.active = False
            log.info(f"Event concluded: {event.message}")
            await self.broadcaster.broadcast_to_all_rooms({"type": "market_event_ended", "eventId": event.id})

    def _apply_to_coin(self, coin: Coin, event: MarketEvent, elapsed: float,
                       history: Optional[PriceHistoryManager], intensity_multiplier: float = 1.0):
        intensity = max(0.1, 1.0 - elapsed / event.duration) * intensity_multiplier

        # The multiplicative shock lands once per coin, inside the opening window
        if elapsed < EVENT_SHOCK_WINDOW_SECONDS and coin.id not in event._shocked_coins:
            event._shocked_coins.add(coin.id)
            coin.price *= 1 + (event.price_multiplier - 1) * intensity
            if not is_finite(coin.price) or coin.price <= 0 or coin.price > MAX_PRICE:
                coin.price = clamp(coin.price if is_finite(coin.price) and coin.price > 0 else 1.0, 0.001, 1e6)

        extra_vol = (event.volatility_multiplier - 1) * intensity * 0.1
        jump = (random.random() - 0.5) * extra_vol
        new_price = coin.price * (1 + jump)
        if is_finite(new_price) and 0 < new_price < MAX_PRICE:
            coin.price = new_price

        coin.last_updated = self.clock.now()
        if history is not None:
            history.record_price(coin.id, coin.price, abs(jump) * 100)

    def get_active_events(self) -> List[MarketEvent]:
        return list(self.active_events.values())
