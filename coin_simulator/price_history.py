# coin_simulator/price_history.py

import bisect
import logging
from collections import deque
from datetime import datetime, timedelta
from itertools import islice
from typing import Deque, Dict, List, NamedTuple, Optional

from .clock import SimulationClock
from .config import MAX_CANDLES, DEFAULT_CANDLES, PRICE_HISTORY_MAX_POINTS, TIMEFRAME_MINUTES
from .models import Candle

log = logging.getLogger(__name__)


class PricePoint(NamedTuple):
    price: float
    timestamp: datetime
    volume: float


class PriceHistoryManager:
    """Per-coin ring buffer of recorded prices, aggregated into candles on demand.

    Points are appended in clock order, so each buffer is sorted by timestamp
    oldest-first and candle buckets can be located with a binary search.
    """

    def __init__(self, clock: Optional[SimulationClock] = None, max_points: int = PRICE_HISTORY_MAX_POINTS):
        self.clock = clock or SimulationClock()
        self.max_points = max_points
        self._data: Dict[str, Deque[PricePoint]] = {}

    def record_price(self, coin_id: str, price: float, volume: float = 0.0, timestamp: Optional[datetime] = None):
        points = self._data.get(coin_id)
        if points is None:
            points = self._data[coin_id] = deque(maxlen=self.max_points)
        points.append(PricePoint(price, timestamp or self.clock.now(), volume))

    def get_points(self, coin_id: str) -> List[PricePoint]:
        return list(self._data.get(coin_id, ()))

    def get_recent_points(self, coin_id: str, count: int) -> List[PricePoint]:
        points = self._data.get(coin_id, ())
        return list(islice(points, max(0, len(points) - count), None))

    def point_count(self, coin_id: str) -> int:
        return len(self._data.get(coin_id, ()))

    def latest_timestamp(self, coin_id: str) -> Optional[datetime]:
        points = self._data.get(coin_id)
        return points[-1].timestamp if points else None

    def clear(self, coin_id: str):
        self._data.pop(coin_id, None)

    def get_price_history(self, coin_id: str, timeframe: str, limit: int = DEFAULT_CANDLES) -> List[Candle]:
        """Return exactly min(limit, 100) candles, oldest first.

        Buckets are [end - interval, end), walking backward from the newest
        point (or from now when nothing has been recorded). Empty buckets are
        filled with a flat candle at the last known price at or before the
        bucket's end. An unknown timeframe is served as 1m.
        """
        if timeframe not in TIMEFRAME_MINUTES:
            log.warning(f"Unknown timeframe '{timeframe}' for {coin_id}, using 1m")
            timeframe = "1m"
        limit = max(0, min(limit, MAX_CANDLES))
        interval = timedelta(minutes=TIMEFRAME_MINUTES[timeframe])

        points = self.get_points(coin_id)
        timestamps = [p.timestamp for p in points]
        anchor = timestamps[-1] if points else self.clock.now()

        candles: List[Candle] = []
        for i in range(limit):
            end = anchor - i * interval
            start = end - interval
            lo = bisect.bisect_left(timestamps, start)
            hi = bisect.bisect_left(timestamps, end)

            if hi > lo:
                bucket = points[lo:hi]
                prices = [p.price for p in bucket]
                candles.append(Candle(
                    coin_id=coin_id, timeframe=timeframe, timestamp=start,
                    open=prices[0], high=max(prices), low=min(prices), close=prices[-1],
                    volume=sum(p.volume for p in bucket),
                ))
            else:
                # Latest point at or before the bucket end, else the oldest known price
                at_or_before = bisect.bisect_right(timestamps, end)
                if at_or_before > 0:
                    price = points[at_or_before - 1].price
                elif points:
                    price = points[0].price
                else:
                    price = 1.0
                candles.append(Candle(
                    coin_id=coin_id, timeframe=timeframe, timestamp=start,
                    open=price, high=price, low=price, close=price, volume=0.0,
                ))

        candles.reverse()
        return candles
