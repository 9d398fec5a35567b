# coin_simulator/clock.py

import logging
from datetime import datetime, timedelta
from typing import Optional

from .utils import utcnow

log = logging.getLogger(__name__)


class SimulationClock:
    """Wall clock that can be pinned to a virtual time.

    The fast-forward bootstrap pins the clock to a moment in the past and
    advances it tick by tick; everything that timestamps prices, trades,
    events or bot actions reads the time from here.
    """

    def __init__(self):
        self._virtual_now: Optional[datetime] = None

    @property
    def is_virtual(self) -> bool:
        return self._virtual_now is not None

    def now(self) -> datetime:
        if self._virtual_now is not None:
            return self._virtual_now
        return utcnow()

    def start_virtual(self, start: datetime):
        self._virtual_now = start
        log.debug(f"Clock pinned to virtual time {start.isoformat()}")

    def advance(self, seconds: float):
        if self._virtual_now is None:
            raise RuntimeError("Cannot advance a real-time clock")
        self._virtual_now += timedelta(seconds=seconds)

    def stop_virtual(self):
        if self._virtual_now is not None:
            log.debug(f"Clock released at virtual time {self._virtual_now.isoformat()}")
        self._virtual_now = None
