"""
Clock Module

Time source for the ledger. Daily withdrawal limits reset on calendar
date changes in the local time zone of the running process, so the engine
asks a clock for "now" and "today" instead of reading the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
import threading


class Clock(ABC):
    """Abstract time source"""

    @abstractmethod
    def now(self) -> datetime:
        """Current local date and time"""
        pass

    def today(self) -> date:
        """Current local calendar date"""
        return self.now().date()


class SystemClock(Clock):
    """Process wall clock in local time"""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """
    Manually driven clock for tests and simulations

    Time only moves when advance() or set() is called.
    """

    def __init__(self, start: datetime):
        self._current = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def set(self, moment: datetime) -> None:
        with self._lock:
            self._current = moment

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (days=1, hours=2, ...)"""
        with self._lock:
            self._current = self._current + timedelta(**kwargs)
            return self._current
