"""
Trading Window

Decides whether new credit spread alerts may be generated right now.

**Trading Hours (ET):**
- Pre-Market: before 9:30 AM
- Regular Session: 9:30 AM - 4:00 PM
- Closing Window: last 15 minutes (no new alerts, open ones still evaluated)
- After Hours: after 4:00 PM

Usage:
    window = TradingWindow()
    status = window.status()
    if status.can_open_new_alerts:
        ...
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from gexsignal.core.market_time import MARKET_CLOSE, MARKET_OPEN, MARKET_TZ, hours_until_close, to_market_time


class WindowState(str, Enum):
    WEEKEND = "WEEKEND"
    HOLIDAY = "HOLIDAY"
    PRE_MARKET = "PRE_MARKET"
    ACTIVE = "ACTIVE"
    CLOSING_WINDOW = "CLOSING_WINDOW"
    AFTER_HOURS = "AFTER_HOURS"


@dataclass(frozen=True, slots=True)
class WindowStatus:
    state: WindowState
    market_open: bool
    hours_remaining: float
    message: str

    @property
    def can_open_new_alerts(self) -> bool:
        return self.state == WindowState.ACTIVE


class TradingWindow:
    """
    NYSE session window with holidays.

    **Holidays (2026):**
    New Year's Day, MLK Day, Washington's Birthday, Good Friday,
    Memorial Day, Juneteenth, Independence Day (observed), Labor Day,
    Thanksgiving, Christmas.
    """

    HOLIDAYS = frozenset([
        date(2026, 1, 1),   # New Year's Day
        date(2026, 1, 19),  # MLK Day
        date(2026, 2, 16),  # Washington's Birthday
        date(2026, 4, 3),   # Good Friday
        date(2026, 5, 25),  # Memorial Day
        date(2026, 6, 19),  # Juneteenth
        date(2026, 7, 3),   # Independence Day (observed)
        date(2026, 9, 7),   # Labor Day
        date(2026, 11, 26), # Thanksgiving
        date(2026, 12, 25), # Christmas
        date(2027, 1, 1),   # New Year's Day
    ])

    def __init__(self, timezone: str = MARKET_TZ, closing_buffer_minutes: int = 15):
        self.timezone = timezone
        self.closing_buffer = timedelta(minutes=closing_buffer_minutes)

    def is_trading_day(self, check_date: date) -> bool:
        return check_date.weekday() < 5 and check_date not in self.HOLIDAYS

    def status(self, now: Optional[datetime] = None) -> WindowStatus:
        """
        Classify a moment into a window state.

        Args:
            now: Time to check (default: now). Naive datetimes are exchange local.
        """
        local = to_market_time(now, self.timezone)
        today = local.date()
        current = local.time()
        remaining = hours_until_close(local, self.timezone)

        if today.weekday() >= 5:
            return WindowStatus(WindowState.WEEKEND, False, 0.0, "Market closed for the weekend")
        if today in self.HOLIDAYS:
            return WindowStatus(WindowState.HOLIDAY, False, 0.0, "Market closed for holiday")
        if current < MARKET_OPEN:
            return WindowStatus(WindowState.PRE_MARKET, False, remaining, "Pre-market, opens 9:30 ET")
        if current >= MARKET_CLOSE:
            return WindowStatus(WindowState.AFTER_HOURS, False, 0.0, "Market closed")

        closing_start = (datetime.combine(today, MARKET_CLOSE) - self.closing_buffer).time()
        if current >= closing_start:
            return WindowStatus(
                WindowState.CLOSING_WINDOW,
                True,
                remaining,
                f"Closing window, no new alerts after {closing_start:%H:%M} ET",
            )

        return WindowStatus(WindowState.ACTIVE, True, remaining, f"{remaining:.1f}h until close")

    def hours_remaining(self, now: Optional[datetime] = None) -> float:
        """Hours until the 16:00 close (0 after the close)."""
        return hours_until_close(now, self.timezone)

