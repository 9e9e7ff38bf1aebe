"""
Calendar helpers shared by feature derivation, history indexing and profiling.
"""

from datetime import date, datetime
from enum import IntEnum
from typing import Iterable, Optional, Union
import logging
import holidays

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DayType(IntEnum):
    """Recurring day classification used for demand profiles."""
    WORKDAY = 0
    SATURDAY = 1
    SUNDAY = 2  # Sundays and holidays


class HolidayCalendar:
    """
    Regional holiday calendar.
    Combines the `holidays` package calendar for a country with explicit extra dates.
    """

    def __init__(self, country: Optional[str] = 'PH', extra_dates: Iterable[Union[str, date]] = ()):
        """
        Initialize the holiday calendar.

        Args:
            country: ISO country code for the `holidays` package, or None for extra dates only
            extra_dates: Additional holiday dates (ISO strings or date objects)
        """
        self.country = country or None
        self._country_holidays = holidays.country_holidays(self.country) if self.country else None
        self._extra = {self._to_date(d) for d in extra_dates}

    @staticmethod
    def _to_date(value: Union[str, date]) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value))

    def is_holiday(self, when: Union[date, datetime]) -> bool:
        day = when.date() if isinstance(when, datetime) else when
        if day in self._extra:
            return True
        return self._country_holidays is not None and day in self._country_holidays

    def __contains__(self, when) -> bool:
        return self.is_holiday(when)

    def __repr__(self) -> str:
        return f"HolidayCalendar(country={self.country!r}, extra_dates={len(self._extra)})"


def day_of_week(timestamp: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return timestamp.isoweekday() % 7


def day_type_for(timestamp: datetime, calendar: Optional[HolidayCalendar] = None) -> DayType:
    """Classify a timestamp as workday, Saturday or Sunday/holiday."""
    if calendar is not None and calendar.is_holiday(timestamp):
        return DayType.SUNDAY
    weekday = timestamp.isoweekday()
    if weekday == 7:
        return DayType.SUNDAY
    if weekday == 6:
        return DayType.SATURDAY
    return DayType.WORKDAY
