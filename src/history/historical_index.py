"""
In-memory historical index for lag lookups during forecasting.
Built once per run from historical data and extended only through forecast write-back.
"""

from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from features.calendar import DayType, HolidayCalendar, day_type_for
from models.data_models import DemandRecord, MergedRecord
from utils.exceptions import HistoryOrderError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SeriesKey = Tuple[str, datetime]          # (region, timestamp)
SlotKey = Tuple[str, int, DayType]        # (region, hour, day type)


@dataclass(frozen=True)
class HistoryEntry:
    """Historical observation used for similar-day search."""
    timestamp: datetime
    hour: int
    day_type: DayType
    demand: float
    temperature: Optional[float] = None


class RunningAverage:
    """Accumulates a running sum and count."""

    __slots__ = ('total', 'count')

    def __init__(self):
        self.total = 0.0
        self.count = 0

    def add(self, value: float) -> None:
        self.total += value
        self.count += 1

    @property
    def mean(self) -> Optional[float]:
        return self.total / self.count if self.count else None


class HistoricalIndex:
    """
    Lookup structures over historical demand and temperature.

    Forecast values written back with `record_forecast` become visible to exact
    lookups. Timestamps written per region must be strictly increasing, so
    forecast timesteps have to be processed in time order.
    """

    def __init__(self, holiday_calendar: Optional[HolidayCalendar] = None):
        """
        Initialize an empty index.

        Args:
            holiday_calendar: Calendar used to classify day types (Philippine calendar if None)
        """
        self.holiday_calendar = holiday_calendar if holiday_calendar is not None else HolidayCalendar()

        self._demand: Dict[SeriesKey, float] = {}
        self._temperature: Dict[SeriesKey, float] = {}
        self._typical_demand: Dict[SlotKey, RunningAverage] = defaultdict(RunningAverage)
        self._typical_temperature: Dict[SlotKey, RunningAverage] = defaultdict(RunningAverage)
        self._last_demand: Dict[str, Tuple[float, datetime]] = {}
        self._last_temperature: Dict[str, Tuple[float, datetime]] = {}

        # Similar-day search lists, ascending by time, partitioned by slot for bisection
        self._entries: Dict[SlotKey, List[HistoryEntry]] = defaultdict(list)
        self._entry_times: Dict[SlotKey, List[datetime]] = {}

        self._last_history_ts: Dict[str, datetime] = {}
        self._last_forecast_ts: Dict[str, datetime] = {}
        self._forecast_count = 0

    @classmethod
    def build(cls,
              merged_records: Iterable[MergedRecord],
              demand_records: Iterable[DemandRecord] = (),
              holiday_calendar: Optional[HolidayCalendar] = None) -> 'HistoricalIndex':
        """
        Build the index from historical data.

        Args:
            merged_records: Demand records with aligned weather
            demand_records: Raw demand records; readings already covered by merged records are ignored
            holiday_calendar: Calendar used to classify day types

        Returns:
            Populated HistoricalIndex
        """
        index = cls(holiday_calendar)

        for record in merged_records:
            index._add_observation(record.region, record.timestamp, record.demand,
                                   record.weather.temperature)

        extra = 0
        for record in demand_records:
            if (record.region, record.timestamp) in index._demand:
                continue
            index._add_observation(record.region, record.timestamp, record.demand, None)
            extra += 1

        index._finalize()
        logger.info(f"Historical index built: {len(index._demand)} demand readings "
                    f"({extra} without weather), {len(index._temperature)} temperature readings, "
                    f"regions: {', '.join(index.regions)}")
        return index

    def _add_observation(self, region: str, timestamp: datetime, demand: float,
                         temperature: Optional[float]) -> None:
        key = (region, timestamp)
        if key in self._demand:
            logger.debug(f"Duplicate reading for {region} at {timestamp}, keeping the first")
            return

        day_type = self.day_type(timestamp)
        slot = (region, timestamp.hour, day_type)

        self._demand[key] = demand
        self._typical_demand[slot].add(demand)
        self._update_last(self._last_demand, region, demand, timestamp)

        if temperature is not None:
            self._temperature[key] = temperature
            self._typical_temperature[slot].add(temperature)
            self._update_last(self._last_temperature, region, temperature, timestamp)

        self._entries[slot].append(HistoryEntry(timestamp, timestamp.hour, day_type, demand, temperature))

        last = self._last_history_ts.get(region)
        if last is None or timestamp > last:
            self._last_history_ts[region] = timestamp

    @staticmethod
    def _update_last(tracker: Dict[str, Tuple[float, datetime]], region: str,
                     value: float, timestamp: datetime) -> None:
        current = tracker.get(region)
        if current is None or timestamp > current[1]:
            tracker[region] = (value, timestamp)

    def _finalize(self) -> None:
        for slot, entries in self._entries.items():
            entries.sort(key=lambda e: e.timestamp)
            self._entry_times[slot] = [e.timestamp for e in entries]

    # Lookups

    def day_type(self, timestamp: datetime) -> DayType:
        return day_type_for(timestamp, self.holiday_calendar)

    @property
    def regions(self) -> List[str]:
        return sorted(self._last_history_ts)

    def last_history_timestamp(self, region: str) -> Optional[datetime]:
        return self._last_history_ts.get(region)

    def demand_at(self, region: str, timestamp: datetime) -> Optional[float]:
        return self._demand.get((region, timestamp))

    def temperature_at(self, region: str, timestamp: datetime) -> Optional[float]:
        return self._temperature.get((region, timestamp))

    def typical_demand(self, region: str, hour: int, day_type: DayType) -> Optional[float]:
        avg = self._typical_demand.get((region, hour, DayType(day_type)))
        return avg.mean if avg else None

    def typical_temperature(self, region: str, hour: int, day_type: DayType) -> Optional[float]:
        avg = self._typical_temperature.get((region, hour, DayType(day_type)))
        return avg.mean if avg else None

    def last_known_demand(self, region: str) -> Optional[float]:
        last = self._last_demand.get(region)
        return last[0] if last else None

    def last_known_temperature(self, region: str) -> Optional[float]:
        last = self._last_temperature.get(region)
        return last[0] if last else None

    def similar_entries(self, region: str, hour: int, day_type: DayType,
                        before: datetime) -> Iterable[HistoryEntry]:
        """Entries for a slot strictly before `before`, most recent first."""
        slot = (region, hour, DayType(day_type))
        entries = self._entries.get(slot)
        if not entries:
            return
        stop = bisect_left(self._entry_times[slot], before)
        for i in range(stop - 1, -1, -1):
            yield entries[i]

    def similar_days_demand(self, region: str, target: datetime,
                            reference_temperature: Optional[float],
                            temperature_tolerance: float = 5.0,
                            max_days: int = 7) -> Optional[float]:
        """
        Average demand over the most recent similar days.

        Scans the same hour and day type strictly before `target`, newest first,
        keeping at most one reading per calendar date whose temperature lies within
        the tolerance of the reference. Readings without a temperature, or a missing
        reference temperature, are not filtered on temperature.
        """
        day_type = self.day_type(target)
        seen_dates = set()
        total = 0.0

        for entry in self.similar_entries(region, target.hour, day_type, target):
            if (reference_temperature is not None and entry.temperature is not None
                    and abs(entry.temperature - reference_temperature) > temperature_tolerance):
                continue
            entry_date = entry.timestamp.date()
            if entry_date in seen_dates:
                continue
            seen_dates.add(entry_date)
            total += entry.demand
            if len(seen_dates) >= max_days:
                break

        return total / len(seen_dates) if seen_dates else None

    # Forecast write-back

    def record_forecast(self, region: str, timestamp: datetime, demand: float,
                        temperature: Optional[float] = None) -> None:
        """
        Write a forecast value so later timesteps can use it as lag history.

        Raises:
            HistoryOrderError: If timestamp is not after the previous forecast for the region
        """
        previous = self._last_forecast_ts.get(region)
        if previous is not None and timestamp <= previous:
            raise HistoryOrderError(
                f"Forecast for {region} at {timestamp} is not after previous forecast at {previous}")

        key = (region, timestamp)
        if key in self._demand:
            # Observed readings take precedence over forecasts
            logger.debug(f"Keeping historical reading for {region} at {timestamp}")
        else:
            self._demand[key] = demand
        if temperature is not None and key not in self._temperature:
            self._temperature[key] = temperature
        self._last_forecast_ts[region] = timestamp
        self._forecast_count += 1

    @property
    def forecast_count(self) -> int:
        return self._forecast_count

    def __len__(self) -> int:
        return len(self._demand)
