"""
Alignment of demand readings with weather observations.
Weather timestamps mark the start of an hour and demand timestamps its end,
so weather at 00:00 pairs with demand at 01:00.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from models.data_models import DemandRecord, MergedRecord, WeatherObservation

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_REGION_MAPPINGS = {
    'manila': 'CLUZ',
    'cebu': 'CVIS',
    'davao': 'CMIN',
}


class RegionMapper:
    """
    Maps weather locations (city names or region codes) to demand region codes.
    """

    def __init__(self, mappings: Optional[Dict[str, str]] = None):
        """
        Initialize the region mapper.

        Args:
            mappings: City keyword to region code (Luzon/Visayas/Mindanao defaults if None)
        """
        self.mappings = {k.lower(): v for k, v in (mappings or DEFAULT_REGION_MAPPINGS).items()}
        self.region_codes = set(self.mappings.values())

    def resolve(self, location: str) -> Optional[str]:
        """
        Region code for a location.

        Region codes map to themselves; city names match when they contain a
        configured keyword ('Cebu City' matches 'cebu').

        Returns:
            Region code, or None when the location is unknown
        """
        if location in self.region_codes:
            return location

        name = location.strip().lower()
        for keyword, region in self.mappings.items():
            if keyword in name:
                return region
        return None

    def __contains__(self, location: str) -> bool:
        return self.resolve(location) is not None


def weather_to_demand_time(timestamp: datetime, lead_hours: int = 1) -> datetime:
    """Demand (hour ending) timestamp matching a weather (hour starting) timestamp."""
    return timestamp + timedelta(hours=lead_hours)


@dataclass
class MergeSummary:
    """Result of a demand and weather merge."""
    records: List[MergedRecord] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    matched: int = 0
    unmatched_demand: int = 0
    unmatched_weather: int = 0


def merge_demand_and_weather(demand_records: Iterable[DemandRecord],
                             weather_observations: Iterable[WeatherObservation],
                             region_mapper: Optional[RegionMapper] = None,
                             lead_hours: int = 1) -> MergeSummary:
    """
    Join demand readings with the weather of the hour they end.

    Args:
        demand_records: Raw demand readings
        weather_observations: Weather observations keyed by city or region code
        region_mapper: Location to region mapping
        lead_hours: Offset from weather timestamp to demand timestamp

    Returns:
        MergeSummary with records ordered by (timestamp, region)
    """
    region_mapper = region_mapper or RegionMapper()

    demand_map: Dict[Tuple[str, datetime], DemandRecord] = {}
    for record in demand_records:
        demand_map[(record.region, record.timestamp)] = record

    weather_map = {}
    unknown = set()
    for obs in weather_observations:
        region = region_mapper.resolve(obs.location)
        if region is None:
            unknown.add(obs.location)
            continue
        weather_map[(region, weather_to_demand_time(obs.timestamp, lead_hours))] = obs.weather

    for location in sorted(unknown):
        logger.warning(f"Unknown weather location: {location}")

    records = []
    for key, demand in demand_map.items():
        weather = weather_map.get(key)
        if weather is not None:
            records.append(MergedRecord(demand.timestamp, demand.region, demand.demand, weather))

    records.sort(key=lambda r: (r.timestamp, r.region))
    matched = len(records)

    summary = MergeSummary(
        records=records,
        regions=sorted({r.region for r in records}),
        start=records[0].timestamp if records else None,
        end=records[-1].timestamp if records else None,
        matched=matched,
        unmatched_demand=len(demand_map) - matched,
        unmatched_weather=len(weather_map) - matched,
    )

    logger.info(f"Merged {matched} records for regions {', '.join(summary.regions) or 'none'} "
                f"({summary.unmatched_demand} demand and {summary.unmatched_weather} weather unmatched)")
    return summary
