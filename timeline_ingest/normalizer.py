"""
Point normalization.

Turns RawPoint samples with mixed encodings into canonical NormalizedPoint
records:
- E7 integers are decoded to decimal degrees
- ISO-8601 strings and epoch milliseconds become UTC datetimes
- missing addresses get a sentinel value
- the result is stably sorted by timestamp
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

import pandas as pd

from .coordinates import e7_to_degrees, is_valid_coordinate
from .parser import RawPoint, coerce_float

logger = logging.getLogger(__name__)


UNKNOWN_ADDRESS = "unknown"
ID_PREFIX = "takeout"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Accepted by pandas as the current time, rejected here
RELATIVE_WORDS = ('now', 'today')

FRAME_COLUMNS = ['id', 'timestamp', 'latitude', 'longitude', 'address', 'accuracy_meters']


def utc_now() -> datetime:
    """Default clock used when a sample carries no timestamp."""
    return datetime.now(timezone.utc)


def to_epoch_us(timestamp: datetime) -> int:
    """Exact microseconds since the Unix epoch for an aware datetime."""
    return (timestamp - EPOCH) // timedelta(microseconds=1)


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounding halves up."""
    return math.floor((end - start) / timedelta(minutes=1) + 0.5)


@dataclass(frozen=True)
class NormalizedPoint:
    """A canonical location sample (WGS84 degrees, UTC timestamp)."""
    id: str
    latitude: float
    longitude: float
    timestamp: datetime
    address: str = UNKNOWN_ADDRESS
    accuracy_meters: float = 0.0

    @property
    def has_address(self) -> bool:
        return self.address != UNKNOWN_ADDRESS


@dataclass
class NormalizationResult:
    """Normalized points plus diagnostics counts."""
    points: List[NormalizedPoint] = field(default_factory=list)
    # Samples dropped for missing/invalid coordinates or timestamps
    skipped: int = 0
    # Valid samples dropped by the date-range filter
    filtered_out: int = 0


def parse_iso_timestamp(text: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp to a timezone-aware UTC datetime.

    Naive timestamps are treated as UTC. Relative words such as "now" are
    not timestamps.

    Returns:
        datetime, or None if the text cannot be parsed
    """
    if not isinstance(text, str) or text.strip().lower() in RELATIVE_WORDS:
        return None
    try:
        ts = pd.to_datetime(text, format='ISO8601', utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.floor('us').to_pydatetime()


def epoch_ms_to_datetime(value) -> Optional[datetime]:
    """Convert epoch milliseconds (number or numeric string) to a UTC datetime."""
    ms = coerce_float(value)
    if ms is None or math.isnan(ms):
        return None
    try:
        return EPOCH + timedelta(milliseconds=int(ms))
    except OverflowError:
        return None


class PointNormalizer:
    """
    Converts raw export samples into sorted canonical points.

    Args:
        require_timestamp: Drop samples without any timestamp. When False,
            such samples are stamped with the clock instead.
        clock: Callable returning the current UTC datetime
        start_date: Keep only samples on or after this UTC date
        end_date: Keep only samples on or before this UTC date
    """

    def __init__(
        self,
        require_timestamp: bool = True,
        clock: Callable[[], datetime] = utc_now,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ):
        if start_date is not None and end_date is not None and start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

        self.require_timestamp = require_timestamp
        self.clock = clock
        self.start_date = start_date
        self.end_date = end_date

    def _resolve_coordinates(self, raw: RawPoint) -> Optional[Tuple[float, float]]:
        if not raw.has_coordinates:
            return None
        lat = e7_to_degrees(raw.latitude_e7) if raw.latitude_e7 is not None else raw.latitude
        lon = e7_to_degrees(raw.longitude_e7) if raw.longitude_e7 is not None else raw.longitude
        if not is_valid_coordinate(lat, lon):
            return None
        return lat, lon

    def _resolve_timestamp(self, raw: RawPoint) -> Optional[datetime]:
        if raw.timestamp is not None:
            return parse_iso_timestamp(raw.timestamp)
        if raw.timestamp_ms is not None:
            return epoch_ms_to_datetime(raw.timestamp_ms)
        return self.clock()

    def _in_range(self, timestamp: datetime) -> bool:
        day = timestamp.date()
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    def normalize(self, raw_points: Iterable[RawPoint]) -> NormalizationResult:
        """
        Normalize and sort raw points.

        Args:
            raw_points: Samples from FormatParser, any order

        Returns:
            NormalizationResult with points sorted ascending by timestamp
            (ties keep input order)
        """
        result = NormalizationResult()
        resolved: List[NormalizedPoint] = []

        for raw in raw_points:
            if self.require_timestamp and not raw.has_timestamp:
                result.skipped += 1
                continue

            coords = self._resolve_coordinates(raw)
            timestamp = self._resolve_timestamp(raw)
            if coords is None or timestamp is None:
                logger.debug("Skipping malformed sample from %s", raw.source)
                result.skipped += 1
                continue

            if not self._in_range(timestamp):
                result.filtered_out += 1
                continue

            resolved.append(NormalizedPoint(
                id=f"{ID_PREFIX}_{timestamp.isoformat()}_{len(resolved)}",
                latitude=coords[0],
                longitude=coords[1],
                timestamp=timestamp,
                address=raw.address or UNKNOWN_ADDRESS,
                accuracy_meters=raw.accuracy if raw.accuracy and raw.accuracy > 0 else 0.0,
            ))

        result.points = sorted(resolved, key=lambda p: p.timestamp)
        logger.info(
            "Normalized %d points (%d skipped, %d outside date range)",
            len(result.points), result.skipped, result.filtered_out,
        )
        return result


def normalize_points(
    raw_points: Iterable[RawPoint],
    require_timestamp: bool = True,
    clock: Callable[[], datetime] = utc_now,
) -> List[NormalizedPoint]:
    """
    Convenience function to normalize raw points.

    Returns:
        Sorted list of NormalizedPoint
    """
    normalizer = PointNormalizer(require_timestamp=require_timestamp, clock=clock)
    return normalizer.normalize(raw_points).points


def points_to_frame(points: Iterable[NormalizedPoint]) -> pd.DataFrame:
    """
    Build a DataFrame view of a point sequence.

    Args:
        points: Normalized points

    Returns:
        DataFrame with columns id, timestamp (datetime64[ns, UTC]),
        latitude, longitude, address, accuracy_meters
    """
    df = pd.DataFrame(
        [(p.id, p.timestamp, p.latitude, p.longitude, p.address, p.accuracy_meters) for p in points],
        columns=FRAME_COLUMNS,
    )
    df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
    df['latitude'] = df['latitude'].astype(float)
    df['longitude'] = df['longitude'].astype(float)
    return df
