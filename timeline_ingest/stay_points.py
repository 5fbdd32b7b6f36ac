"""
Stay point extraction.

Walks the canonical trajectory once, growing a place accumulator while
consecutive samples stay inside a small lat/lon box around it. When a
sample leaves the box, the accumulator is emitted as a StayPoint if the
dwell reached the minimum duration, and a new one starts at that sample.
The accumulator left over after the last sample gets the same check.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .coordinates import within_box
from .normalizer import UNKNOWN_ADDRESS, NormalizedPoint, elapsed_minutes

logger = logging.getLogger(__name__)


STAY_DISTANCE_DEG = 0.001  # ~100 m on either axis
MIN_STAY_MINUTES = 15
STAY_CONFIDENCE = 0.7
UNKNOWN_PLACE = "unknown place"


@dataclass(frozen=True)
class StayPoint:
    """A place where the subject dwelled for at least the minimum duration."""
    latitude: float
    longitude: float
    arrival: datetime
    departure: datetime
    duration_minutes: int
    source_point_count: int
    confidence_level: float
    place_name: str


@dataclass(frozen=True)
class _Accumulator:
    """Running state for the place currently being visited."""
    lat_sum: float
    lon_sum: float
    arrival: datetime
    departure: datetime
    dwell_minutes: int
    point_count: int
    address: str

    @classmethod
    def seed(cls, point: NormalizedPoint) -> "_Accumulator":
        return cls(
            lat_sum=point.latitude,
            lon_sum=point.longitude,
            arrival=point.timestamp,
            departure=point.timestamp,
            dwell_minutes=0,
            point_count=1,
            address=point.address,
        )

    @property
    def centroid(self) -> Tuple[float, float]:
        return self.lat_sum / self.point_count, self.lon_sum / self.point_count

    def extend(self, point: NormalizedPoint) -> "_Accumulator":
        return replace(
            self,
            lat_sum=self.lat_sum + point.latitude,
            lon_sum=self.lon_sum + point.longitude,
            departure=point.timestamp,
            dwell_minutes=elapsed_minutes(self.arrival, point.timestamp),
            point_count=self.point_count + 1,
        )


class StayPointExtractor:
    """
    Extracts dwell locations from a time-sorted trajectory.

    A sample belongs to the current place when it differs from the place
    centroid by at most the distance threshold on both axes. Places whose
    dwell is at least min_stay_minutes become StayPoints.
    """

    def __init__(
        self,
        distance_threshold_deg: float = STAY_DISTANCE_DEG,
        min_stay_minutes: int = MIN_STAY_MINUTES,
        confidence: float = STAY_CONFIDENCE,
    ):
        """
        Initialize the extractor.

        Args:
            distance_threshold_deg: Max |dlat| and |dlon| (degrees) from the place centroid
            min_stay_minutes: Minimum dwell (minutes) for a place to be emitted
            confidence: Confidence level assigned to every emitted StayPoint
        """
        self.distance_threshold_deg = distance_threshold_deg
        self.min_stay_minutes = min_stay_minutes
        self.confidence = confidence

    def _to_stay_point(self, acc: _Accumulator) -> Optional[StayPoint]:
        if acc.dwell_minutes < self.min_stay_minutes:
            return None
        lat, lon = acc.centroid
        return StayPoint(
            latitude=lat,
            longitude=lon,
            arrival=acc.arrival,
            departure=acc.departure,
            duration_minutes=acc.dwell_minutes,
            source_point_count=acc.point_count,
            confidence_level=self.confidence,
            place_name=acc.address if acc.address and acc.address != UNKNOWN_ADDRESS else UNKNOWN_PLACE,
        )

    def _step(
        self,
        acc: Optional[_Accumulator],
        point: NormalizedPoint,
    ) -> Tuple[_Accumulator, Optional[StayPoint]]:
        """
        Advance the fold by one sample.

        Returns:
            Tuple of (next accumulator, StayPoint closed by this sample or None)
        """
        if acc is not None:
            lat, lon = acc.centroid
            if within_box(point.latitude, point.longitude, lat, lon, self.distance_threshold_deg):
                return acc.extend(point), None

        closed = self._to_stay_point(acc) if acc is not None else None
        return _Accumulator.seed(point), closed

    def extract(self, points: Sequence[NormalizedPoint]) -> List[StayPoint]:
        """
        Extract stay points.

        Args:
            points: Canonical trajectory (deduplicated, sorted by timestamp)

        Returns:
            StayPoints in chronological order
        """
        stay_points: List[StayPoint] = []
        acc: Optional[_Accumulator] = None

        for point in points:
            acc, closed = self._step(acc, point)
            if closed is not None:
                stay_points.append(closed)

        # Terminal flush: the last place is only closed here
        if acc is not None:
            last = self._to_stay_point(acc)
            if last is not None:
                stay_points.append(last)

        logger.info("Extracted %d stay points from %d points", len(stay_points), len(points))
        return stay_points


def extract_stay_points(
    points: Sequence[NormalizedPoint],
    distance_threshold_deg: float = STAY_DISTANCE_DEG,
    min_stay_minutes: int = MIN_STAY_MINUTES,
) -> List[StayPoint]:
    """Convenience function to extract stay points from a canonical trajectory."""
    extractor = StayPointExtractor(
        distance_threshold_deg=distance_threshold_deg,
        min_stay_minutes=min_stay_minutes,
    )
    return extractor.extract(points)
