"""
Near-duplicate removal for over-sampled location logs.

A sample is a duplicate when it lies within a small lat/lon box of, and
within a short time window of, ANY sample already kept. Duplicate bursts
are not always contiguous in time-sorted exports, so every candidate is
checked against the whole accepted set rather than just its predecessor.
"""

import logging
from datetime import timedelta
from typing import List, Sequence

import numpy as np

from .normalizer import NormalizedPoint, to_epoch_us

logger = logging.getLogger(__name__)


DEDUP_DISTANCE_DEG = 0.001  # ~100 m on either axis
DEDUP_TIME_WINDOW = timedelta(minutes=5)


class Deduplicator:
    """
    Removes spatio-temporal near-duplicates from a sorted point sequence.

    All comparisons are strict: a point exactly at the distance or time
    threshold from an accepted point is kept.
    """

    def __init__(
        self,
        distance_threshold_deg: float = DEDUP_DISTANCE_DEG,
        time_window: timedelta = DEDUP_TIME_WINDOW,
    ):
        """
        Initialize the deduplicator.

        Args:
            distance_threshold_deg: Max |dlat| and |dlon| (degrees) for a duplicate
            time_window: Max |dt| for a duplicate
        """
        self.distance_threshold_deg = distance_threshold_deg
        self.time_window = time_window

    def deduplicate(self, points: Sequence[NormalizedPoint]) -> List[NormalizedPoint]:
        """
        Drop points that duplicate an earlier accepted point.

        Args:
            points: Normalized points sorted by timestamp

        Returns:
            Accepted points, in input order
        """
        n = len(points)
        if n == 0:
            return []

        window_us = self.time_window // timedelta(microseconds=1)

        # Accepted set lives in the first `count` slots of these arrays
        lats = np.empty(n)
        lons = np.empty(n)
        times = np.empty(n, dtype=np.int64)
        count = 0

        accepted: List[NormalizedPoint] = []
        for point in points:
            t = to_epoch_us(point.timestamp)
            if count > 0:
                duplicate = (
                    (np.abs(lats[:count] - point.latitude) < self.distance_threshold_deg)
                    & (np.abs(lons[:count] - point.longitude) < self.distance_threshold_deg)
                    & (np.abs(times[:count] - t) < window_us)
                )
                if duplicate.any():
                    continue

            lats[count] = point.latitude
            lons[count] = point.longitude
            times[count] = t
            count += 1
            accepted.append(point)

        logger.info("Deduplicated %d points to %d", n, len(accepted))
        return accepted


def deduplicate_points(
    points: Sequence[NormalizedPoint],
    distance_threshold_deg: float = DEDUP_DISTANCE_DEG,
    time_window: timedelta = DEDUP_TIME_WINDOW,
) -> List[NormalizedPoint]:
    """Convenience function to deduplicate a sorted point sequence."""
    return Deduplicator(distance_threshold_deg, time_window).deduplicate(points)
