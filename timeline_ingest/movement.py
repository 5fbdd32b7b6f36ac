"""
Movement segment inference.

Every consecutive pair of samples in the canonical trajectory is a
candidate travel leg. A leg is kept when the points are far enough apart
(flat degree distance) and at least a rounded minute apart. Distances use a
fixed meters-per-degree scale; no path smoothing is applied.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .coordinates import METERS_PER_DEGREE, degrees_to_meters, planar_distance_degrees
from .normalizer import NormalizedPoint, points_to_frame

logger = logging.getLogger(__name__)


MIN_MOVEMENT_DEG = 0.005  # ~500 m
MOVEMENT_CONFIDENCE = 0.6


@dataclass(frozen=True)
class MovementSegment:
    """An inferred travel leg between two consecutive samples."""
    start: NormalizedPoint
    end: NormalizedPoint
    duration_minutes: int
    distance_meters: float
    avg_speed_kmh: float
    confidence_level: float


class MovementSegmenter:
    """
    Infers travel legs between consecutive trajectory samples.

    The computation is pairwise and local: each leg depends only on its two
    endpoints.
    """

    def __init__(
        self,
        min_distance_deg: float = MIN_MOVEMENT_DEG,
        meters_per_degree: float = METERS_PER_DEGREE,
        confidence: float = MOVEMENT_CONFIDENCE,
    ):
        """
        Initialize the segmenter.

        Args:
            min_distance_deg: Legs must be strictly longer than this (degrees)
            meters_per_degree: Scale from degree distance to meters
            confidence: Confidence level assigned to every emitted segment
        """
        self.min_distance_deg = min_distance_deg
        self.meters_per_degree = meters_per_degree
        self.confidence = confidence

    def segment(self, points: Sequence[NormalizedPoint]) -> List[MovementSegment]:
        """
        Infer movement segments.

        Args:
            points: Canonical trajectory (deduplicated, sorted by timestamp)

        Returns:
            MovementSegments in chronological order
        """
        if len(points) < 2:
            return []

        df = points_to_frame(points)
        lat = df['latitude'].values
        lon = df['longitude'].values

        distance_deg = planar_distance_degrees(lat[:-1], lon[:-1], lat[1:], lon[1:])
        distance_m = degrees_to_meters(distance_deg, self.meters_per_degree)

        # Rounded whole minutes, halves rounded up
        dt_minutes = df['timestamp'].diff().dt.total_seconds().values[1:] / 60.0
        duration_minutes = np.floor(dt_minutes + 0.5).astype(np.int64)

        keep = (distance_deg > self.min_distance_deg) & (duration_minutes > 0)

        segments: List[MovementSegment] = []
        for i in np.flatnonzero(keep):
            minutes = int(duration_minutes[i])
            distance_km = float(distance_m[i]) / 1000.0
            segments.append(MovementSegment(
                start=points[i],
                end=points[i + 1],
                duration_minutes=minutes,
                distance_meters=float(distance_m[i]),
                avg_speed_kmh=round(distance_km / (minutes / 60.0), 2),
                confidence_level=self.confidence,
            ))

        logger.info("Inferred %d movement segments from %d points", len(segments), len(points))
        return segments


def extract_movements(
    points: Sequence[NormalizedPoint],
    min_distance_deg: float = MIN_MOVEMENT_DEG,
) -> List[MovementSegment]:
    """Convenience function to infer movement segments from a canonical trajectory."""
    return MovementSegmenter(min_distance_deg=min_distance_deg).segment(points)
