"""
Coordinate utilities for location-history exports.

Handles the two coordinate encodings found in exports (E7 integers and
decimal degrees), the textual "lat°, lon°" pairs used by segment exports,
and the flat-earth degree distance used for segmentation.
"""

import math
import numpy as np
from typing import Optional, Tuple


E7_SCALE = 10_000_000  # E7 integer = degrees * 1e7
METERS_PER_DEGREE = 111_320.0  # Approximate length of one degree (meters)
DEGREE_SYMBOL = '°'


def e7_to_degrees(value: float) -> float:
    """
    Convert an E7-encoded coordinate to decimal degrees.

    Args:
        value: Integer (or numeric string) equal to degrees * 10,000,000

    Returns:
        Coordinate in decimal degrees
    """
    return float(value) / E7_SCALE


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Check that a lat/lon pair is finite and inside WGS84 degree ranges."""
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def parse_coordinate_string(text: str) -> Optional[Tuple[float, float]]:
    """
    Parse a "37.4797273°, 126.9150743°" style coordinate pair.

    Args:
        text: Coordinate text with optional degree symbols

    Returns:
        (latitude, longitude) in degrees, or None if the text is not exactly
        two numbers or the values fall outside valid ranges
    """
    if not isinstance(text, str):
        return None

    parts = [part.strip() for part in text.replace(DEGREE_SYMBOL, '').strip().split(',')]
    if len(parts) != 2:
        return None

    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError:
        return None

    if not is_valid_coordinate(lat, lon):
        return None
    return lat, lon


def planar_distance_degrees(lat1, lon1, lat2, lon2):
    """
    Straight-line distance between two points in degree space.

    Works element-wise on numpy arrays as well as on scalars.

    Args:
        lat1, lon1: First point (degrees)
        lat2, lon2: Second point (degrees)

    Returns:
        sqrt(dlat^2 + dlon^2) in degrees
    """
    dlat = np.subtract(lat2, lat1)
    dlon = np.subtract(lon2, lon1)
    return np.sqrt(dlat**2 + dlon**2)


def degrees_to_meters(degrees, meters_per_degree: float = METERS_PER_DEGREE):
    """Convert a degree-space distance to meters using a fixed scale."""
    return np.multiply(degrees, meters_per_degree)


def meters_to_degrees(meters: float, meters_per_degree: float = METERS_PER_DEGREE) -> float:
    """Convert meters to degree-space distance (inverse of degrees_to_meters)."""
    return meters / meters_per_degree


def within_box(
    lat1: float, lon1: float,
    lat2: float, lon2: float,
    threshold_deg: float,
) -> bool:
    """
    Check whether two points differ by at most threshold_deg on both axes.

    Boundary is inclusive: a difference exactly equal to the threshold is
    still inside the box.
    """
    return abs(lat1 - lat2) <= threshold_deg and abs(lon1 - lon2) <= threshold_deg
