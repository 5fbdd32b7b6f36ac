"""
Sample location-history data for testing and development.

Generates a realistic day around Seoul (dwelling at landmarks, travelling
between them) and renders it in each export schema the parser accepts:
- semantic segments with "lat°, lon°" path strings
- legacy timelineObjects with E7 coordinates
- pre-normalized location entries with epoch-millisecond timestamps
"""

import numpy as np
import pandas as pd
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from .coordinates import E7_SCALE, meters_to_degrees


KST = timezone(timedelta(hours=9))

# (name, latitude, longitude)
SEOUL_LANDMARKS: List[Tuple[str, float, float]] = [
    ("경복궁", 37.5796, 126.9770),
    ("명동", 37.5636, 126.9826),
    ("남산타워", 37.5512, 126.9882),
    ("홍대입구", 37.5572, 126.9245),
    ("강남역", 37.4979, 127.0276),
    ("잠실", 37.5133, 127.1001),
]

DEFAULT_START_TIME = datetime(2024, 5, 4, 9, 0, 0, tzinfo=KST)


def generate_visit_samples(
    name: str,
    lat: float,
    lon: float,
    start_time: datetime,
    dwell_minutes: float,
    interval_minutes: float = 6.0,
    jitter_m: float = 5.0,
    rng: Optional[np.random.Generator] = None,
) -> pd.DataFrame:
    """
    Generate samples logged while staying at one place.

    Args:
        name: Place name stored as the sample address
        lat, lon: Place position (degrees)
        start_time: Arrival time
        dwell_minutes: Time spent at the place
        interval_minutes: Logging interval
        jitter_m: Standard deviation of GPS noise (meters)
        rng: Random generator (a fresh unseeded one if None)

    Returns:
        DataFrame with columns: timestamp, latitude, longitude, address
    """
    rng = rng if rng is not None else np.random.default_rng()
    num_points = max(1, int(dwell_minutes // interval_minutes) + 1)
    offsets = np.linspace(0, dwell_minutes, num_points)

    noise = meters_to_degrees(1.0) * jitter_m
    lats = lat + rng.normal(0, noise, num_points)
    lons = lon + rng.normal(0, noise, num_points)

    return pd.DataFrame({
        'timestamp': [start_time + timedelta(minutes=float(m)) for m in offsets],
        'latitude': lats,
        'longitude': lons,
        'address': name,
    })


def generate_sample_day(
    landmarks: Optional[List[Tuple[str, float, float]]] = None,
    start_time: Optional[datetime] = None,
    dwell_minutes: float = 60.0,
    travel_minutes: float = 40.0,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """
    Generate a day of samples visiting each landmark in turn.

    Args:
        landmarks: (name, lat, lon) places to visit; Seoul landmarks by default
        start_time: Arrival at the first place
        dwell_minutes: Time spent at each place
        travel_minutes: Travel time between places (no samples while moving)
        seed: Random seed for reproducibility

    Returns:
        DataFrame with columns: timestamp, latitude, longitude, address,
        visit (index of the place visit each sample belongs to)
    """
    rng = np.random.default_rng(seed)
    landmarks = landmarks if landmarks is not None else SEOUL_LANDMARKS
    current_time = start_time if start_time is not None else DEFAULT_START_TIME

    frames = []
    for visit, (name, lat, lon) in enumerate(landmarks):
        df = generate_visit_samples(name, lat, lon, current_time, dwell_minutes, rng=rng)
        df['visit'] = visit
        frames.append(df)
        current_time = current_time + timedelta(minutes=dwell_minutes + travel_minutes)

    return pd.concat(frames, ignore_index=True)


def _iso(ts: datetime) -> str:
    return ts.astimezone(KST).isoformat(timespec='milliseconds')


def _e7(value: float) -> int:
    return int(round(value * E7_SCALE))


def to_segments_export(df: pd.DataFrame) -> Dict:
    """
    Render samples as a semanticSegments export (one segment per visit).

    Coordinates are written as "37.5796000°, 126.9770000°" strings.
    """
    segments = []
    for _, group in df.groupby('visit', sort=True):
        path = [
            {'point': f"{row.latitude:.7f}°, {row.longitude:.7f}°", 'time': _iso(row.timestamp)}
            for row in group.itertuples(index=False)
        ]
        segments.append({
            'startTime': _iso(group['timestamp'].iloc[0]),
            'endTime': _iso(group['timestamp'].iloc[-1]),
            'timelinePath': path,
        })
    return {'semanticSegments': segments}


def to_timeline_objects_export(df: pd.DataFrame) -> Dict:
    """
    Render samples as a legacy timelineObjects export.

    Every sample becomes a placeVisit with E7 coordinates; the first sample
    of each visit after the first also yields an activitySegment starting
    at the previous place.
    """
    objects = []
    previous = None
    for _, group in df.groupby('visit', sort=True):
        if previous is not None:
            objects.append({
                'activitySegment': {
                    'startLocation': {
                        'latitudeE7': _e7(previous.latitude),
                        'longitudeE7': _e7(previous.longitude),
                    },
                    'duration': {'startTimestamp': _iso(previous.timestamp)},
                },
            })
        for row in group.itertuples(index=False):
            objects.append({
                'placeVisit': {
                    'location': {
                        'latitudeE7': _e7(row.latitude),
                        'longitudeE7': _e7(row.longitude),
                        'name': row.address,
                    },
                    'duration': {'startTimestamp': _iso(row.timestamp)},
                },
            })
        previous = group.iloc[-1]
    return {'timelineObjects': objects}


def to_locations_export(df: pd.DataFrame) -> Dict:
    """Render samples as pre-normalized location entries with epoch-ms timestamps."""
    locations = []
    for row in df.itertuples(index=False):
        ts = pd.Timestamp(row.timestamp)
        locations.append({
            'latitude': float(row.latitude),
            'longitude': float(row.longitude),
            'timestampMs': str(int(ts.timestamp() * 1000)),
            'address': row.address,
        })
    return {'locations': locations}


def generate_sample_export(
    export_format: str = 'segments',
    seed: Optional[int] = None,
    **day_options,
) -> Dict:
    """
    Generate a sample export payload.

    Args:
        export_format: One of 'segments', 'timeline_objects', 'locations'
        seed: Random seed for reproducibility
        **day_options: Passed to generate_sample_day

    Returns:
        Decoded JSON payload (dict)
    """
    df = generate_sample_day(seed=seed, **day_options)

    if export_format == 'segments':
        return to_segments_export(df)
    elif export_format == 'timeline_objects':
        return to_timeline_objects_export(df)
    elif export_format == 'locations':
        return to_locations_export(df)
    else:
        raise ValueError(f"Unknown export format: {export_format}")
