"""
Timeline analytics.

Aggregates one pipeline result into overview figures: date span, most
visited places, travel totals and per-day activity.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from .normalizer import points_to_frame
from .pipeline import EngineResult
from .stay_points import UNKNOWN_PLACE


@dataclass
class PlaceSummary:
    """Visit statistics for one place name."""
    place_name: str
    visit_count: int
    total_duration_minutes: int


@dataclass
class DailyActivity:
    """Activity totals for one UTC day."""
    date: date
    place_visits: int
    movement_paths: int
    total_distance_km: float


@dataclass
class TimelineSummary:
    """Aggregate statistics over one processed timeline."""
    total_locations: int
    total_place_visits: int
    total_movement_paths: int
    start: Optional[date]
    end: Optional[date]
    days: int
    top_visited_places: List[PlaceSummary] = field(default_factory=list)
    total_distance_km: float = 0.0
    total_travel_time_minutes: int = 0
    daily_activity: List[DailyActivity] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Flat dict form for JSON responses."""
        return {
            'totalLocations': self.total_locations,
            'totalPlaceVisits': self.total_place_visits,
            'totalMovementPaths': self.total_movement_paths,
            'dateRange': {
                'start': self.start.isoformat() if self.start else '',
                'end': self.end.isoformat() if self.end else '',
                'days': self.days,
            },
            'topVisitedPlaces': [
                {
                    'place_name': p.place_name,
                    'visit_count': p.visit_count,
                    'total_duration_minutes': p.total_duration_minutes,
                }
                for p in self.top_visited_places
            ],
            'movementSummary': {
                'total_distance_km': self.total_distance_km,
                'total_travel_time_minutes': self.total_travel_time_minutes,
            },
            'dailyActivity': [
                {
                    'date': d.date.isoformat(),
                    'place_visits': d.place_visits,
                    'movement_paths': d.movement_paths,
                    'total_distance_km': d.total_distance_km,
                }
                for d in self.daily_activity
            ],
        }


def _stays_frame(result: EngineResult) -> pd.DataFrame:
    df = pd.DataFrame(
        [(s.place_name, s.duration_minutes, s.arrival) for s in result.stay_points],
        columns=['place_name', 'duration_minutes', 'arrival'],
    )
    df['day'] = pd.to_datetime(df['arrival'], utc=True).dt.date
    return df


def _movements_frame(result: EngineResult) -> pd.DataFrame:
    df = pd.DataFrame(
        [(m.start.timestamp, m.distance_meters, m.duration_minutes) for m in result.movements],
        columns=['start_time', 'distance_meters', 'duration_minutes'],
    )
    df['day'] = pd.to_datetime(df['start_time'], utc=True).dt.date
    df['distance_km'] = df['distance_meters'].astype(float) / 1000.0
    return df


def summarize(result: EngineResult, top_n: int = 5) -> TimelineSummary:
    """
    Compute aggregate statistics for a pipeline result.

    Args:
        result: Output of TimelineEngine.run
        top_n: Number of places to report in top_visited_places

    Returns:
        TimelineSummary (all zero/empty for an empty result)
    """
    points_df = points_to_frame(result.points)
    stays = _stays_frame(result)
    moves = _movements_frame(result)

    if len(points_df) > 0:
        start = points_df['timestamp'].min().date()
        end = points_df['timestamp'].max().date()
        days = (end - start).days
    else:
        start = end = None
        days = 0

    # Unnamed stays are distinct places and must not pool under one name
    named = stays[stays['place_name'] != UNKNOWN_PLACE]
    top_places: List[PlaceSummary] = []
    if len(named) > 0:
        grouped = (
            named.groupby('place_name', sort=False)['duration_minutes']
            .agg(['count', 'sum'])
            .sort_values(['count', 'sum'], ascending=False, kind='stable')
            .head(top_n)
        )
        for name, row in grouped.iterrows():
            top_places.append(PlaceSummary(
                place_name=name,
                visit_count=int(row['count']),
                total_duration_minutes=int(row['sum']),
            ))

    stay_days = stays.groupby('day').size()
    move_days = moves.groupby('day')['distance_km'].agg(['count', 'sum'])
    daily: List[DailyActivity] = []
    for day in sorted(set(stay_days.index) | set(move_days.index)):
        daily.append(DailyActivity(
            date=day,
            place_visits=int(stay_days.get(day, 0)),
            movement_paths=int(move_days['count'].get(day, 0)),
            total_distance_km=round(float(move_days['sum'].get(day, 0.0)), 2),
        ))

    return TimelineSummary(
        total_locations=len(result.points),
        total_place_visits=len(result.stay_points),
        total_movement_paths=len(result.movements),
        start=start,
        end=end,
        days=days,
        top_visited_places=top_places,
        total_distance_km=round(float(moves['distance_km'].sum()), 2),
        total_travel_time_minutes=int(moves['duration_minutes'].sum()),
        daily_activity=daily,
    )
